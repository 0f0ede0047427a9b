"""
Topic grammar tests.
"""

import pytest

from gateway.core.topics import (
    TopicRoute,
    extract_device_id,
    is_device_topic,
    route_topic,
    topic_type,
)


@pytest.mark.parametrize(
    "topic,expected",
    [
        ("iot/device/d1/status", "d1"),
        ("iot/device/d1", "d1"),
        ("iot/sensor/data/d1", "d1"),
        ("iot/sensor/ctl/d1", "d1"),
        ("iot/sensor/data/d1/response", "d1"),
        ("iot/device/register", "register"),
    ],
)
def test_extract_device_id(topic, expected):
    """Device id comes from the segment the grammar assigns to it."""
    assert extract_device_id(topic) == expected


@pytest.mark.parametrize(
    "topic",
    ["", "iot", "iot/sensor/data", "iot/actuator/control", "home/device/d1", "iot/device/"],
)
def test_extract_device_id_outside_grammar(topic):
    """Topics outside the grammar yield no device id."""
    assert extract_device_id(topic) is None


def test_is_device_topic():
    assert is_device_topic("iot/sensor/data/d1")
    assert not is_device_topic("dashboard/updates")
    assert not is_device_topic("iotx/sensor")


@pytest.mark.parametrize(
    "topic,route",
    [
        ("iot/device/register", TopicRoute.REGISTER),
        ("iot/device/status", TopicRoute.STATUS),
        ("iot/device/heartbeat", TopicRoute.HEARTBEAT),
        ("iot/sensor/data/d1", TopicRoute.SENSOR_DATA),
        ("iot/sensor/data/d1/response", TopicRoute.SENSOR_RESPONSE),
        ("iot/sensor/ctl/d1", TopicRoute.SENSOR_CONTROL),
        ("iot/device/d1/sensor", TopicRoute.SENSOR),
        ("iot/actuator/control", TopicRoute.ACTUATOR),
        ("iot/device/d1/status", TopicRoute.OTHER),
    ],
)
def test_route_topic(topic, route):
    assert route_topic(topic) == route


def test_topic_type():
    assert topic_type("iot/device/d1/status") == "device"
    assert topic_type("iot/sensor/data/d1") == "sensor"
    assert topic_type("iot/actuator/control") == "actuator"
    assert topic_type("system/alerts") == "system"
    assert topic_type("dashboard/updates") == "general"
