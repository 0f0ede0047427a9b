"""Topic grammar for the ``iot/`` namespace.

Every function here is pure and total: malformed topics classify as "not a
device topic" or "no device id" instead of raising.
"""

from enum import Enum
from typing import Optional

IOT_PREFIX = "iot"

DEVICE_REGISTER = "iot/device/register"
DEVICE_STATUS = "iot/device/status"
DEVICE_HEARTBEAT = "iot/device/heartbeat"
SENSOR_DATA = "iot/sensor/data"
SENSOR_CTL = "iot/sensor/ctl"
ACTUATOR_CONTROL = "iot/actuator/control"


class TopicRoute(str, Enum):
    REGISTER = "register"
    STATUS = "status"
    HEARTBEAT = "heartbeat"
    SENSOR_RESPONSE = "sensor_response"
    SENSOR_DATA = "sensor_data"
    SENSOR_CONTROL = "sensor_control"
    SENSOR = "sensor"
    ACTUATOR = "actuator"
    OTHER = "other"


_EXACT_ROUTES = {
    DEVICE_REGISTER: TopicRoute.REGISTER,
    DEVICE_STATUS: TopicRoute.STATUS,
    DEVICE_HEARTBEAT: TopicRoute.HEARTBEAT,
}


def is_device_topic(topic: str) -> bool:
    return topic.startswith(f"{IOT_PREFIX}/")


def extract_device_id(topic: str) -> Optional[str]:
    """Return the device id embedded in ``topic``, or None.

    ``iot/device/{id}/...`` yields segment 2; ``iot/sensor/{data|ctl}/{id}``
    yields segment 3.
    """
    parts = topic.split("/")
    if len(parts) < 3 or parts[0] != IOT_PREFIX:
        return None

    if parts[1] == "device":
        device_id = parts[2]
    elif parts[1] == "sensor" and len(parts) >= 4:
        device_id = parts[3]
    else:
        return None

    return device_id or None


def route_topic(topic: str) -> TopicRoute:
    """Pick the handling branch for an IoT topic.

    Exact topics win over pattern matches, and sensor responses are checked
    before plain sensor data so ``iot/sensor/data/{id}/response`` is never
    treated as a reading.
    """
    if topic in _EXACT_ROUTES:
        return _EXACT_ROUTES[topic]

    if "sensor/data" in topic and "/response" in topic:
        return TopicRoute.SENSOR_RESPONSE
    if topic.startswith(f"{SENSOR_DATA}/"):
        return TopicRoute.SENSOR_DATA
    if topic.startswith(f"{SENSOR_CTL}/"):
        return TopicRoute.SENSOR_CONTROL
    if "sensor" in topic:
        return TopicRoute.SENSOR
    if "actuator" in topic:
        return TopicRoute.ACTUATOR

    return TopicRoute.OTHER


def topic_type(topic: str) -> str:
    if "device" in topic:
        return "device"
    if "sensor" in topic:
        return "sensor"
    if "actuator" in topic:
        return "actuator"
    if "system" in topic:
        return "system"
    return "general"
