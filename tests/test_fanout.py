"""
Real-time fan-out tests.
"""

import json

import pytest
from starlette.websockets import WebSocketState

from gateway.models.telemetry import FanoutEnvelope, RealtimeSensorData

from conftest import NOW, FakeSubscriber


def envelope():
    return FanoutEnvelope(
        device_id="d1",
        data=RealtimeSensorData(device_id="d1", temperature=21.5, humidity=40.0, timestamp="t1"),
        timestamp=NOW,
    )


@pytest.mark.asyncio
async def test_broadcast_reaches_open_subscribers(fanout):
    first, second = FakeSubscriber(), FakeSubscriber()
    fanout.add(first)
    fanout.add(second)

    delivered = await fanout.broadcast(envelope())

    assert delivered == 2
    message = json.loads(first.sent[0])
    assert message["type"] == "sensor_data"
    assert message["deviceId"] == "d1"
    assert message["data"] == {"deviceId": "d1", "temperature": 21.5, "humidity": 40.0, "timestamp": "t1"}
    assert second.sent == first.sent


@pytest.mark.asyncio
async def test_closed_subscriber_is_evicted(fanout):
    closed = FakeSubscriber(state=WebSocketState.DISCONNECTED)
    fanout.add(closed)

    assert await fanout.broadcast(envelope()) == 0
    assert len(fanout) == 0
    assert closed.sent == []


@pytest.mark.asyncio
async def test_failing_subscriber_is_evicted_others_served(fanout):
    broken, healthy = FakeSubscriber(fail=True), FakeSubscriber()
    fanout.add(broken)
    fanout.add(healthy)

    assert await fanout.broadcast(envelope()) == 1
    assert broken not in fanout.subscribers
    assert healthy in fanout.subscribers


@pytest.mark.asyncio
async def test_slow_subscriber_is_evicted(fanout):
    slow = FakeSubscriber(delay=1.0)
    fanout.add(slow)

    assert await fanout.broadcast(envelope()) == 0
    assert len(fanout) == 0


@pytest.mark.asyncio
async def test_broadcast_without_subscribers(fanout):
    assert await fanout.broadcast(envelope()) == 0
