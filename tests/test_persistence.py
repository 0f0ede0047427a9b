"""
Redis persistence tests.
"""

from datetime import timedelta

import pytest

from gateway.config.settings import Settings
from gateway.models.alert import Alert, AlertType
from gateway.models.device import DeviceRecord, DeviceStatus
from gateway.models.log import LogEntry, LogLevel
from gateway.models.subscription import Subscription
from gateway.models.telemetry import SensorReading
from gateway.storage.device_store import DEVICES_INDEX
from gateway.storage.sensor_store import SensorStore, timeseries_key

from conftest import NOW


def device_record(device_id="d1", **fields):
    return DeviceRecord(device_id=device_id, registered_at=NOW, last_seen=NOW, **fields)


def alert(device_id, seconds):
    return Alert(
        device_id=device_id,
        type=AlertType.TEMPERATURE_HIGH,
        message="High temperature alert",
        value=31,
        threshold=30,
        timestamp=NOW + timedelta(seconds=seconds),
    )


@pytest.mark.asyncio
async def test_device_round_trip(gateway):
    device = device_record(
        device_type="dht22",
        location="lab",
        firmware="1.2.0",
        capabilities=["temperature", "humidity"],
        status=DeviceStatus.ONLINE,
        message_count=4,
    )

    assert await gateway.devices.store_device(device)
    loaded = await gateway.devices.get_device("d1")

    assert loaded.model_dump() == device.model_dump()


@pytest.mark.asyncio
async def test_device_round_trip_defaults(gateway):
    await gateway.devices.store_device(device_record("d2"))
    loaded = await gateway.devices.get_device("d2")

    assert loaded.capabilities == []
    assert loaded.memory_stats == {}
    assert loaded.device_type == "unknown"


@pytest.mark.asyncio
async def test_reregistering_keeps_single_index_entry(gateway, redis_client):
    await gateway.devices.store_device(device_record())
    await gateway.devices.store_device(device_record(location="roof"))

    assert await redis_client.smembers(DEVICES_INDEX) == {"d1"}
    assert await gateway.devices.get_device_count() == 1
    assert (await gateway.devices.get_device("d1")).location == "roof"


@pytest.mark.asyncio
async def test_get_missing_device(gateway):
    assert await gateway.devices.get_device("missing") is None
    assert not await gateway.devices.device_exists("missing")


@pytest.mark.asyncio
async def test_connection_keeps_registration_metadata(gateway):
    await gateway.devices.store_device(device_record(location="lab", status=DeviceStatus.OFFLINE))

    later = NOW + timedelta(minutes=5)
    await gateway.devices.store_device_connection("d1", later)
    device = await gateway.devices.get_device("d1")

    assert device.status == DeviceStatus.ONLINE
    assert device.location == "lab"
    assert device.last_seen == later


@pytest.mark.asyncio
async def test_connection_creates_record_on_first_sight(gateway):
    await gateway.devices.store_device_connection("iot-new", NOW)
    device = await gateway.devices.get_device("iot-new")

    assert device.status == DeviceStatus.ONLINE
    assert device.message_count == 0
    assert device.registered_at == NOW


@pytest.mark.asyncio
async def test_status_update_requires_existing_record(gateway):
    assert not await gateway.devices.update_device_status("ghost", DeviceStatus.OFFLINE, NOW)
    assert not await gateway.devices.device_exists("ghost")

    await gateway.devices.store_device(device_record(status=DeviceStatus.ONLINE))
    assert await gateway.devices.update_device_status("d1", DeviceStatus.OFFLINE, NOW)
    assert (await gateway.devices.get_device("d1")).status == DeviceStatus.OFFLINE


@pytest.mark.asyncio
async def test_message_count_increments(gateway):
    await gateway.devices.store_device(device_record())

    for _ in range(3):
        await gateway.devices.increment_message_count("d1")

    assert (await gateway.devices.get_device("d1")).message_count == 3
    assert not await gateway.devices.increment_message_count("ghost")


@pytest.mark.asyncio
async def test_heartbeat_is_a_partial_update(gateway):
    await gateway.devices.store_device(device_record(location="lab", capabilities=["temperature"]))

    await gateway.devices.store_heartbeat("d1", 120.5, {"free": 2048}, NOW)
    device = await gateway.devices.get_device("d1")

    assert device.uptime == 120.5
    assert device.memory_stats == {"free": 2048}
    assert device.location == "lab"
    assert device.capabilities == ["temperature"]


@pytest.mark.asyncio
async def test_heartbeat_creates_record(gateway):
    await gateway.devices.store_heartbeat("d9", 5, {}, NOW)
    device = await gateway.devices.get_device("d9")

    assert device.status == DeviceStatus.ONLINE
    assert device.registered_at == NOW


@pytest.mark.asyncio
async def test_delete_device(gateway):
    await gateway.devices.store_device(device_record())
    await gateway.alerts.store_alert(alert("d1", 1))

    assert await gateway.devices.delete_device("d1")
    assert await gateway.devices.get_device("d1") is None
    assert await gateway.alerts.get_all_alerts() == []
    assert not await gateway.devices.delete_device("d1")


@pytest.mark.asyncio
async def test_sensor_reading_latest_and_mirror(gateway):
    await gateway.devices.store_device(device_record())
    reading = SensorReading(
        device_id="d1",
        timestamp=NOW,
        sensors={"temperature": {"value": 21.5, "unit": "C"}},
        data={"deviceId": "d1", "temperature": 21.5},
    )

    assert await gateway.store_sensor_reading(reading)

    latest = await gateway.sensors.get_latest_sensor_reading("d1")
    assert latest.sensors["temperature"].value == 21.5
    assert (await gateway.devices.get_device("d1")).last_sensor_data == {
        "deviceId": "d1",
        "temperature": 21.5,
    }
    assert len(await gateway.sensors.get_sensor_history("d1")) == 1


@pytest.mark.asyncio
async def test_sensor_timeseries_is_trimmed(connection, redis_client):
    store = SensorStore(connection, Settings(_env_file=None, sensor_timeseries_max_entries=3))

    for i in range(6):
        await store.store_sensor_reading(
            SensorReading(device_id="d1", timestamp=NOW + timedelta(seconds=i), data={"i": i})
        )

    assert await redis_client.zcard(timeseries_key("d1")) == 3
    assert len(await store.get_sensor_history("d1", limit=10)) == 3


@pytest.mark.asyncio
async def test_all_alerts_sorted_across_devices(gateway):
    """Alerts merge across devices, newest first, including unregistered devices."""
    for device_id, seconds in [("d1", 1), ("d2", 2), ("d1", 3), ("d2", 4), ("d1", 5), ("d2", 6)]:
        await gateway.alerts.store_alert(alert(device_id, seconds))

    alerts = await gateway.alerts.get_all_alerts(limit=4)

    assert [a.timestamp for a in alerts] == [NOW + timedelta(seconds=s) for s in (6, 5, 4, 3)]
    assert await gateway.alerts.get_alert_count() == 6


@pytest.mark.asyncio
async def test_device_alerts_are_trimmed(gateway):
    for i in range(55):
        await gateway.alerts.store_alert(alert("d1", i))

    alerts = await gateway.alerts.get_device_alerts("d1", limit=100)

    assert len(alerts) == 50
    assert alerts[0].timestamp == NOW + timedelta(seconds=54)


@pytest.mark.asyncio
async def test_logs_filter_by_device_and_level(gateway):
    await gateway.logs.store_log(LogEntry(device_id="d1", message="one", data={"a": 1}, timestamp=NOW))
    await gateway.logs.store_log(
        LogEntry(device_id="d2", level=LogLevel.WARN, message="two", data="raw", timestamp=NOW)
    )
    await gateway.logs.store_log(LogEntry(message="system", timestamp=NOW))

    all_logs = await gateway.logs.get_all_logs()
    assert [log.message for log in all_logs] == ["system", "two", "one"]
    assert all_logs[2].data == {"a": 1}
    assert all_logs[1].data == "raw"

    warnings = await gateway.logs.get_all_logs(level=LogLevel.WARN)
    assert [log.message for log in warnings] == ["two"]

    assert [log.message for log in await gateway.logs.get_device_logs("d1")] == ["one"]
    assert await gateway.logs.get_log_count() == 3


@pytest.mark.asyncio
async def test_subscriptions(gateway):
    await gateway.subscriptions.store_subscription(
        Subscription(client_id="dash", topic="iot/sensor/data/d1", qos=1)
    )
    await gateway.subscriptions.store_subscription(
        Subscription(client_id="iot-d1", topic="iot/sensor/data/d1")
    )
    await gateway.subscriptions.store_subscription(
        Subscription(client_id="dash", topic="system/alerts")
    )

    assert await gateway.subscriptions.get_topic_subscribers("iot/sensor/data/d1") == ["dash", "iot-d1"]
    assert await gateway.subscriptions.get_client_subscriptions("dash") == [
        "iot/sensor/data/d1",
        "system/alerts",
    ]

    topics = await gateway.subscriptions.get_active_topics()
    assert [(t.name, t.type, t.subscribers) for t in topics] == [
        ("iot/sensor/data/d1", "sensor", 2),
        ("system/alerts", "system", 1),
    ]

    assert await gateway.subscriptions.remove_client_subscriptions("dash") == 2
    assert await gateway.subscriptions.get_client_subscriptions("dash") == []
    assert len(await gateway.subscriptions.get_active_subscriptions()) == 1


@pytest.mark.asyncio
async def test_topic_stats_count_messages(gateway):
    for i in range(3):
        await gateway.topics.store_topic_stats("iot/sensor/data/d1", NOW + timedelta(seconds=i))

    stat = await gateway.topics.get_topic_stat("iot/sensor/data/d1")

    assert stat.message_count == 3
    assert stat.last_message == NOW + timedelta(seconds=2)
    assert [s.topic for s in await gateway.topics.get_topic_stats()] == ["iot/sensor/data/d1"]


@pytest.mark.asyncio
async def test_active_topics_carry_message_stats(gateway):
    await gateway.subscriptions.store_subscription(
        Subscription(client_id="dash", topic="iot/sensor/data/d1")
    )
    for i in range(3):
        await gateway.topics.store_topic_stats("iot/sensor/data/d1", NOW + timedelta(seconds=i))

    topics = await gateway.subscriptions.get_active_topics()

    assert [(t.name, t.message_count, t.last_message) for t in topics] == [
        ("iot/sensor/data/d1", 3, NOW + timedelta(seconds=2))
    ]


@pytest.mark.asyncio
async def test_alert_count_skips_expired_alerts(gateway, redis_client):
    await gateway.alerts.store_alert(alert("d1", 1))
    await gateway.alerts.store_alert(alert("d1", 2))

    alert_keys = await redis_client.lrange("alerts:d1", 0, -1)
    await redis_client.delete(alert_keys[0])

    assert await gateway.alerts.get_alert_count() == 1
    assert len(await gateway.alerts.get_device_alerts("d1")) == 1
