from typing import Optional

from gateway.config.settings import Settings, get_settings
from gateway.core.redis_client import RedisConnection, get_redis_connection
from gateway.storage.alert_store import AlertStore
from gateway.storage.base import StoreUnavailableError
from gateway.storage.device_store import DeviceStore
from gateway.storage.log_store import LogStore
from gateway.storage.sensor_store import SensorStore
from gateway.storage.subscription_store import SubscriptionStore
from gateway.storage.topic_store import TopicStore


class PersistenceGateway:
    """Best-effort façade over the Redis-backed stores.

    Writers return ``False`` and readers an empty result whenever Redis is
    unavailable, so callers never have to guard persistence calls.
    """

    def __init__(
        self,
        connection: Optional[RedisConnection] = None,
        settings: Optional[Settings] = None,
    ):
        self.connection = connection or get_redis_connection()
        self.settings = settings or get_settings()

        self.devices = DeviceStore(self.connection, self.settings)
        self.sensors = SensorStore(self.connection, self.settings)
        self.alerts = AlertStore(self.connection, self.settings)
        self.logs = LogStore(self.connection, self.settings)
        self.subscriptions = SubscriptionStore(self.connection, self.settings)
        self.topics = TopicStore(self.connection, self.settings)

    @property
    def is_connected(self) -> bool:
        return self.connection.is_connected

    def ensure_available(self) -> None:
        if not self.connection.is_connected:
            raise StoreUnavailableError("Redis service is not available")

    async def is_healthy(self) -> bool:
        return await self.connection.ping()

    async def store_sensor_reading(self, reading) -> bool:
        """Record a reading and mirror it onto the device record when one exists."""
        stored = await self.sensors.store_sensor_reading(reading)
        if stored and isinstance(reading.data, dict):
            await self.devices.store_last_sensor_data(reading.device_id, reading.data)
        return stored


_gateway: Optional[PersistenceGateway] = None


def get_persistence_gateway() -> PersistenceGateway:
    global _gateway

    if _gateway is None:
        _gateway = PersistenceGateway()

    return _gateway
