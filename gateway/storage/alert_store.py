import logging

from pydantic import ValidationError

from gateway.models.alert import Alert
from gateway.storage.base import RedisStore, best_effort, new_entry_key, to_mapping

logger = logging.getLogger(__name__)

ALERTS_INDEX = "alerts:index"


def device_alerts_key(device_id: str) -> str:
    return f"alerts:{device_id}"


class AlertStore(RedisStore):
    @best_effort(False)
    async def store_alert(self, alert: Alert) -> bool:
        alert_key = new_entry_key("alert")
        list_key = device_alerts_key(alert.device_id)
        ttl = self.settings.alert_ttl_seconds

        async with self.redis.pipeline() as pipe:
            pipe.hset(alert_key, mapping=to_mapping(alert.model_dump(mode="json", by_alias=True)))
            pipe.lpush(list_key, alert_key)
            pipe.ltrim(list_key, 0, self.settings.alerts_per_device_max - 1)
            pipe.sadd(ALERTS_INDEX, alert.device_id)
            pipe.expire(alert_key, ttl)
            pipe.expire(list_key, ttl)
            await pipe.execute()

        return True

    async def _load_alert(self, alert_key: str):
        fields = await self.redis.hgetall(alert_key)
        if not fields:
            return None

        try:
            return Alert.model_validate(fields)
        except ValidationError as e:
            logger.warning(f"Discarding unreadable alert {alert_key}: {e}")
            return None

    @best_effort(list)
    async def get_device_alerts(self, device_id: str, limit: int = 50) -> list[Alert]:
        if limit <= 0:
            return []

        alert_keys = await self.redis.lrange(device_alerts_key(device_id), 0, limit - 1)

        alerts = []
        for alert_key in alert_keys:
            alert = await self._load_alert(alert_key)
            if alert:
                alerts.append(alert)

        return alerts

    @best_effort(list)
    async def get_all_alerts(self, limit: int = 100) -> list[Alert]:
        device_ids = await self.redis.smembers(ALERTS_INDEX)

        alerts = []
        for device_id in device_ids:
            alerts.extend(await self.get_device_alerts(device_id, limit))

        return sorted(alerts, key=lambda a: a.timestamp, reverse=True)[:limit]

    @best_effort(0)
    async def get_alert_count(self) -> int:
        device_ids = await self.redis.smembers(ALERTS_INDEX)

        total = 0
        for device_id in device_ids:
            alert_keys = await self.redis.lrange(device_alerts_key(device_id), 0, -1)
            if alert_keys:
                # Expired alert hashes linger in the list until trimmed.
                total += await self.redis.exists(*alert_keys)

        return total
