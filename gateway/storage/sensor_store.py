import json
import time
from typing import Optional

from gateway.models.telemetry import SensorReading
from gateway.storage.base import RedisStore, best_effort, load_json


def latest_key(device_id: str) -> str:
    return f"sensor_data:{device_id}"


def timeseries_key(device_id: str) -> str:
    return f"sensor_timeseries:{device_id}"


class SensorStore(RedisStore):
    @best_effort(False)
    async def store_sensor_reading(self, reading: SensorReading) -> bool:
        key = latest_key(reading.device_id)
        series_key = timeseries_key(reading.device_id)
        ttl = self.settings.sensor_ttl_seconds
        max_entries = self.settings.sensor_timeseries_max_entries
        entry = reading.model_dump_json(by_alias=True)

        async with self.redis.pipeline() as pipe:
            pipe.hset(
                key,
                mapping={"timestamp": reading.timestamp.isoformat(), "data": entry},
            )
            pipe.zadd(series_key, {entry: int(time.time() * 1000)})
            pipe.zremrangebyrank(series_key, 0, -(max_entries + 1))
            pipe.expire(key, ttl)
            pipe.expire(series_key, ttl)
            await pipe.execute()

        return True

    @best_effort(None)
    async def get_latest_sensor_reading(self, device_id: str) -> Optional[SensorReading]:
        fields = await self.redis.hgetall(latest_key(device_id))
        if not fields or not fields.get("data"):
            return None
        return SensorReading.model_validate(load_json(fields["data"], {}))

    @best_effort(list)
    async def get_sensor_history(
        self, device_id: str, limit: int = 100
    ) -> list[SensorReading]:
        if limit <= 0:
            return []

        entries = await self.redis.zrevrange(timeseries_key(device_id), 0, limit - 1)
        return [SensorReading.model_validate(json.loads(entry)) for entry in entries]
