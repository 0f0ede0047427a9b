import logging
from datetime import datetime
from typing import Any, Optional

from pydantic import ValidationError

from gateway.models.device import DeviceRecord, DeviceStatus
from gateway.storage.base import RedisStore, best_effort, load_json, to_mapping

logger = logging.getLogger(__name__)

DEVICES_INDEX = "devices:index"


def device_key(device_id: str) -> str:
    return f"device:{device_id}"


class DeviceStore(RedisStore):
    async def _write_fields(self, device_id: str, fields: dict) -> None:
        key = device_key(device_id)

        async with self.redis.pipeline() as pipe:
            pipe.hset(key, mapping=to_mapping(fields))
            pipe.sadd(DEVICES_INDEX, device_id)
            pipe.expire(key, self.settings.device_ttl_seconds)
            await pipe.execute()

    @best_effort(False)
    async def store_device(self, device: DeviceRecord) -> bool:
        await self._write_fields(
            device.device_id, device.model_dump(mode="json", by_alias=True)
        )
        return True

    @best_effort(None)
    async def get_device(self, device_id: str) -> Optional[DeviceRecord]:
        fields = await self.redis.hgetall(device_key(device_id))
        if not fields:
            return None

        fields["capabilities"] = load_json(fields.get("capabilities"), [])
        fields["memoryStats"] = load_json(fields.get("memoryStats"), {})
        fields["lastSensorData"] = load_json(fields.get("lastSensorData"), {})
        fields["messageCount"] = int(fields.get("messageCount") or 0)
        fields["uptime"] = float(fields.get("uptime") or 0)

        try:
            return DeviceRecord.model_validate(fields)
        except ValidationError as e:
            logger.warning(f"Discarding unreadable device record {device_id}: {e}")
            return None

    @best_effort(list)
    async def get_all_devices(self) -> list[DeviceRecord]:
        device_ids = await self.redis.smembers(DEVICES_INDEX)

        devices = []
        for device_id in sorted(device_ids):
            device = await self.get_device(device_id)
            if device:
                devices.append(device)

        return devices

    @best_effort(False)
    async def device_exists(self, device_id: str) -> bool:
        return await self.redis.exists(device_key(device_id)) > 0

    @best_effort(False)
    async def store_device_connection(self, device_id: str, now: datetime) -> bool:
        """Mark a connecting device online, creating its record on first sight."""
        if await self.redis.exists(device_key(device_id)):
            await self._write_fields(
                device_id, {"status": DeviceStatus.ONLINE.value, "lastSeen": now.isoformat()}
            )
            return True

        device = DeviceRecord(
            device_id=device_id,
            status=DeviceStatus.ONLINE,
            registered_at=now,
            last_seen=now,
            message_count=0,
        )
        return await self.store_device(device)

    @best_effort(False)
    async def update_device_status(
        self, device_id: str, status: DeviceStatus, last_seen: datetime
    ) -> bool:
        if not await self.redis.exists(device_key(device_id)):
            return False

        await self._write_fields(
            device_id, {"status": DeviceStatus(status).value, "lastSeen": last_seen.isoformat()}
        )
        return True

    @best_effort(False)
    async def increment_message_count(self, device_id: str) -> bool:
        key = device_key(device_id)
        if not await self.redis.exists(key):
            return False

        await self.redis.hincrby(key, "messageCount", 1)
        return True

    @best_effort(False)
    async def store_heartbeat(
        self,
        device_id: str,
        uptime: float,
        memory_stats: dict[str, Any],
        now: datetime,
    ) -> bool:
        fields = {
            "deviceId": device_id,
            "status": DeviceStatus.ONLINE.value,
            "lastSeen": now.isoformat(),
            "uptime": uptime,
            "memoryStats": memory_stats,
        }
        if not await self.redis.exists(device_key(device_id)):
            fields["registeredAt"] = now.isoformat()
            fields["messageCount"] = 0

        await self._write_fields(device_id, fields)
        return True

    @best_effort(False)
    async def store_last_sensor_data(self, device_id: str, data: Any) -> bool:
        key = device_key(device_id)
        if not await self.redis.exists(key):
            return False

        await self.redis.hset(key, mapping=to_mapping({"lastSensorData": data}))
        return True

    @best_effort(False)
    async def delete_device(self, device_id: str) -> bool:
        async with self.redis.pipeline() as pipe:
            pipe.delete(
                device_key(device_id),
                f"sensor_data:{device_id}",
                f"sensor_timeseries:{device_id}",
                f"alerts:{device_id}",
                f"logs:device:{device_id}",
            )
            pipe.srem(DEVICES_INDEX, device_id)
            pipe.srem("alerts:index", device_id)
            results = await pipe.execute()

        return results[0] > 0 or results[1] > 0

    @best_effort(0)
    async def get_device_count(self) -> int:
        return await self.redis.scard(DEVICES_INDEX)
