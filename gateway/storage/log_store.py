import json
import logging
from typing import Optional

from pydantic import ValidationError

from gateway.models.log import LogEntry, LogLevel
from gateway.storage.base import (
    RedisStore,
    best_effort,
    load_json,
    new_entry_key,
    to_mapping,
)

logger = logging.getLogger(__name__)

GLOBAL_LOGS = "logs:global"


def device_logs_key(device_id: str) -> str:
    return f"logs:device:{device_id}"


class LogStore(RedisStore):
    @best_effort(False)
    async def store_log(self, entry: LogEntry) -> bool:
        log_key = new_entry_key("log")
        fields = entry.model_dump(mode="json", by_alias=True)
        fields["data"] = json.dumps(fields["data"] if fields["data"] is not None else {})

        async with self.redis.pipeline() as pipe:
            pipe.hset(log_key, mapping=to_mapping(fields))
            pipe.lpush(GLOBAL_LOGS, log_key)
            pipe.ltrim(GLOBAL_LOGS, 0, self.settings.logs_global_max - 1)

            if entry.device_id:
                device_key = device_logs_key(entry.device_id)
                pipe.lpush(device_key, log_key)
                pipe.ltrim(device_key, 0, self.settings.logs_per_device_max - 1)

            pipe.expire(log_key, self.settings.log_ttl_seconds)
            await pipe.execute()

        return True

    async def _load_logs(self, list_key: str, limit: int) -> list[LogEntry]:
        if limit <= 0:
            return []

        log_keys = await self.redis.lrange(list_key, 0, limit - 1)

        entries = []
        for log_key in log_keys:
            fields = await self.redis.hgetall(log_key)
            if not fields:
                continue

            fields["data"] = load_json(fields.get("data"), {})
            try:
                entries.append(LogEntry.model_validate(fields))
            except ValidationError as e:
                logger.warning(f"Discarding unreadable log entry {log_key}: {e}")

        return entries

    @best_effort(list)
    async def get_all_logs(
        self, limit: int = 100, level: Optional[LogLevel] = None
    ) -> list[LogEntry]:
        entries = await self._load_logs(GLOBAL_LOGS, limit)
        if level:
            entries = [e for e in entries if e.level == level]
        return entries

    @best_effort(list)
    async def get_device_logs(
        self, device_id: str, limit: int = 100, level: Optional[LogLevel] = None
    ) -> list[LogEntry]:
        entries = await self._load_logs(device_logs_key(device_id), limit)
        if level:
            entries = [e for e in entries if e.level == level]
        return entries

    @best_effort(0)
    async def get_log_count(self) -> int:
        return await self.redis.llen(GLOBAL_LOGS)
