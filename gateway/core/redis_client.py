import asyncio
import logging
from typing import Optional

import redis.asyncio as redis
from redis.backoff import ExponentialBackoff
from redis.exceptions import RedisError

from gateway.config.settings import Settings, get_settings

logger = logging.getLogger(__name__)


class RedisConnection:
    """Owns the Redis client and the connectivity flag every store checks.

    Connecting retries with capped exponential backoff for a bounded number
    of attempts. Once the attempts are exhausted the connection stays
    degraded until the process restarts.
    """

    def __init__(
        self,
        client: Optional[redis.Redis] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.client = client or redis.Redis.from_url(
            self.settings.redis_url,
            max_connections=self.settings.redis_max_connections,
            socket_timeout=self.settings.redis_socket_timeout,
            decode_responses=True,
        )
        self.connected = False
        self.exhausted = False
        self.backoff = ExponentialBackoff(
            cap=self.settings.redis_backoff_cap_seconds,
            base=self.settings.redis_backoff_base_seconds,
        )
        self._reconnect_task: Optional[asyncio.Task] = None

    @property
    def is_connected(self) -> bool:
        return self.connected

    async def connect(self) -> bool:
        if self.exhausted:
            return False

        max_attempts = self.settings.redis_reconnect_max_attempts

        for attempt in range(1, max_attempts + 1):
            try:
                await self.client.ping()
                self.connected = True
                logger.info("Redis connected")
                return True
            except (RedisError, OSError) as e:
                self.connected = False
                if attempt == max_attempts:
                    break

                delay = self.backoff.compute(attempt)
                logger.warning(
                    f"Redis connection attempt {attempt}/{max_attempts} failed: {e}; "
                    f"retrying in {delay:.2f}s"
                )
                await asyncio.sleep(delay)

        self.exhausted = True
        logger.error(
            f"Redis unreachable after {max_attempts} attempts, "
            "continuing without persistence"
        )
        return False

    def mark_unavailable(self, error: Exception) -> None:
        """Flip the connectivity flag and start reconnecting in the background."""
        if not self.connected:
            return

        self.connected = False
        logger.error(f"Redis connection lost: {error}")

        if self.exhausted:
            return
        if self._reconnect_task and not self._reconnect_task.done():
            return

        self._reconnect_task = asyncio.create_task(self.connect())

    async def ping(self) -> bool:
        if not self.connected:
            return False

        try:
            return bool(await self.client.ping())
        except (RedisError, OSError):
            return False

    async def close(self):
        if self._reconnect_task and not self._reconnect_task.done():
            self._reconnect_task.cancel()
            await asyncio.gather(self._reconnect_task, return_exceptions=True)

        await self.client.aclose()
        self.connected = False


_connection: Optional[RedisConnection] = None


def get_redis_connection() -> RedisConnection:
    global _connection

    if _connection is None:
        _connection = RedisConnection()

    return _connection


async def close_redis_connection():
    global _connection
    if _connection:
        await _connection.close()
        _connection = None
