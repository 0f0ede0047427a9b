import functools
import json
import logging
import secrets
import time
from typing import Any, Optional

from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError

from gateway.config.settings import Settings, get_settings
from gateway.core.redis_client import RedisConnection, get_redis_connection

logger = logging.getLogger(__name__)


class StoreUnavailableError(Exception):
    pass


def best_effort(default: Any = None):
    """Turn a store coroutine into a degrade-gracefully operation.

    When Redis is disconnected the call is skipped; Redis errors are logged.
    Both cases return ``default`` (called first when it is a factory such as
    ``list``) instead of raising.
    """

    def fallback():
        return default() if callable(default) else default

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(self, *args, **kwargs):
            if not self.connection.is_connected:
                return fallback()

            try:
                return await func(self, *args, **kwargs)
            except RedisConnectionError as e:
                logger.error(f"{type(self).__name__}.{func.__name__} failed: {e}")
                self.connection.mark_unavailable(e)
                return fallback()
            except RedisError as e:
                logger.error(f"{type(self).__name__}.{func.__name__} failed: {e}")
                return fallback()

        return wrapper

    return decorator


class RedisStore:
    def __init__(
        self,
        connection: Optional[RedisConnection] = None,
        settings: Optional[Settings] = None,
    ):
        self.connection = connection or get_redis_connection()
        self.settings = settings or get_settings()

    @property
    def redis(self):
        return self.connection.client


def new_entry_key(prefix: str) -> str:
    return f"{prefix}:{int(time.time() * 1000)}:{secrets.token_hex(5)}"


def to_field(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value)


def to_mapping(fields: dict) -> dict[str, str]:
    return {name: to_field(value) for name, value in fields.items()}


def load_json(raw: Optional[str], default: Any) -> Any:
    if not raw:
        return default
    try:
        return json.loads(raw)
    except ValueError:
        return raw
