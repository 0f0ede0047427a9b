import asyncio
from datetime import datetime, timedelta, timezone

import fakeredis
import pytest
import pytest_asyncio
from starlette.websockets import WebSocketState

from gateway.config.settings import Settings
from gateway.core.redis_client import RedisConnection
from gateway.core.work_queue import KeyedWorkQueue
from gateway.services.alert_evaluator import AlertEvaluator
from gateway.services.device_registry import DeviceRegistry
from gateway.services.realtime_fanout import RealtimeFanout
from gateway.services.telemetry_router import TelemetryRouter
from gateway.storage.gateway import PersistenceGateway

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class TickingClock:
    """Clock that advances one millisecond per reading."""

    def __init__(self, start: datetime = NOW):
        self.current = start

    def __call__(self) -> datetime:
        self.current += timedelta(milliseconds=1)
        return self.current


class FakeSubscriber:
    def __init__(self, state=WebSocketState.CONNECTED, fail=False, delay=0.0):
        self.client_state = state
        self.fail = fail
        self.delay = delay
        self.sent = []

    async def send_text(self, message: str):
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(message)


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        redis_reconnect_max_attempts=2,
        redis_backoff_base_seconds=0.001,
        redis_backoff_cap_seconds=0.002,
        fanout_send_timeout_seconds=0.05,
        work_queue_worker_count=4,
    )


@pytest_asyncio.fixture
async def redis_client():
    client = fakeredis.FakeAsyncRedis(server=fakeredis.FakeServer(), decode_responses=True)
    yield client
    await client.aclose()


@pytest_asyncio.fixture
async def connection(redis_client, settings):
    connection = RedisConnection(client=redis_client, settings=settings)
    await connection.connect()
    return connection


@pytest.fixture
def gateway(connection, settings):
    return PersistenceGateway(connection, settings)


@pytest_asyncio.fixture
async def work_queue(settings):
    queue = KeyedWorkQueue(settings=settings)
    await queue.start()
    yield queue
    await queue.stop()


@pytest.fixture
def registry(settings):
    return DeviceRegistry(settings)


@pytest.fixture
def fanout(settings):
    return RealtimeFanout(settings)


@pytest.fixture
def router(registry, gateway, fanout, work_queue):
    return TelemetryRouter(
        registry=registry,
        gateway=gateway,
        alert_evaluator=AlertEvaluator(gateway),
        fanout=fanout,
        work_queue=work_queue,
        clock=TickingClock(),
    )

