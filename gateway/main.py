import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse

from gateway.api import alerts, devices, logs, realtime, sensor_data, status, topics
from gateway.config.settings import get_settings
from gateway.core.auth import BrokerAuthenticator
from gateway.core.redis_client import close_redis_connection, get_redis_connection
from gateway.core.work_queue import KeyedWorkQueue, get_work_queue
from gateway.services.command_publisher import BrokerUnavailableError, get_command_publisher
from gateway.services.device_registry import DeviceRegistry, get_device_registry
from gateway.services.realtime_fanout import RealtimeFanout, get_realtime_fanout
from gateway.services.telemetry_router import get_telemetry_router
from gateway.storage.base import StoreUnavailableError
from gateway.storage.gateway import PersistenceGateway, get_persistence_gateway

logging.basicConfig(level=get_settings().log_level)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    connection = get_redis_connection()
    await connection.connect()

    work_queue = get_work_queue()
    await work_queue.start()

    # Broker engine adapters pick these up from the application state.
    app.state.telemetry_router = get_telemetry_router()
    app.state.broker_authenticator = BrokerAuthenticator()
    app.state.command_publisher = get_command_publisher()

    statistics = asyncio.create_task(get_device_registry().report_statistics())
    logger.info("Telemetry gateway started")
    yield

    statistics.cancel()
    await asyncio.gather(statistics, return_exceptions=True)
    await work_queue.stop()
    await close_redis_connection()
    logger.info("Telemetry gateway stopped")


app = FastAPI(title="Telemetry Gateway", version="1.0.0", lifespan=lifespan)

app.include_router(devices.router, prefix="/devices", tags=["devices"])
app.include_router(alerts.router, prefix="/alerts", tags=["alerts"])
app.include_router(logs.router, prefix="/logs", tags=["logs"])
app.include_router(topics.router, prefix="/topics", tags=["topics"])
app.include_router(sensor_data.router, prefix="/sensor-data", tags=["sensor-data"])
app.include_router(status.router, prefix="/status", tags=["status"])
app.include_router(realtime.router, prefix="/ws", tags=["realtime"])


@app.get("/health")
async def health_check(
    gateway: PersistenceGateway = Depends(get_persistence_gateway),
    registry: DeviceRegistry = Depends(get_device_registry),
    fanout: RealtimeFanout = Depends(get_realtime_fanout),
    work_queue: KeyedWorkQueue = Depends(get_work_queue),
):
    healthy = await gateway.is_healthy()
    body = {
        "status": "healthy" if healthy else "degraded",
        "service": "telemetry-gateway",
        "redis": "connected" if healthy else "disconnected",
        "reconnectExhausted": gateway.connection.exhausted,
        "liveDevices": len(registry),
        "realtimeSubscribers": len(fanout),
        "workQueueSize": work_queue.get_queue_size(),
        "droppedJobs": work_queue.dropped,
    }
    return JSONResponse(status_code=200 if healthy else 503, content=body)


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    return JSONResponse(status_code=400, content={"error": str(exc)})


@app.exception_handler(KeyError)
async def key_error_handler(request: Request, exc: KeyError):
    return JSONResponse(status_code=404, content={"error": exc.args[0] if exc.args else str(exc)})


@app.exception_handler(StoreUnavailableError)
async def store_unavailable_handler(request: Request, exc: StoreUnavailableError):
    return JSONResponse(status_code=503, content={"error": str(exc)})


@app.exception_handler(BrokerUnavailableError)
async def broker_unavailable_handler(request: Request, exc: BrokerUnavailableError):
    return JSONResponse(status_code=503, content={"error": str(exc)})
