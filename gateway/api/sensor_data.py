from fastapi import APIRouter, Depends

from gateway.models.telemetry import SensorReading
from gateway.storage.gateway import PersistenceGateway, get_persistence_gateway

router = APIRouter()


@router.get("/{device_id}", response_model=SensorReading)
async def get_latest_reading(
    device_id: str, gateway: PersistenceGateway = Depends(get_persistence_gateway)
):
    gateway.ensure_available()
    reading = await gateway.sensors.get_latest_sensor_reading(device_id)
    if reading is None:
        raise KeyError(f"No sensor data for device {device_id}")
    return reading


@router.get("/{device_id}/history", response_model=list[SensorReading])
async def get_reading_history(
    device_id: str,
    limit: int = 100,
    gateway: PersistenceGateway = Depends(get_persistence_gateway),
):
    gateway.ensure_available()
    return await gateway.sensors.get_sensor_history(device_id, limit)
