from typing import Optional

from fastapi import APIRouter, Depends

from gateway.models.log import LogEntry, LogLevel
from gateway.storage.gateway import PersistenceGateway, get_persistence_gateway

router = APIRouter()


@router.get("", response_model=list[LogEntry])
async def list_logs(
    device_id: Optional[str] = None,
    level: Optional[LogLevel] = None,
    limit: int = 100,
    gateway: PersistenceGateway = Depends(get_persistence_gateway),
):
    gateway.ensure_available()
    if device_id:
        return await gateway.logs.get_device_logs(device_id, limit, level)
    return await gateway.logs.get_all_logs(limit, level)
