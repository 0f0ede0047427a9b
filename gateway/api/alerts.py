from fastapi import APIRouter, Depends

from gateway.models.alert import Alert
from gateway.storage.gateway import PersistenceGateway, get_persistence_gateway

router = APIRouter()


@router.get("", response_model=list[Alert])
async def list_alerts(
    limit: int = 100, gateway: PersistenceGateway = Depends(get_persistence_gateway)
):
    gateway.ensure_available()
    return await gateway.alerts.get_all_alerts(limit)
