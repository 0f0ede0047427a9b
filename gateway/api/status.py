from fastapi import APIRouter, Depends

from gateway.services.command_publisher import CommandPublisher, get_command_publisher
from gateway.services.device_registry import DeviceRegistry, get_device_registry
from gateway.services.realtime_fanout import RealtimeFanout, get_realtime_fanout
from gateway.storage.gateway import PersistenceGateway, get_persistence_gateway

router = APIRouter()


@router.get("")
async def get_status(
    gateway: PersistenceGateway = Depends(get_persistence_gateway),
    registry: DeviceRegistry = Depends(get_device_registry),
    fanout: RealtimeFanout = Depends(get_realtime_fanout),
    publisher: CommandPublisher = Depends(get_command_publisher),
):
    """Overview counts for the dashboard header."""
    gateway.ensure_available()

    return {
        "devices": {
            "registered": await gateway.devices.get_device_count(),
            "live": len(registry),
        },
        "alerts": await gateway.alerts.get_alert_count(),
        "logs": await gateway.logs.get_log_count(),
        "topics": len(await gateway.topics.get_topic_stats()),
        "realtimeSubscribers": len(fanout),
        "brokerAttached": publisher.is_attached,
    }
