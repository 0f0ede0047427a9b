from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from gateway.models.alert import Alert
from gateway.models.command import CommandResult, DeviceCommand
from gateway.models.device import DeviceRecord, LiveDeviceView
from gateway.models.log import LogEntry
from gateway.services.command_publisher import (
    CommandPublisher,
    encode_command,
    get_command_publisher,
)
from gateway.services.device_registry import DeviceRegistry, get_device_registry
from gateway.storage.gateway import PersistenceGateway, get_persistence_gateway

router = APIRouter()


@router.get("", response_model=list[DeviceRecord])
async def list_devices(gateway: PersistenceGateway = Depends(get_persistence_gateway)):
    gateway.ensure_available()
    return await gateway.devices.get_all_devices()


@router.get("/live", response_model=list[LiveDeviceView])
async def list_live_devices(registry: DeviceRegistry = Depends(get_device_registry)):
    return [
        LiveDeviceView(
            client_id=device.client_id,
            connected_at=device.connected_at,
            last_seen=device.last_seen,
            message_count=device.message_count,
            status=device.status,
            recent_message_count=len(registry.recent_messages(device.client_id)),
        )
        for device in registry.snapshot()
    ]


@router.get("/{device_id}", response_model=DeviceRecord)
async def get_device(
    device_id: str, gateway: PersistenceGateway = Depends(get_persistence_gateway)
):
    gateway.ensure_available()
    device = await gateway.devices.get_device(device_id)
    if device is None:
        raise KeyError(f"Device {device_id} not found")
    return device


@router.delete("/{device_id}")
async def delete_device(
    device_id: str, gateway: PersistenceGateway = Depends(get_persistence_gateway)
):
    gateway.ensure_available()
    if not await gateway.devices.delete_device(device_id):
        raise KeyError(f"Device {device_id} not found")
    return {"deleted": device_id}


@router.get("/{device_id}/alerts", response_model=list[Alert])
async def get_device_alerts(
    device_id: str,
    limit: int = 50,
    gateway: PersistenceGateway = Depends(get_persistence_gateway),
):
    gateway.ensure_available()
    return await gateway.alerts.get_device_alerts(device_id, limit)


@router.get("/{device_id}/logs", response_model=list[LogEntry])
async def get_device_logs(
    device_id: str,
    limit: int = 100,
    gateway: PersistenceGateway = Depends(get_persistence_gateway),
):
    gateway.ensure_available()
    return await gateway.logs.get_device_logs(device_id, limit)


@router.post("/{device_id}/command", response_model=CommandResult)
async def send_command(
    device_id: str,
    command: DeviceCommand,
    publisher: CommandPublisher = Depends(get_command_publisher),
    gateway: PersistenceGateway = Depends(get_persistence_gateway),
):
    if not command.topic:
        raise ValueError("Topic is required")

    payload = encode_command(command.data)
    await publisher.publish(command.topic, payload, command.qos, command.retain)

    now = datetime.now(timezone.utc)
    await gateway.logs.store_log(
        LogEntry(
            device_id=device_id,
            message="Command sent via web interface",
            topic=command.topic,
            data={
                "command": "web_send",
                "payload": payload,
                "qos": command.qos,
                "retain": command.retain,
            },
            timestamp=now,
        )
    )

    return CommandResult(
        device_id=device_id,
        topic=command.topic,
        payload=payload,
        qos=command.qos,
        retain=command.retain,
        timestamp=now,
    )
