import asyncio
import logging
from collections import deque
from dataclasses import replace
from datetime import datetime
from typing import Optional

from gateway.config.settings import Settings, get_settings
from gateway.models.device import DeviceStatus, LiveDevice, RecentMessage

logger = logging.getLogger(__name__)


def is_device_client(client_id: str) -> bool:
    return client_id.startswith("iot-") or "device" in client_id


class DeviceRegistry:
    """Live-session state for connected devices.

    Entries exist only while a device client is connected; the persisted
    device catalog outlives them. Every mutation is a plain dict operation
    and completes before the caller reaches its first await.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self._devices: dict[str, LiveDevice] = {}
        self._messages: dict[str, deque] = {}

    def on_connect(self, client_id: str, now: datetime) -> Optional[LiveDevice]:
        if not is_device_client(client_id):
            return None

        device = LiveDevice(client_id=client_id, connected_at=now, last_seen=now)
        self._devices[client_id] = device
        logger.info(f"IoT device registered: {client_id}")
        return replace(device)

    def on_disconnect(self, client_id: str, now: datetime) -> Optional[LiveDevice]:
        device = self._devices.pop(client_id, None)
        if device is None:
            return None

        device.status = DeviceStatus.OFFLINE
        device.last_seen = now
        logger.info(
            f"IoT device disconnected: {client_id} (messages: {device.message_count})"
        )
        return device

    def on_message(self, client_id: str, now: datetime) -> Optional[LiveDevice]:
        device = self._devices.get(client_id)
        if device is None:
            return None

        device.message_count += 1
        device.last_seen = now
        return replace(device)

    def record_message(self, device_id: str, message: RecentMessage) -> None:
        buffer = self._messages.get(device_id)
        if buffer is None:
            buffer = deque(maxlen=self.settings.recent_messages_per_device)
            self._messages[device_id] = buffer
        buffer.append(message)

    def recent_messages(self, device_id: str) -> list[RecentMessage]:
        return list(self._messages.get(device_id, ()))

    def get(self, client_id: str) -> Optional[LiveDevice]:
        device = self._devices.get(client_id)
        return replace(device) if device else None

    def snapshot(self) -> list[LiveDevice]:
        return [replace(device) for device in self._devices.values()]

    def __len__(self) -> int:
        return len(self._devices)

    def __contains__(self, client_id: str) -> bool:
        return client_id in self._devices

    def log_statistics(self) -> None:
        if not self._devices:
            return

        logger.info(f"Connected IoT devices: {len(self._devices)}")
        for device in self._devices.values():
            logger.info(
                f"  {device.client_id}: {device.message_count} messages, "
                f"connected since {device.connected_at.isoformat()}"
            )

    async def report_statistics(self, interval: Optional[float] = None):
        interval = interval or self.settings.device_statistics_interval_seconds

        while True:
            await asyncio.sleep(interval)
            self.log_statistics()


_registry: Optional[DeviceRegistry] = None


def get_device_registry() -> DeviceRegistry:
    global _registry

    if _registry is None:
        _registry = DeviceRegistry()

    return _registry
