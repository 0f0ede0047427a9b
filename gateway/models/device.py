from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import Field

from gateway.models.base import CamelModel


class DeviceStatus(str, Enum):
    ONLINE = "online"
    OFFLINE = "offline"


class DeviceRecord(CamelModel):
    device_id: str
    device_type: str = "unknown"
    location: str = "unknown"
    firmware: str = "unknown"
    capabilities: list[str] = Field(default_factory=list)
    status: DeviceStatus = DeviceStatus.OFFLINE
    registered_at: datetime
    last_seen: datetime
    message_count: int = Field(default=0, ge=0)
    uptime: float = 0
    memory_stats: dict[str, Any] = Field(default_factory=dict)
    last_sensor_data: dict[str, Any] = Field(default_factory=dict)


@dataclass
class LiveDevice:
    client_id: str
    connected_at: datetime
    last_seen: datetime
    message_count: int = 0
    status: DeviceStatus = DeviceStatus.ONLINE


@dataclass(frozen=True)
class RecentMessage:
    device_id: str
    topic: str
    timestamp: datetime
    data: Any
    size: int


class LiveDeviceView(CamelModel):
    client_id: str
    connected_at: datetime
    last_seen: datetime
    message_count: int
    status: DeviceStatus
    recent_message_count: Optional[int] = None
