from datetime import datetime
from typing import Any, Optional

from pydantic import Field

from gateway.models.base import CamelModel


class DeviceCommand(CamelModel):
    topic: Optional[str] = None
    data: Any = None
    qos: int = Field(default=0, ge=0, le=2)
    retain: bool = False


class CommandResult(CamelModel):
    success: bool = True
    device_id: str
    topic: str
    payload: str
    qos: int
    retain: bool
    timestamp: datetime
