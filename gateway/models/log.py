from datetime import datetime
from enum import Enum
from typing import Any

from gateway.models.base import CamelModel


class LogLevel(str, Enum):
    INFO = "info"
    WARN = "warn"
    ERROR = "error"
    DEBUG = "debug"


class LogEntry(CamelModel):
    device_id: str = ""
    level: LogLevel = LogLevel.INFO
    message: str = ""
    topic: str = ""
    data: Any = None
    timestamp: datetime
