from datetime import datetime
from enum import Enum

from gateway.models.base import CamelModel


class AlertType(str, Enum):
    TEMPERATURE_HIGH = "temperature_high"
    TEMPERATURE_LOW = "temperature_low"
    HUMIDITY_HIGH = "humidity_high"
    HUMIDITY_LOW = "humidity_low"


class Alert(CamelModel):
    device_id: str
    type: AlertType
    message: str
    value: float
    threshold: float
    timestamp: datetime
