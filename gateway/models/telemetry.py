from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from gateway.models.base import CamelModel


class SensorValue(BaseModel):
    value: Any = None
    unit: Optional[Any] = None
    status: Optional[Any] = None


class SensorReading(CamelModel):
    device_id: str
    timestamp: datetime
    sensors: dict[str, SensorValue] = Field(default_factory=dict)
    data: Any = None


class RealtimeSensorData(CamelModel):
    device_id: str
    temperature: Any = None
    humidity: Any = None
    timestamp: Any = None


class FanoutEnvelope(CamelModel):
    type: str = "sensor_data"
    device_id: str
    data: RealtimeSensorData
    timestamp: datetime
