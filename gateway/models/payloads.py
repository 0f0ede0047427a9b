"""Payload decoding and typed variants per topic category.

Decoding never raises: bytes that are not JSON come back as text. Parsing a
decoded payload into its typed variant degrades to ``UntypedPayload`` when the
data does not fit the expected shape.
"""

import json
from typing import Any, Literal, Optional, Union

from pydantic import ConfigDict, Field, ValidationError

from gateway.core.topics import TopicRoute
from gateway.models.base import CamelModel
from gateway.models.device import DeviceStatus
from gateway.models.telemetry import SensorValue


class _DevicePayload(CamelModel):
    model_config = ConfigDict(extra="allow")

    device_id: str = Field(min_length=1)
    timestamp: Optional[Any] = None


class RegistrationPayload(_DevicePayload):
    kind: Literal["registration"] = "registration"
    device_type: str = "unknown"
    location: str = "unknown"
    firmware: str = "unknown"
    capabilities: list[str] = Field(default_factory=list)
    status: DeviceStatus = DeviceStatus.ONLINE


class StatusPayload(_DevicePayload):
    kind: Literal["status"] = "status"
    status: DeviceStatus


class HeartbeatPayload(_DevicePayload):
    kind: Literal["heartbeat"] = "heartbeat"
    status: Optional[str] = None
    uptime: float = 0
    memory: dict[str, Any] = Field(default_factory=dict)


class SensorPayload(_DevicePayload):
    kind: Literal["sensor"] = "sensor"
    sensors: dict[str, SensorValue] = Field(default_factory=dict)

    def reading(self, name: str) -> Any:
        """Value of a sensor, preferring ``sensors.{name}.value`` over a top-level field."""
        sensor = self.sensors.get(name)
        if sensor is not None and sensor.value is not None:
            return sensor.value
        return (self.model_extra or {}).get(name)


class ControlPayload(CamelModel):
    model_config = ConfigDict(extra="allow")

    kind: Literal["control"] = "control"
    device_id: Optional[str] = None
    command: Optional[Any] = None


class UntypedPayload(CamelModel):
    kind: Literal["untyped"] = "untyped"
    data: Any = None
    error: Optional[str] = None


Payload = Union[
    RegistrationPayload,
    StatusPayload,
    HeartbeatPayload,
    SensorPayload,
    ControlPayload,
    UntypedPayload,
]

_ROUTE_MODELS = {
    TopicRoute.REGISTER: RegistrationPayload,
    TopicRoute.STATUS: StatusPayload,
    TopicRoute.HEARTBEAT: HeartbeatPayload,
    TopicRoute.SENSOR_DATA: SensorPayload,
    TopicRoute.SENSOR: SensorPayload,
    TopicRoute.SENSOR_CONTROL: ControlPayload,
    TopicRoute.SENSOR_RESPONSE: ControlPayload,
    TopicRoute.ACTUATOR: ControlPayload,
}


def decode_payload(payload: bytes) -> Any:
    text = payload.decode("utf-8", errors="replace")
    try:
        return json.loads(text)
    except ValueError:
        return text


def parse_payload(route: TopicRoute, data: Any, fallback_device_id: Optional[str] = None) -> Payload:
    model = _ROUTE_MODELS.get(route)
    if model is None:
        return UntypedPayload(data=data)
    if not isinstance(data, dict):
        return UntypedPayload(data=data, error="payload is not a JSON object")

    # Only the sensor-data grammar places the device id in the topic.
    if (
        route == TopicRoute.SENSOR_DATA
        and fallback_device_id
        and not (data.get("deviceId") or data.get("device_id"))
    ):
        data = {**data, "deviceId": fallback_device_id}

    try:
        return model.model_validate(data)
    except ValidationError as e:
        return UntypedPayload(data=data, error=str(e))


def coerce_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None

