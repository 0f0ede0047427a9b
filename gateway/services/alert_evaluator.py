import logging
import operator
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from gateway.models.alert import Alert, AlertType
from gateway.models.payloads import SensorPayload, coerce_float
from gateway.storage.gateway import PersistenceGateway, get_persistence_gateway

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ThresholdRule:
    sensor: str
    alert_type: AlertType
    compare: Callable[[float, float], bool]
    threshold: float
    label: str
    unit: str

    def message(self, value: float) -> str:
        return f"{self.label} {self.sensor} alert: {value}{self.unit}"


RULES = (
    ThresholdRule("temperature", AlertType.TEMPERATURE_HIGH, operator.gt, 30, "High", "°C"),
    ThresholdRule("temperature", AlertType.TEMPERATURE_LOW, operator.lt, -10, "Low", "°C"),
    ThresholdRule("humidity", AlertType.HUMIDITY_HIGH, operator.gt, 80, "High", "%"),
    ThresholdRule("humidity", AlertType.HUMIDITY_LOW, operator.lt, 20, "Low", "%"),
)


class AlertEvaluator:
    def __init__(self, gateway: Optional[PersistenceGateway] = None, rules=RULES):
        self.gateway = gateway or get_persistence_gateway()
        self.rules = rules

    def evaluate(self, payload: SensorPayload, now: datetime) -> list[Alert]:
        alerts = []

        for rule in self.rules:
            sensor = payload.sensors.get(rule.sensor)
            value = coerce_float(sensor.value) if sensor else None
            if value is None or not rule.compare(value, rule.threshold):
                continue

            alerts.append(
                Alert(
                    device_id=payload.device_id,
                    type=rule.alert_type,
                    message=rule.message(value),
                    value=value,
                    threshold=rule.threshold,
                    timestamp=now,
                )
            )

        return alerts

    async def persist(self, alerts: list[Alert]) -> int:
        stored = 0

        for alert in alerts:
            logger.warning(f"ALERT: {alert.message} (device: {alert.device_id})")
            if await self.gateway.alerts.store_alert(alert):
                stored += 1

        return stored


_evaluator: Optional[AlertEvaluator] = None


def get_alert_evaluator() -> AlertEvaluator:
    global _evaluator

    if _evaluator is None:
        _evaluator = AlertEvaluator()

    return _evaluator
