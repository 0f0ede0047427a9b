import logging
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from gateway.core.topics import (
    TopicRoute,
    extract_device_id,
    is_device_topic,
    route_topic,
)
from gateway.core.work_queue import KeyedWorkQueue, get_work_queue
from gateway.models.device import DeviceRecord, DeviceStatus, RecentMessage
from gateway.models.events import (
    BrokerEvent,
    ClientConnected,
    ClientDisconnected,
    ClientSubscribed,
    ClientUnsubscribed,
    MessagePublished,
    SubscriptionRequest,
)
from gateway.models.log import LogEntry, LogLevel
from gateway.models.payloads import (
    HeartbeatPayload,
    RegistrationPayload,
    SensorPayload,
    StatusPayload,
    UntypedPayload,
    coerce_float,
    decode_payload,
    parse_payload,
)
from gateway.models.subscription import Subscription
from gateway.models.telemetry import FanoutEnvelope, RealtimeSensorData, SensorReading
from gateway.services.alert_evaluator import AlertEvaluator, get_alert_evaluator
from gateway.services.device_registry import DeviceRegistry, get_device_registry
from gateway.services.realtime_fanout import RealtimeFanout, get_realtime_fanout
from gateway.storage.gateway import PersistenceGateway, get_persistence_gateway

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TelemetryRouter:
    """Turns broker notifications into registry, store and fan-out updates.

    Each handler finishes its in-memory work (registry counters, ring buffer,
    alert evaluation) before its first await. Store writes are handed to the
    work queue and never awaited here, so the persisted view may lag the
    in-memory one.
    """

    def __init__(
        self,
        registry: Optional[DeviceRegistry] = None,
        gateway: Optional[PersistenceGateway] = None,
        alert_evaluator: Optional[AlertEvaluator] = None,
        fanout: Optional[RealtimeFanout] = None,
        work_queue: Optional[KeyedWorkQueue] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.registry = registry if registry is not None else get_device_registry()
        self.gateway = gateway or get_persistence_gateway()
        self.alert_evaluator = alert_evaluator or AlertEvaluator(self.gateway)
        self.fanout = fanout if fanout is not None else get_realtime_fanout()
        self.work_queue = work_queue or get_work_queue()
        self.clock = clock

        self._route_handlers = {
            TopicRoute.REGISTER: self._handle_registration,
            TopicRoute.STATUS: self._handle_status,
            TopicRoute.HEARTBEAT: self._handle_heartbeat,
            TopicRoute.SENSOR_DATA: self._handle_sensor_data,
            TopicRoute.SENSOR: self._handle_sensor_data,
        }

    async def dispatch(self, event: BrokerEvent) -> None:
        if isinstance(event, MessagePublished):
            await self.on_message_published(
                event.client_id, event.topic, event.payload, event.qos, event.retain
            )
        elif isinstance(event, ClientConnected):
            await self.on_client_connected(event.client_id)
        elif isinstance(event, ClientDisconnected):
            await self.on_client_disconnected(event.client_id)
        elif isinstance(event, ClientSubscribed):
            await self.on_client_subscribed(event.client_id, event.subscriptions)
        elif isinstance(event, ClientUnsubscribed):
            await self.on_client_unsubscribed(event.client_id, event.topics)
        else:
            raise ValueError(f"Unsupported broker event: {type(event).__name__}")

    def _persist(self, key: str, func, *args) -> None:
        self.work_queue.submit(key, func, *args)

    def _log(self, key: str, entry: LogEntry) -> None:
        self._persist(key, self.gateway.logs.store_log, entry)

    async def on_client_connected(self, client_id: str) -> None:
        now = self.clock()
        logger.info(f"Client connected: {client_id}")

        device = self.registry.on_connect(client_id, now)

        self._log(
            client_id,
            LogEntry(
                device_id=client_id,
                message=f"Client connected: {client_id}",
                topic="system/connection",
                data={"clientId": client_id, "timestamp": now.isoformat()},
                timestamp=now,
            ),
        )
        if device:
            self._persist(client_id, self.gateway.devices.store_device_connection, client_id, now)

    async def on_client_disconnected(self, client_id: str) -> None:
        now = self.clock()
        logger.info(f"Client disconnected: {client_id}")

        device = self.registry.on_disconnect(client_id, now)

        self._log(
            client_id,
            LogEntry(
                device_id=client_id,
                message=f"Client disconnected: {client_id}",
                topic="system/disconnection",
                data={"clientId": client_id, "timestamp": now.isoformat()},
                timestamp=now,
            ),
        )
        if device:
            self._persist(
                client_id,
                self.gateway.devices.update_device_status,
                client_id,
                DeviceStatus.OFFLINE,
                now,
            )
        self._persist(client_id, self.gateway.subscriptions.remove_client_subscriptions, client_id)

    async def on_message_published(
        self,
        client_id: Optional[str],
        topic: str,
        payload: bytes,
        qos: int = 0,
        retain: bool = False,
    ) -> None:
        now = self.clock()

        if client_id is None:
            logger.warning(f"Message published without client context to topic: {topic}")
            self._log(
                "unknown",
                LogEntry(
                    device_id="unknown",
                    level=LogLevel.WARN,
                    message=f"Message published without client context to topic: {topic}",
                    topic=topic,
                    data={"payload": payload.decode("utf-8", errors="replace")},
                    timestamp=now,
                ),
            )
            return

        if not is_device_topic(topic):
            logger.info(
                f"Message from {client_id} to topic {topic!r}: "
                f"{payload.decode('utf-8', errors='replace')}"
            )
            return

        device_id = extract_device_id(topic)
        data = decode_payload(payload)

        if self.registry.on_message(client_id, now):
            self._persist(client_id, self.gateway.devices.increment_message_count, client_id)
            self._persist(
                client_id,
                self.gateway.devices.update_device_status,
                client_id,
                DeviceStatus.ONLINE,
                now,
            )

        if device_id:
            self.registry.record_message(
                device_id,
                RecentMessage(
                    device_id=device_id,
                    topic=topic,
                    timestamp=now,
                    data=data,
                    size=len(payload),
                ),
            )
            self._log(
                device_id,
                LogEntry(
                    device_id=device_id,
                    message=f"Message published to {topic}",
                    topic=topic,
                    data=data,
                    timestamp=now,
                ),
            )

        self._persist(topic, self.gateway.topics.store_topic_stats, topic, now)

        route = route_topic(topic)
        if device_id is None:
            logger.warning(f"Cannot extract device id from topic {topic} (client {client_id})")

        logger.info(
            f"IoT device data: device={device_id or 'unknown'} topic={topic} "
            f"route={route.value} size={len(payload)} qos={qos} retain={retain}"
        )

        parsed = parse_payload(route, data, fallback_device_id=device_id)
        handler = self._route_handlers.get(route)

        if handler is None:
            self._log_passthrough(route, topic, device_id)
        elif isinstance(parsed, UntypedPayload):
            logger.warning(f"Unrecognized {route.value} payload on {topic}: {parsed.error}")
        else:
            await handler(parsed, now)

    def _log_passthrough(self, route: TopicRoute, topic: str, device_id: Optional[str]) -> None:
        if route == TopicRoute.SENSOR_CONTROL:
            logger.info(f"Sensor control command for device {device_id}")
        elif route == TopicRoute.SENSOR_RESPONSE:
            logger.info(f"Sensor control response from device {device_id}")
        elif route == TopicRoute.ACTUATOR:
            logger.info(f"Actuator control on {topic}")
        else:
            logger.info(f"IoT device message on {topic}")

    async def _handle_registration(self, payload: RegistrationPayload, now: datetime) -> None:
        device = DeviceRecord(
            device_id=payload.device_id,
            device_type=payload.device_type,
            location=payload.location,
            firmware=payload.firmware,
            capabilities=payload.capabilities,
            status=payload.status,
            registered_at=now,
            last_seen=now,
            message_count=0,
        )
        self._persist(payload.device_id, self.gateway.devices.store_device, device)

    async def _handle_status(self, payload: StatusPayload, now: datetime) -> None:
        self._persist(
            payload.device_id,
            self.gateway.devices.update_device_status,
            payload.device_id,
            payload.status,
            now,
        )

    async def _handle_heartbeat(self, payload: HeartbeatPayload, now: datetime) -> None:
        self._persist(
            payload.device_id,
            self.gateway.devices.store_heartbeat,
            payload.device_id,
            payload.uptime,
            payload.memory,
            now,
        )

    async def _handle_sensor_data(self, payload: SensorPayload, now: datetime) -> None:
        reading = SensorReading(
            device_id=payload.device_id,
            timestamp=now,
            sensors=payload.sensors,
            data=payload.model_dump(mode="json", by_alias=True, exclude={"kind"}),
        )
        self._persist(payload.device_id, self.gateway.store_sensor_reading, reading)

        alerts = self.alert_evaluator.evaluate(payload, now)
        if alerts:
            self._persist(payload.device_id, self.alert_evaluator.persist, alerts)

        envelope = realtime_envelope(payload, now)
        if envelope:
            await self.fanout.broadcast(envelope)

    async def on_client_subscribed(
        self, client_id: str, subscriptions: list[SubscriptionRequest]
    ) -> None:
        now = self.clock()
        logger.info(
            f"Client {client_id} subscribed to topics: "
            f"{', '.join(s.topic for s in subscriptions)}"
        )

        for request in subscriptions:
            self._persist(
                client_id,
                self.gateway.subscriptions.store_subscription,
                Subscription(
                    client_id=client_id,
                    topic=request.topic,
                    qos=request.qos,
                    subscribed_at=now,
                ),
            )

        iot_topics = [s.topic for s in subscriptions if is_device_topic(s.topic)]
        if iot_topics:
            logger.info(f"IoT device {client_id} subscribed to IoT topics: {', '.join(iot_topics)}")

    async def on_client_unsubscribed(self, client_id: str, topics: list[str]) -> None:
        logger.info(f"Client {client_id} unsubscribed from topics: {', '.join(topics)}")

        for topic in topics:
            self._persist(
                client_id, self.gateway.subscriptions.remove_subscription, client_id, topic
            )


def _numeric_or_raw(value: Any) -> Any:
    number = coerce_float(value)
    return number if number is not None else value


def realtime_envelope(payload: SensorPayload, now: datetime) -> Optional[FanoutEnvelope]:
    """Compact dashboard event for a sensor payload carrying temperature or humidity."""
    temperature = payload.reading("temperature")
    humidity = payload.reading("humidity")
    if temperature is None and humidity is None:
        return None

    return FanoutEnvelope(
        device_id=payload.device_id,
        data=RealtimeSensorData(
            device_id=payload.device_id,
            temperature=_numeric_or_raw(temperature),
            humidity=_numeric_or_raw(humidity),
            timestamp=payload.timestamp if payload.timestamp is not None else now.isoformat(),
        ),
        timestamp=now,
    )


_router: Optional[TelemetryRouter] = None


def get_telemetry_router() -> TelemetryRouter:
    global _router

    if _router is None:
        _router = TelemetryRouter(alert_evaluator=get_alert_evaluator())

    return _router
