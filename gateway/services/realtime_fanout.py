import asyncio
import logging
from typing import Optional

from starlette.websockets import WebSocket, WebSocketState

from gateway.config.settings import Settings, get_settings
from gateway.models.telemetry import FanoutEnvelope

logger = logging.getLogger(__name__)


class RealtimeFanout:
    """Pushes derived events to every live WebSocket subscriber.

    There is no buffering: a subscriber that is closed, errors, or does not
    accept a message within the send timeout is evicted.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.subscribers: set[WebSocket] = set()

    def add(self, subscriber: WebSocket) -> None:
        self.subscribers.add(subscriber)
        logger.info(f"Real-time subscriber connected ({len(self.subscribers)} total)")

    def remove(self, subscriber: WebSocket) -> None:
        if subscriber in self.subscribers:
            self.subscribers.discard(subscriber)
            logger.info(f"Real-time subscriber disconnected ({len(self.subscribers)} total)")

    def __len__(self) -> int:
        return len(self.subscribers)

    async def broadcast(self, envelope: FanoutEnvelope) -> int:
        message = envelope.model_dump_json(by_alias=True)
        delivered = 0

        for subscriber in list(self.subscribers):
            if subscriber.client_state != WebSocketState.CONNECTED:
                self.remove(subscriber)
                continue

            try:
                await asyncio.wait_for(
                    subscriber.send_text(message),
                    timeout=self.settings.fanout_send_timeout_seconds,
                )
                delivered += 1
            except Exception as e:
                logger.error(f"Error sending real-time message, dropping subscriber: {e}")
                self.remove(subscriber)

        return delivered


_fanout: Optional[RealtimeFanout] = None


def get_realtime_fanout() -> RealtimeFanout:
    global _fanout

    if _fanout is None:
        _fanout = RealtimeFanout()

    return _fanout
