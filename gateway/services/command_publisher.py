import json
import logging
from typing import Any, Awaitable, Callable, Optional

logger = logging.getLogger(__name__)

PublishFunc = Callable[[str, bytes, int, bool], Awaitable[Any]]


class BrokerUnavailableError(Exception):
    pass


def encode_command(data: Any) -> str:
    if isinstance(data, (dict, list)):
        return json.dumps(data)
    if data is None:
        return ""
    return str(data)


class CommandPublisher:
    """Sends commands to devices through the broker engine, once one is attached."""

    def __init__(self, publish: Optional[PublishFunc] = None):
        self._publish = publish

    def attach(self, publish: PublishFunc) -> None:
        self._publish = publish
        logger.info("Broker publisher attached")

    def detach(self) -> None:
        self._publish = None
        logger.info("Broker publisher detached")

    @property
    def is_attached(self) -> bool:
        return self._publish is not None

    async def publish(self, topic: str, payload: str, qos: int = 0, retain: bool = False):
        if self._publish is None:
            raise BrokerUnavailableError("Broker is not connected")

        await self._publish(topic, payload.encode(), qos, retain)
        logger.info(f"Command sent to {topic} (qos={qos}, retain={retain}): {payload}")


_publisher: Optional[CommandPublisher] = None


def get_command_publisher() -> CommandPublisher:
    global _publisher

    if _publisher is None:
        _publisher = CommandPublisher()

    return _publisher
