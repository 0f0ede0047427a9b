from datetime import datetime
from typing import Optional

from gateway.models.base import CamelModel


class Subscription(CamelModel):
    client_id: str
    topic: str
    qos: int = 0
    subscribed_at: Optional[datetime] = None


class TopicStat(CamelModel):
    topic: str
    message_count: int = 0
    last_message: Optional[datetime] = None


class ActiveTopic(CamelModel):
    name: str
    type: str
    subscribers: int = 0
    message_count: int = 0
    last_message: Optional[datetime] = None
