"""Normalized notifications consumed from the broker engine."""

from typing import Optional, Union

from pydantic import BaseModel, Field


class ClientConnected(BaseModel):
    client_id: str


class ClientDisconnected(BaseModel):
    client_id: str


class MessagePublished(BaseModel):
    client_id: Optional[str] = None
    topic: str
    payload: bytes = b""
    qos: int = 0
    retain: bool = False


class SubscriptionRequest(BaseModel):
    topic: str
    qos: int = 0


class ClientSubscribed(BaseModel):
    client_id: str
    subscriptions: list[SubscriptionRequest] = Field(default_factory=list)


class ClientUnsubscribed(BaseModel):
    client_id: str
    topics: list[str] = Field(default_factory=list)


BrokerEvent = Union[
    ClientConnected,
    ClientDisconnected,
    MessagePublished,
    ClientSubscribed,
    ClientUnsubscribed,
]
