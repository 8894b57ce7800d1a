"""Realtime delivery transports for notification events."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from core import settings
from services.redis_client import get_redis_client

RECEIVED_NOTIFICATION_EVENT = "receivedNotification"
NEW_MESSAGE_EVENT = "newMessageReceived"
UNREAD_MESSAGES_EVENT = "newMessagesCounterUpdated"


@runtime_checkable
class NotificationTransport(Protocol):
    async def publish(self, user_id: str, event: str, payload: dict[str, Any]) -> None: ...


@runtime_checkable
class SupportsPublish(Protocol):
    async def publish(self, channel: str, message: str) -> int: ...


class RedisNotificationTransport:
    """Publishes events on a per-user Redis pub/sub channel.

    Socket gateways subscribe to ``<prefix>:<user_id>`` and forward the
    JSON frames to the connected clients of that user.
    """

    def __init__(self, redis_client: SupportsPublish, channel_prefix: str) -> None:
        self.redis = redis_client
        self.channel_prefix = channel_prefix

    def channel_for(self, user_id: str) -> str:
        return f"{self.channel_prefix}:{user_id}"

    async def publish(self, user_id: str, event: str, payload: dict[str, Any]) -> None:
        message = json.dumps({"event": event, "data": payload}, default=str)
        await self.redis.publish(self.channel_for(user_id), message)


@dataclass(frozen=True, slots=True)
class PublishedEvent:
    user_id: str
    event: str
    payload: dict[str, Any]


@dataclass(slots=True)
class InMemoryNotificationTransport:
    """Collects published events; used by tests and local tooling."""

    events: list[PublishedEvent] = field(default_factory=list)

    async def publish(self, user_id: str, event: str, payload: dict[str, Any]) -> None:
        self.events.append(PublishedEvent(user_id=user_id, event=event, payload=payload))

    def for_user(self, user_id: str) -> list[PublishedEvent]:
        return [event for event in self.events if event.user_id == user_id]


_cached_transport: NotificationTransport | None = None


def get_notification_transport() -> NotificationTransport:
    """Singleton accessor for the configured realtime transport."""
    global _cached_transport
    if _cached_transport is None:
        _cached_transport = RedisNotificationTransport(
            get_redis_client(),
            channel_prefix=settings.notifications_channel_prefix,
        )
    return _cached_transport


def set_notification_transport(transport: NotificationTransport | None) -> None:
    """Override the cached transport (primarily for tests)."""
    global _cached_transport
    _cached_transport = transport
