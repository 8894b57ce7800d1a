"""Notification domain services."""

from .dispatcher import dispatch, dispatch_quietly, retract, signal
from .inbox import NotificationPage, count_unread, list_notifications, mark_all_read
from .transport import (
    NEW_MESSAGE_EVENT,
    RECEIVED_NOTIFICATION_EVENT,
    UNREAD_MESSAGES_EVENT,
    InMemoryNotificationTransport,
    NotificationTransport,
    PublishedEvent,
    RedisNotificationTransport,
    get_notification_transport,
    set_notification_transport,
)

__all__ = [
    "dispatch",
    "dispatch_quietly",
    "retract",
    "signal",
    "NotificationPage",
    "count_unread",
    "list_notifications",
    "mark_all_read",
    "NEW_MESSAGE_EVENT",
    "RECEIVED_NOTIFICATION_EVENT",
    "UNREAD_MESSAGES_EVENT",
    "InMemoryNotificationTransport",
    "NotificationTransport",
    "PublishedEvent",
    "RedisNotificationTransport",
    "get_notification_transport",
    "set_notification_transport",
]
