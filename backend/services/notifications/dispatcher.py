"""Notification creation, retraction and realtime signalling."""

from __future__ import annotations

import logging
from typing import Any, cast

from sqlalchemy import delete, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import ColumnElement

from models import Notification, User

from .transport import (
    RECEIVED_NOTIFICATION_EVENT,
    NotificationTransport,
    get_notification_transport,
)

MAX_NOTIFICATION_TEXT_LENGTH = 140
logger = logging.getLogger(__name__)


def _eq(column: Any, value: Any) -> ColumnElement[bool]:
    return cast(ColumnElement[bool], column == value)


async def signal(
    user_id: str,
    event: str,
    payload: dict[str, Any],
    *,
    transport: NotificationTransport | None = None,
) -> bool:
    """Push a realtime event to a user. Delivery failures are logged, never raised."""
    try:
        active_transport = transport or get_notification_transport()
        await active_transport.publish(user_id, event, payload)
    except Exception as exc:
        logger.warning(
            "Realtime delivery failed",
            extra={"user_id": user_id, "event": event},
            exc_info=exc,
        )
        return False
    return True


async def dispatch(
    session: AsyncSession,
    *,
    kind: str,
    recipient_id: str,
    actor_id: str,
    post_id: int | None = None,
    comment_id: int | None = None,
    text: str | None = None,
    transport: NotificationTransport | None = None,
) -> Notification:
    """Persist a notification for ``recipient_id`` and signal it in realtime.

    The record is written in its own session on the caller's bind, so the
    caller's unit of work is never rolled back by a failure here. Storage
    errors propagate; realtime errors are swallowed by :func:`signal`.
    """
    excerpt = text[:MAX_NOTIFICATION_TEXT_LENGTH] if text else None
    async with AsyncSession(bind=session.bind, expire_on_commit=False) as own_session:
        notification = Notification(
            kind=kind,
            recipient_id=recipient_id,
            actor_id=actor_id,
            post_id=post_id,
            comment_id=comment_id,
            text=excerpt,
        )
        own_session.add(notification)
        await own_session.execute(
            update(User)
            .where(_eq(User.id, recipient_id))
            .values(unread_notification=True)
        )
        await own_session.commit()
        await own_session.refresh(notification)

    await signal(
        recipient_id,
        RECEIVED_NOTIFICATION_EVENT,
        {
            "id": notification.id,
            "kind": kind,
            "actorId": actor_id,
            "postId": post_id,
            "commentId": comment_id,
        },
        transport=transport,
    )
    return notification


async def dispatch_quietly(
    session: AsyncSession,
    **kwargs: Any,
) -> Notification | None:
    """Run :func:`dispatch` for a side effect whose failure must not fail the caller."""
    try:
        return await dispatch(session, **kwargs)
    except SQLAlchemyError as exc:
        logger.error(
            "Failed to create notification",
            extra={
                "kind": kwargs.get("kind"),
                "recipient_id": kwargs.get("recipient_id"),
            },
            exc_info=exc,
        )
        return None


async def retract(
    session: AsyncSession,
    *,
    kind: str,
    recipient_id: str | None = None,
    actor_id: str | None = None,
    post_id: int | None = None,
    comment_id: int | None = None,
) -> int:
    """Delete notifications raised by an entity that no longer exists.

    Runs inside the caller's transaction and returns how many rows matched;
    zero matches is not an error.
    """
    conditions = [_eq(Notification.kind, kind)]
    if recipient_id is not None:
        conditions.append(_eq(Notification.recipient_id, recipient_id))
    if actor_id is not None:
        conditions.append(_eq(Notification.actor_id, actor_id))
    if post_id is not None:
        conditions.append(_eq(Notification.post_id, post_id))
    if comment_id is not None:
        conditions.append(_eq(Notification.comment_id, comment_id))
    if len(conditions) == 1:
        raise ValueError("retract requires at least one matching field besides kind")

    result = await session.execute(delete(Notification).where(*conditions))
    return int(getattr(result, "rowcount", 0) or 0)
