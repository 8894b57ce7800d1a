"""Notification listing and read-state operations."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, cast

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased
from sqlalchemy.sql import ColumnElement

from models import Notification, User
from services.pagination import NOTIFICATIONS_PAGE_SIZE, is_last_page, page_cursor


def _eq(column: Any, value: Any) -> ColumnElement[bool]:
    return cast(ColumnElement[bool], column == value)


def _desc(column: Any) -> Any:
    return cast(Any, column).desc()


@dataclass(slots=True)
class NotificationPage:
    items: list[tuple[Notification, User]]
    unread_count: int
    is_last_page: bool


async def count_unread(session: AsyncSession, *, user_id: str) -> int:
    result = await session.execute(
        select(func.count())
        .select_from(Notification)
        .where(
            _eq(Notification.recipient_id, user_id),
            _eq(Notification.is_read, False),
        )
    )
    return int(result.scalar_one() or 0)


async def list_notifications(
    session: AsyncSession,
    *,
    user_id: str,
    page: int,
    page_size: int = NOTIFICATIONS_PAGE_SIZE,
) -> NotificationPage:
    cursor = page_cursor(page, page_size)
    actor = aliased(User)
    result = await session.execute(
        select(cast(Any, Notification), cast(Any, actor))
        .join(actor, _eq(actor.id, Notification.actor_id))
        .where(_eq(Notification.recipient_id, user_id))
        .order_by(
            _desc(cast(Any, Notification.created_at)),
            _desc(cast(Any, Notification.id)),
        )
        .offset(cursor.skip)
        .limit(cursor.limit)
    )
    items = [(notification, actor_user) for notification, actor_user in result.all()]
    return NotificationPage(
        items=items,
        unread_count=await count_unread(session, user_id=user_id),
        is_last_page=is_last_page(len(items), page_size),
    )


async def mark_all_read(session: AsyncSession, *, user: User) -> int:
    """Mark every notification of ``user`` read and clear the unread flag."""
    user_id = user.id
    result = await session.execute(
        update(Notification)
        .where(
            _eq(Notification.recipient_id, user_id),
            _eq(Notification.is_read, False),
        )
        .values(is_read=True)
    )
    user.unread_notification = False
    session.add(user)
    await session.commit()
    return int(getattr(result, "rowcount", 0) or 0)
