"""User blocks and the visibility rules derived from them."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, cast

from sqlalchemy import and_, delete, exists, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import ColumnElement

from core.errors import ValidationError
from db.errors import is_unique_violation
from models import Follow, Notification, User, UserBlock
from models.notification import KIND_FOLLOW

logger = logging.getLogger(__name__)


def _eq(column: Any, value: Any) -> ColumnElement[bool]:
    return cast(ColumnElement[bool], column == value)


def _between(
    left_column: Any,
    right_column: Any,
    first: Any,
    second: Any,
) -> ColumnElement[bool]:
    """Match a directed pair stored either way round."""
    return or_(
        and_(_eq(left_column, first), _eq(right_column, second)),
        and_(_eq(left_column, second), _eq(right_column, first)),
    )


def not_blocked_between(viewer_id: str, user_id_column: Any) -> ColumnElement[bool]:
    """SQL predicate hiding rows whose user and the viewer share a block."""
    shared_block = exists(
        select(UserBlock.id).where(
            _between(UserBlock.blocker_id, UserBlock.blocked_id, viewer_id, user_id_column)
        )
    )
    return cast(ColumnElement[bool], ~shared_block)


@dataclass(slots=True)
class BlockRelation:
    """How a viewer and another user stand towards each other."""

    viewer_blocked: bool
    blocked_viewer: bool

    @property
    def either_way(self) -> bool:
        return self.viewer_blocked or self.blocked_viewer


async def block_relation(
    session: AsyncSession,
    *,
    viewer_id: str,
    other_id: str,
) -> BlockRelation:
    if viewer_id == other_id:
        return BlockRelation(viewer_blocked=False, blocked_viewer=False)

    blockers = set(
        (
            await session.execute(
                select(UserBlock.blocker_id).where(
                    _between(UserBlock.blocker_id, UserBlock.blocked_id, viewer_id, other_id)
                )
            )
        ).scalars()
    )
    return BlockRelation(
        viewer_blocked=viewer_id in blockers,
        blocked_viewer=other_id in blockers,
    )


async def has_blocked(session: AsyncSession, *, blocker_id: str, user_id: str) -> bool:
    """Return True when ``blocker_id`` has ``user_id`` in its blocked list."""
    if blocker_id == user_id:
        return False
    found = await session.scalar(
        select(UserBlock.id).where(
            _eq(UserBlock.blocker_id, blocker_id),
            _eq(UserBlock.blocked_id, user_id),
        )
    )
    return found is not None


async def _sever_follows(session: AsyncSession, first_id: str, second_id: str) -> None:
    await session.execute(
        delete(Follow).where(
            _between(Follow.follower_id, Follow.followee_id, first_id, second_id)
        )
    )
    await session.execute(
        delete(Notification).where(
            _eq(Notification.kind, KIND_FOLLOW),
            _between(Notification.actor_id, Notification.recipient_id, first_id, second_id),
        )
    )


async def block_user(session: AsyncSession, *, blocker_id: str, blocked_id: str) -> bool:
    """Block a user and drop the follow edges between the two accounts.

    Returns False when the block was already in place.
    """
    if blocker_id == blocked_id:
        raise ValidationError("Cannot block yourself")

    created = not await has_blocked(session, blocker_id=blocker_id, user_id=blocked_id)
    await _sever_follows(session, blocker_id, blocked_id)
    if created:
        session.add(UserBlock(blocker_id=blocker_id, blocked_id=blocked_id))
    try:
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        if not is_unique_violation(exc):
            raise
        # A concurrent request stored the block first; the follows still go.
        await _sever_follows(session, blocker_id, blocked_id)
        await session.commit()
        created = False

    if created:
        logger.info(
            "User blocked",
            extra={"blocker_id": blocker_id, "blocked_id": blocked_id},
        )
    return created


async def unblock_user(session: AsyncSession, *, blocker_id: str, blocked_id: str) -> bool:
    """Lift a block. Returns False when there was nothing to lift."""
    if blocker_id == blocked_id:
        raise ValidationError("Cannot unblock yourself")

    result = await session.execute(
        delete(UserBlock).where(
            _eq(UserBlock.blocker_id, blocker_id),
            _eq(UserBlock.blocked_id, blocked_id),
        )
    )
    await session.commit()
    return bool(result.rowcount)


async def list_blocked_users(session: AsyncSession, *, blocker_id: str) -> list[User]:
    """Users in ``blocker_id``'s blocked list, most recently blocked first."""
    result = await session.execute(
        select(User)
        .join(UserBlock, _eq(UserBlock.blocked_id, User.id))
        .where(_eq(UserBlock.blocker_id, blocker_id))
        .order_by(cast(Any, UserBlock.created_at).desc(), cast(Any, UserBlock.id).desc())
    )
    return list(result.scalars().all())
