"""Post like operations."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, cast

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import ColumnElement

from core.errors import AuthorizationError
from db.errors import is_unique_violation
from models import Like, User
from models.notification import KIND_LIKE

from .account_blocks import has_blocked, not_blocked_between
from .notifications import dispatch_quietly, retract
from .pagination import LIKES_PAGE_SIZE, is_last_page, page_cursor
from .posts import require_post


def _eq(column: Any, value: Any) -> ColumnElement[bool]:
    return cast(ColumnElement[bool], column == value)


def _desc(column: Any) -> Any:
    return cast(Any, column).desc()


@dataclass(slots=True)
class LikeResult:
    post_id: int
    like_count: int
    liked: bool


@dataclass(slots=True)
class LikePage:
    total: int
    items: list[User]
    is_last_page: bool


async def count_likes(
    session: AsyncSession,
    post_id: int,
    *,
    visible_to: str | None = None,
) -> int:
    """Count a post's likes, skipping likers who share a block with ``visible_to``."""
    statement = select(func.count()).select_from(Like).where(_eq(Like.post_id, post_id))
    if visible_to is not None:
        statement = statement.where(not_blocked_between(visible_to, Like.user_id))
    result = await session.execute(statement)
    return int(result.scalar_one() or 0)


async def _find_like(session: AsyncSession, *, post_id: int, user_id: str) -> Like | None:
    result = await session.execute(
        select(Like).where(_eq(Like.post_id, post_id), _eq(Like.user_id, user_id))
    )
    return result.scalar_one_or_none()


async def like_post(session: AsyncSession, *, post_id: int, user: User) -> LikeResult:
    """Like a post. Liking twice is a no-op."""
    user_id = user.id
    post = await require_post(session, post_id)
    owner_id = post.author_id
    if await has_blocked(session, blocker_id=owner_id, user_id=user_id):
        raise AuthorizationError("You're not allowed to like this post")

    created = False
    if await _find_like(session, post_id=post_id, user_id=user_id) is None:
        session.add(Like(user_id=user_id, post_id=post_id))
        try:
            await session.commit()
            created = True
        except IntegrityError as exc:
            await session.rollback()
            if not is_unique_violation(exc):
                raise

    if created and owner_id != user_id:
        await dispatch_quietly(
            session,
            kind=KIND_LIKE,
            recipient_id=owner_id,
            actor_id=user_id,
            post_id=post_id,
        )

    return LikeResult(
        post_id=post_id,
        like_count=await count_likes(session, post_id),
        liked=True,
    )


async def unlike_post(session: AsyncSession, *, post_id: int, user: User) -> LikeResult:
    """Remove a like and the notification it raised."""
    user_id = user.id
    post = await require_post(session, post_id)
    like = await _find_like(session, post_id=post_id, user_id=user_id)
    if like is not None:
        await session.delete(like)
        await retract(
            session,
            kind=KIND_LIKE,
            recipient_id=post.author_id,
            actor_id=user_id,
            post_id=post_id,
        )
        await session.commit()

    return LikeResult(
        post_id=post_id,
        like_count=await count_likes(session, post_id),
        liked=False,
    )


async def list_likes(
    session: AsyncSession,
    *,
    post_id: int,
    viewer: User,
    page: int = 1,
    page_size: int = LIKES_PAGE_SIZE,
) -> LikePage:
    """Return users who liked a post, most recent like first."""
    viewer_id = viewer.id
    cursor = page_cursor(page, page_size)
    await require_post(session, post_id)

    result = await session.execute(
        select(User)
        .join(Like, _eq(Like.user_id, User.id))
        .where(
            _eq(Like.post_id, post_id),
            not_blocked_between(viewer_id, User.id),
        )
        .order_by(_desc(Like.created_at), _desc(Like.id))
        .offset(cursor.skip)
        .limit(cursor.limit)
    )
    items = list(result.scalars().all())
    return LikePage(
        total=await count_likes(session, post_id, visible_to=viewer_id),
        items=items,
        is_last_page=is_last_page(len(items), page_size),
    )
