"""Follow graph operations: toggle, listings and counters."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal, cast

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import ColumnElement

from core.errors import AuthorizationError, NotFoundError, UnexpectedError, ValidationError
from db.errors import is_unique_violation
from models import Follow, User
from models.notification import KIND_FOLLOW
from models.user import STATUS_DELETED

from .account_blocks import block_relation, not_blocked_between
from .notifications import dispatch_quietly, retract
from .pagination import FOLLOWS_PAGE_SIZE, is_last_page, page_cursor

FollowAction = Literal["follow", "unfollow"]


def _eq(column: Any, value: Any) -> ColumnElement[bool]:
    return cast(ColumnElement[bool], column == value)


def _desc(column: Any) -> Any:
    return cast(Any, column).desc()


@dataclass(slots=True)
class FollowToggleResult:
    action_type: FollowAction
    target_id: str
    relation_id: int


@dataclass(slots=True)
class FollowEntry:
    relation_id: int
    user: User
    viewer_is_following: bool


@dataclass(slots=True)
class FollowPage:
    total: int
    items: list[FollowEntry]
    is_last_page: bool


async def find_user_by_username(
    session: AsyncSession,
    username: str,
) -> User | None:
    result = await session.execute(select(User).where(_eq(User.username, username)))
    return result.scalar_one_or_none()


async def require_user(
    session: AsyncSession,
    username: str,
    *,
    active_only: bool = False,
) -> User:
    """Return the user with ``username`` or raise NotFoundError.

    Deleted accounts are never returned; ``active_only`` also hides
    inactive ones.
    """
    user = await find_user_by_username(session, username)
    if user is None or user.status == STATUS_DELETED:
        raise NotFoundError("User not found")
    if active_only and not user.is_active:
        raise NotFoundError("User not found")
    return user


async def _find_follow(
    session: AsyncSession,
    *,
    follower_id: str,
    followee_id: str,
) -> Follow | None:
    result = await session.execute(
        select(Follow).where(
            _eq(Follow.follower_id, follower_id),
            _eq(Follow.followee_id, followee_id),
        )
    )
    return result.scalar_one_or_none()


async def is_following(
    session: AsyncSession,
    *,
    follower_id: str,
    followee_id: str,
) -> bool:
    return (
        await _find_follow(session, follower_id=follower_id, followee_id=followee_id)
    ) is not None


async def toggle_follow(
    session: AsyncSession,
    *,
    acting_user: User,
    target_username: str,
) -> FollowToggleResult:
    """Follow ``target_username`` or, when already following, unfollow it."""
    acting_user_id = acting_user.id
    target = await require_user(session, target_username)
    target_id = target.id
    if target_id == acting_user_id:
        raise ValidationError("You cannot follow yourself")

    block_state = await block_relation(
        session,
        viewer_id=acting_user_id,
        other_id=target_id,
    )
    if block_state.either_way:
        raise AuthorizationError("You're not allowed to follow this user")

    existing = await _find_follow(
        session,
        follower_id=acting_user_id,
        followee_id=target_id,
    )
    if existing is not None and existing.id is not None:
        relation_id = existing.id
        await session.delete(existing)
        await retract(
            session,
            kind=KIND_FOLLOW,
            recipient_id=target_id,
            actor_id=acting_user_id,
        )
        await session.commit()
        return FollowToggleResult(
            action_type="unfollow",
            target_id=target_id,
            relation_id=relation_id,
        )

    if not target.is_active:
        raise NotFoundError("User not found")

    follow = Follow(follower_id=acting_user_id, followee_id=target_id)
    session.add(follow)
    try:
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        if not is_unique_violation(exc):
            raise
        # A concurrent request created the same edge first.
        concurrent = await _find_follow(
            session,
            follower_id=acting_user_id,
            followee_id=target_id,
        )
        if concurrent is None or concurrent.id is None:
            raise
        return FollowToggleResult(
            action_type="follow",
            target_id=target_id,
            relation_id=concurrent.id,
        )
    await session.refresh(follow)
    if follow.id is None:
        raise UnexpectedError("Follow record missing identifier")
    relation_id = follow.id

    await dispatch_quietly(
        session,
        kind=KIND_FOLLOW,
        recipient_id=target_id,
        actor_id=acting_user_id,
    )
    return FollowToggleResult(
        action_type="follow",
        target_id=target_id,
        relation_id=relation_id,
    )


async def count_follows(session: AsyncSession, *, user_id: str) -> tuple[int, int]:
    """Return ``(followers, following)`` counts for a user."""
    followers_result = await session.execute(
        select(func.count()).select_from(Follow).where(_eq(Follow.followee_id, user_id))
    )
    following_result = await session.execute(
        select(func.count()).select_from(Follow).where(_eq(Follow.follower_id, user_id))
    )
    return int(followers_result.scalar_one() or 0), int(following_result.scalar_one() or 0)


async def _list_relations(
    session: AsyncSession,
    *,
    target_user_id: str,
    requester_id: str,
    direction: Literal["followers", "following"],
    page: int,
    page_size: int,
) -> FollowPage:
    cursor = page_cursor(page, page_size)
    if direction == "followers":
        anchor_column = Follow.followee_id
        listed_user_column = Follow.follower_id
    else:
        anchor_column = Follow.follower_id
        listed_user_column = Follow.followee_id

    visible = not_blocked_between(requester_id, User.id)
    total_result = await session.execute(
        select(func.count())
        .select_from(Follow)
        .join(User, _eq(User.id, listed_user_column))
        .where(
            _eq(anchor_column, target_user_id),
            ~_eq(User.status, STATUS_DELETED),
            visible,
        )
    )
    result = await session.execute(
        select(cast(Any, Follow), cast(Any, User))
        .join(User, _eq(User.id, listed_user_column))
        .where(
            _eq(anchor_column, target_user_id),
            ~_eq(User.status, STATUS_DELETED),
            visible,
        )
        .order_by(_desc(Follow.created_at), _desc(Follow.id))
        .offset(cursor.skip)
        .limit(cursor.limit)
    )
    rows = result.all()

    listed_ids = [user.id for _follow, user in rows]
    followed_by_requester: set[str] = set()
    if listed_ids:
        followee_column = cast(ColumnElement[str], Follow.followee_id)
        requester_result = await session.execute(
            select(followee_column).where(
                _eq(Follow.follower_id, requester_id),
                followee_column.in_(listed_ids),
            )
        )
        followed_by_requester = {row[0] for row in requester_result.all()}

    items = [
        FollowEntry(
            relation_id=cast(int, follow.id),
            user=user,
            viewer_is_following=user.id in followed_by_requester,
        )
        for follow, user in rows
    ]
    return FollowPage(
        total=int(total_result.scalar_one() or 0),
        items=items,
        is_last_page=is_last_page(len(items), page_size),
    )


async def _resolve_visible_user(
    session: AsyncSession,
    *,
    username: str,
    requester_id: str,
) -> User:
    user = await require_user(session, username)
    block_state = await block_relation(session, viewer_id=requester_id, other_id=user.id)
    if block_state.blocked_viewer:
        raise NotFoundError("User not found")
    return user


async def list_followers(
    session: AsyncSession,
    *,
    username: str,
    requester: User,
    page: int = 1,
    page_size: int = FOLLOWS_PAGE_SIZE,
) -> FollowPage:
    requester_id = requester.id
    user = await _resolve_visible_user(session, username=username, requester_id=requester_id)
    return await _list_relations(
        session,
        target_user_id=user.id,
        requester_id=requester_id,
        direction="followers",
        page=page,
        page_size=page_size,
    )


async def list_following(
    session: AsyncSession,
    *,
    username: str,
    requester: User,
    page: int = 1,
    page_size: int = FOLLOWS_PAGE_SIZE,
) -> FollowPage:
    requester_id = requester.id
    user = await _resolve_visible_user(session, username=username, requester_id=requester_id)
    return await _list_relations(
        session,
        target_user_id=user.id,
        requester_id=requester_id,
        direction="following",
        page=page,
        page_size=page_size,
    )


@dataclass(slots=True)
class ProfileView:
    user: User
    followers_count: int
    following_count: int
    is_following: bool
    is_blocked: bool


async def get_profile(
    session: AsyncSession,
    *,
    username: str,
    viewer: User,
) -> ProfileView:
    """Return a user's profile as seen by ``viewer``.

    Users who blocked the viewer are reported as missing.
    """
    viewer_id = viewer.id
    user = await require_user(session, username)
    block_state = await block_relation(session, viewer_id=viewer_id, other_id=user.id)
    if block_state.blocked_viewer:
        raise NotFoundError("User not found")
    followers_count, following_count = await count_follows(session, user_id=user.id)
    following = False
    if user.id != viewer_id:
        following = await is_following(
            session, follower_id=viewer_id, followee_id=user.id
        )
    return ProfileView(
        user=user,
        followers_count=followers_count,
        following_count=following_count,
        is_following=following,
        is_blocked=block_state.viewer_blocked,
    )
