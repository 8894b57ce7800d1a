"""Post lifecycle, feed listings and comment subscriptions."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, cast

from sqlalchemy import delete, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import ColumnElement

from core.errors import AuthorizationError, NotFoundError, ValidationError
from db.errors import is_unique_violation
from models import Comment, CommentEdit, Follow, Like, Notification, Post, PostSubscription, User

from .account_blocks import block_relation, not_blocked_between
from .pagination import POSTS_PAGE_SIZE, is_last_page, page_cursor
from .social_graph import require_user

MAX_POST_CONTENT_LENGTH = 2200
MAX_LOCATION_LENGTH = 120

logger = logging.getLogger(__name__)


def _eq(column: Any, value: Any) -> ColumnElement[bool]:
    return cast(ColumnElement[bool], column == value)


def _desc(column: Any) -> Any:
    return cast(Any, column).desc()


@dataclass(slots=True)
class PostMeta:
    like_count: int
    comment_count: int
    viewer_has_liked: bool


@dataclass(slots=True)
class PostEntry:
    post: Post
    author: User
    meta: PostMeta


@dataclass(slots=True)
class PostPage:
    items: list[PostEntry]
    is_last_page: bool


async def require_post(session: AsyncSession, post_id: int) -> Post:
    """Return the post or raise NotFoundError."""
    post = await session.get(Post, post_id)
    if post is None:
        raise NotFoundError("Post not found or deleted")
    return post


async def collect_post_meta(
    session: AsyncSession,
    *,
    post_ids: list[int],
    viewer_id: str,
) -> dict[int, PostMeta]:
    """Return like/comment counters and the viewer's like flag per post."""
    if not post_ids:
        return {}

    like_post_column = cast(ColumnElement[int], Like.post_id)
    comment_post_column = cast(ColumnElement[int], Comment.post_id)

    like_rows = await session.execute(
        select(like_post_column, func.count())
        .where(like_post_column.in_(post_ids))
        .group_by(like_post_column)
    )
    comment_rows = await session.execute(
        select(comment_post_column, func.count())
        .where(comment_post_column.in_(post_ids))
        .group_by(comment_post_column)
    )
    viewer_rows = await session.execute(
        select(like_post_column).where(
            _eq(Like.user_id, viewer_id),
            like_post_column.in_(post_ids),
        )
    )
    like_counts = {post_id: int(count) for post_id, count in like_rows.all()}
    comment_counts = {post_id: int(count) for post_id, count in comment_rows.all()}
    liked = {row[0] for row in viewer_rows.all()}

    return {
        post_id: PostMeta(
            like_count=like_counts.get(post_id, 0),
            comment_count=comment_counts.get(post_id, 0),
            viewer_has_liked=post_id in liked,
        )
        for post_id in post_ids
    }


def _normalize_content(content: str) -> str:
    normalized = content.strip()
    if not normalized:
        raise ValidationError("The post cannot be empty")
    if len(normalized) > MAX_POST_CONTENT_LENGTH:
        raise ValidationError(
            f"The post cannot exceed {MAX_POST_CONTENT_LENGTH} characters"
        )
    return normalized


async def create_post(
    session: AsyncSession,
    *,
    author: User,
    content: str,
    location: str | None = None,
    image_key: str | None = None,
) -> PostEntry:
    normalized = _normalize_content(content)
    cleaned_location = location.strip() if location else None
    if cleaned_location and len(cleaned_location) > MAX_LOCATION_LENGTH:
        raise ValidationError(
            f"The location cannot exceed {MAX_LOCATION_LENGTH} characters"
        )

    post = Post(
        author_id=author.id,
        content=normalized,
        location=cleaned_location or None,
        image_key=image_key,
    )
    session.add(post)
    await session.commit()
    await session.refresh(post)
    return PostEntry(
        post=post,
        author=author,
        meta=PostMeta(like_count=0, comment_count=0, viewer_has_liked=False),
    )


async def get_post(
    session: AsyncSession,
    *,
    post_id: int,
    viewer: User,
) -> PostEntry:
    """Return a post with its author, hidden when a block separates the pair."""
    viewer_id = viewer.id
    post = await require_post(session, post_id)
    author = await session.get(User, post.author_id)
    if author is None:
        raise NotFoundError("Post not found or deleted")
    block_state = await block_relation(session, viewer_id=viewer_id, other_id=author.id)
    if block_state.blocked_viewer:
        raise NotFoundError("Post not found or deleted")
    meta = await collect_post_meta(session, post_ids=[post_id], viewer_id=viewer_id)
    return PostEntry(post=post, author=author, meta=meta[post_id])


async def delete_post(
    session: AsyncSession,
    *,
    post_id: int,
    acting_user: User,
) -> Post:
    """Delete a post together with everything that references it."""
    post = await require_post(session, post_id)
    if not acting_user.is_admin and post.author_id != acting_user.id:
        raise AuthorizationError()

    comment_ids = select(Comment.id).where(_eq(Comment.post_id, post_id))
    comment_id_column = cast(ColumnElement[int], Notification.comment_id)
    edit_comment_column = cast(ColumnElement[int], CommentEdit.comment_id)

    await session.execute(
        delete(Notification).where(
            or_(
                _eq(Notification.post_id, post_id),
                comment_id_column.in_(comment_ids),
            )
        )
    )
    await session.execute(delete(CommentEdit).where(edit_comment_column.in_(comment_ids)))
    await session.execute(delete(Comment).where(_eq(Comment.post_id, post_id)))
    await session.execute(delete(Like).where(_eq(Like.post_id, post_id)))
    await session.execute(
        delete(PostSubscription).where(_eq(PostSubscription.post_id, post_id))
    )
    await session.delete(post)
    await session.commit()
    logger.info("Post deleted", extra={"post_id": post_id})
    return post


async def _build_page(
    session: AsyncSession,
    *,
    rows: list[Any],
    viewer_id: str,
    page_size: int,
) -> PostPage:
    post_ids = [cast(int, post.id) for post, _author in rows]
    meta = await collect_post_meta(session, post_ids=post_ids, viewer_id=viewer_id)
    items = [
        PostEntry(post=post, author=author, meta=meta[cast(int, post.id)])
        for post, author in rows
    ]
    return PostPage(items=items, is_last_page=is_last_page(len(items), page_size))


async def list_feed(
    session: AsyncSession,
    *,
    viewer: User,
    page: int = 1,
    page_size: int = POSTS_PAGE_SIZE,
) -> PostPage:
    """Return the viewer's posts and those of followed users, newest first."""
    viewer_id = viewer.id
    cursor = page_cursor(page, page_size)
    followed_ids = select(Follow.followee_id).where(_eq(Follow.follower_id, viewer_id))
    author_column = cast(ColumnElement[str], Post.author_id)

    result = await session.execute(
        select(cast(Any, Post), cast(Any, User))
        .join(User, _eq(User.id, Post.author_id))
        .where(
            or_(_eq(author_column, viewer_id), author_column.in_(followed_ids)),
            not_blocked_between(viewer_id, author_column),
        )
        .order_by(_desc(Post.created_at), _desc(Post.id))
        .offset(cursor.skip)
        .limit(cursor.limit)
    )
    return await _build_page(
        session,
        rows=list(result.all()),
        viewer_id=viewer_id,
        page_size=page_size,
    )


async def list_user_posts(
    session: AsyncSession,
    *,
    username: str,
    viewer: User,
    page: int = 1,
    page_size: int = POSTS_PAGE_SIZE,
) -> PostPage:
    viewer_id = viewer.id
    cursor = page_cursor(page, page_size)
    user = await require_user(session, username)
    block_state = await block_relation(session, viewer_id=viewer_id, other_id=user.id)
    if block_state.blocked_viewer:
        raise NotFoundError("User not found")

    result = await session.execute(
        select(cast(Any, Post), cast(Any, User))
        .join(User, _eq(User.id, Post.author_id))
        .where(_eq(Post.author_id, user.id))
        .order_by(_desc(Post.created_at), _desc(Post.id))
        .offset(cursor.skip)
        .limit(cursor.limit)
    )
    return await _build_page(
        session,
        rows=list(result.all()),
        viewer_id=viewer_id,
        page_size=page_size,
    )


async def is_subscribed(session: AsyncSession, *, user_id: str, post_id: int) -> bool:
    return await session.get(PostSubscription, (user_id, post_id)) is not None


async def subscribe(session: AsyncSession, *, user: User, post_id: int) -> bool:
    """Subscribe ``user`` to comment notifications on a post.

    Returns False when the subscription already existed.
    """
    user_id = user.id
    await require_post(session, post_id)
    if await is_subscribed(session, user_id=user_id, post_id=post_id):
        return False
    session.add(PostSubscription(user_id=user_id, post_id=post_id))
    try:
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        if not is_unique_violation(exc):
            raise
        return False
    return True


async def unsubscribe(session: AsyncSession, *, user: User, post_id: int) -> bool:
    user_id = user.id
    await require_post(session, post_id)
    subscription = await session.get(PostSubscription, (user_id, post_id))
    if subscription is None:
        return False
    await session.delete(subscription)
    await session.commit()
    return True
