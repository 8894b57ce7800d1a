"""Comment creation, editing, deletion and listing."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, cast

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import ColumnElement

from core.errors import AuthorizationError, NotFoundError, ValidationError
from models import Comment, CommentEdit, Notification, PostSubscription, User
from models.notification import KIND_COMMENT

from .account_blocks import has_blocked
from .notifications import dispatch_quietly
from .pagination import COMMENTS_PAGE_SIZE, is_last_page, page_cursor
from .posts import is_subscribed, require_post

MAX_COMMENT_LENGTH = 500

logger = logging.getLogger(__name__)


def _eq(column: Any, value: Any) -> ColumnElement[bool]:
    return cast(ColumnElement[bool], column == value)


def _desc(column: Any) -> Any:
    return cast(Any, column).desc()


def _asc(column: Any) -> Any:
    return cast(Any, column).asc()


@dataclass(slots=True)
class CommentEntry:
    comment: Comment
    author: User


@dataclass(slots=True)
class CommentPage:
    total: int
    items: list[CommentEntry]
    is_last_page: bool


def normalize_comment_text(text: str | None) -> str:
    normalized = (text or "").strip()
    if not normalized:
        raise ValidationError("The comment cannot be empty")
    if len(normalized) > MAX_COMMENT_LENGTH:
        raise ValidationError(
            f"The comment cannot exceed {MAX_COMMENT_LENGTH} characters"
        )
    return normalized


async def require_comment(session: AsyncSession, comment_id: int) -> Comment:
    comment = await session.get(Comment, comment_id)
    if comment is None:
        raise NotFoundError("Comment not found or deleted")
    return comment


async def _subscriber_ids(session: AsyncSession, post_id: int) -> list[str]:
    user_id_column = cast(ColumnElement[str], PostSubscription.user_id)
    result = await session.execute(
        select(user_id_column).where(_eq(PostSubscription.post_id, post_id))
    )
    return [row[0] for row in result.all()]


async def create_comment(
    session: AsyncSession,
    *,
    post_id: int,
    author: User,
    text: str | None,
) -> CommentEntry:
    """Attach a comment to a post and notify the owner and subscribers.

    The author is subscribed to the post unless they own it or already
    follow it.
    """
    normalized = normalize_comment_text(text)
    author_id = author.id
    post = await require_post(session, post_id)
    owner_id = post.author_id

    if await has_blocked(session, blocker_id=owner_id, user_id=author_id):
        raise AuthorizationError("You're not allowed to comment on this post")

    recipients = [
        subscriber_id
        for subscriber_id in await _subscriber_ids(session, post_id)
        if subscriber_id not in (author_id, owner_id)
    ]

    if author_id != owner_id and not await is_subscribed(
        session, user_id=author_id, post_id=post_id
    ):
        session.add(PostSubscription(user_id=author_id, post_id=post_id))

    comment = Comment(
        post_id=post_id,
        post_owner_id=owner_id,
        author_id=author_id,
        text=normalized,
    )
    session.add(comment)
    await session.commit()
    await session.refresh(comment)
    comment_id = comment.id

    if author_id != owner_id:
        recipients.insert(0, owner_id)
    for recipient_id in recipients:
        await dispatch_quietly(
            session,
            kind=KIND_COMMENT,
            recipient_id=recipient_id,
            actor_id=author_id,
            post_id=post_id,
            comment_id=comment_id,
            text=normalized,
        )

    return CommentEntry(comment=comment, author=author)


async def edit_comment(
    session: AsyncSession,
    *,
    comment_id: int,
    editor: User,
    text: str | None,
) -> CommentEntry:
    """Replace a comment's text, keeping the previous version in its history."""
    normalized = normalize_comment_text(text)
    comment = await require_comment(session, comment_id)
    if not editor.is_admin and comment.author_id != editor.id:
        raise AuthorizationError()

    session.add(
        CommentEdit(
            comment_id=comment_id,
            text=comment.text,
            previous_updated_at=comment.updated_at,
        )
    )
    comment.text = normalized
    comment.updated_at = datetime.now(timezone.utc)
    await session.commit()
    await session.refresh(comment)

    author = await session.get(User, comment.author_id)
    if author is None:
        raise NotFoundError("Comment not found or deleted")
    return CommentEntry(comment=comment, author=author)


async def delete_comment(
    session: AsyncSession,
    *,
    comment_id: int,
    acting_user: User,
) -> Comment:
    """Delete a comment with its history and the notifications it raised.

    Admins, the comment's author and the post's owner may delete it.
    """
    comment = await require_comment(session, comment_id)
    acting_user_id = acting_user.id
    if not (
        acting_user.is_admin
        or comment.author_id == acting_user_id
        or comment.post_owner_id == acting_user_id
    ):
        raise AuthorizationError()

    await session.execute(delete(CommentEdit).where(_eq(CommentEdit.comment_id, comment_id)))
    await session.execute(
        delete(Notification).where(_eq(Notification.comment_id, comment_id))
    )
    await session.delete(comment)
    await session.commit()
    logger.info(
        "Comment deleted",
        extra={"comment_id": comment_id, "acting_user_id": acting_user_id},
    )
    return comment


async def list_comments(
    session: AsyncSession,
    *,
    post_id: int,
    page: int = 1,
    page_size: int = COMMENTS_PAGE_SIZE,
) -> CommentPage:
    cursor = page_cursor(page, page_size)
    await require_post(session, post_id)

    total_result = await session.execute(
        select(func.count()).select_from(Comment).where(_eq(Comment.post_id, post_id))
    )
    result = await session.execute(
        select(cast(Any, Comment), cast(Any, User))
        .join(User, _eq(User.id, Comment.author_id))
        .where(_eq(Comment.post_id, post_id))
        .order_by(_desc(Comment.created_at), _desc(Comment.id))
        .offset(cursor.skip)
        .limit(cursor.limit)
    )
    items = [CommentEntry(comment=comment, author=author) for comment, author in result.all()]
    return CommentPage(
        total=int(total_result.scalar_one() or 0),
        items=items,
        is_last_page=is_last_page(len(items), page_size),
    )


async def get_comment_history(
    session: AsyncSession,
    *,
    comment_id: int,
) -> list[CommentEdit]:
    """Return previous versions of a comment, oldest first."""
    await require_comment(session, comment_id)
    result = await session.execute(
        select(CommentEdit)
        .where(_eq(CommentEdit.comment_id, comment_id))
        .order_by(_asc(CommentEdit.id))
    )
    return list(result.scalars().all())
