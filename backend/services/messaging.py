"""Direct-message chats between two users."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, cast

from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import ColumnElement

from core.errors import AuthorizationError, NotFoundError, ValidationError
from db.errors import is_unique_violation
from models import Chat, Message, User
from models.chat import CHAT_ACTIVE, CHAT_INACTIVE

from .account_blocks import block_relation
from .notifications import NEW_MESSAGE_EVENT, UNREAD_MESSAGES_EVENT, signal
from .pagination import MESSAGES_PAGE_SIZE, is_last_page, page_cursor
from .social_graph import require_user

MAX_MESSAGE_LENGTH = 1000

logger = logging.getLogger(__name__)


def _eq(column: Any, value: Any) -> ColumnElement[bool]:
    return cast(ColumnElement[bool], column == value)


def _desc(column: Any) -> Any:
    return cast(Any, column).desc()


@dataclass(slots=True)
class ChatSummary:
    chat: Chat
    counterpart: User
    latest_message: Message | None
    unread: bool

    @property
    def is_empty(self) -> bool:
        return self.latest_message is None


@dataclass(slots=True)
class MessagePage:
    items: list[Message]
    is_last_page: bool


def _pair_filter(first_user_id: str, second_user_id: str) -> ColumnElement[bool]:
    return cast(
        ColumnElement[bool],
        or_(
            and_(
                _eq(Chat.creator_id, first_user_id),
                _eq(Chat.counterpart_id, second_user_id),
            ),
            and_(
                _eq(Chat.creator_id, second_user_id),
                _eq(Chat.counterpart_id, first_user_id),
            ),
        ),
    )


async def _find_chat_between(
    session: AsyncSession,
    first_user_id: str,
    second_user_id: str,
) -> Chat | None:
    result = await session.execute(
        select(Chat).where(_pair_filter(first_user_id, second_user_id))
    )
    return result.scalars().first()


async def require_chat(session: AsyncSession, *, chat_id: int, user: User) -> Chat:
    """Return a chat the user takes part in; other chats are reported missing."""
    chat = await session.get(Chat, chat_id)
    if chat is None or not chat.has_participant(user.id):
        raise NotFoundError("Chat not found")
    return chat


async def open_chat(session: AsyncSession, *, user: User, username: str) -> Chat:
    """Return the chat between ``user`` and ``username``, creating it if needed."""
    user_id = user.id
    counterpart = await require_user(session, username, active_only=True)
    counterpart_id = counterpart.id
    if counterpart_id == user_id:
        raise ValidationError("You cannot open a chat with yourself")

    block_state = await block_relation(session, viewer_id=user_id, other_id=counterpart_id)
    if block_state.either_way:
        raise AuthorizationError("You're not allowed to message this user")

    existing = await _find_chat_between(session, user_id, counterpart_id)
    if existing is not None:
        return existing

    chat = Chat(creator_id=user_id, counterpart_id=counterpart_id)
    session.add(chat)
    try:
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        if not is_unique_violation(exc):
            raise
        concurrent = await _find_chat_between(session, user_id, counterpart_id)
        if concurrent is None:
            raise
        return concurrent
    await session.refresh(chat)
    return chat


async def _latest_message(session: AsyncSession, chat_id: int) -> Message | None:
    result = await session.execute(
        select(Message)
        .where(_eq(Message.chat_id, chat_id))
        .order_by(_desc(Message.created_at), _desc(Message.id))
        .limit(1)
    )
    return result.scalars().first()


async def _has_unread(session: AsyncSession, *, chat_id: int, user_id: str) -> bool:
    read_at_column = cast(ColumnElement[datetime | None], Message.read_at)
    result = await session.execute(
        select(Message.id)
        .where(
            _eq(Message.chat_id, chat_id),
            _eq(Message.recipient_id, user_id),
            read_at_column.is_(None),
        )
        .limit(1)
    )
    return result.first() is not None


async def list_chats(session: AsyncSession, *, user: User) -> list[ChatSummary]:
    """Return the user's chats with the most recently active first."""
    user_id = user.id
    result = await session.execute(
        select(Chat)
        .where(or_(_eq(Chat.creator_id, user_id), _eq(Chat.counterpart_id, user_id)))
        .order_by(_desc(Chat.updated_at), _desc(Chat.id))
    )
    chats = list(result.scalars().all())

    summaries: list[ChatSummary] = []
    for chat in chats:
        chat_id = cast(int, chat.id)
        counterpart = await session.get(User, chat.other_participant(user_id))
        if counterpart is None:
            continue
        summaries.append(
            ChatSummary(
                chat=chat,
                counterpart=counterpart,
                latest_message=await _latest_message(session, chat_id),
                unread=await _has_unread(session, chat_id=chat_id, user_id=user_id),
            )
        )
    return summaries


async def _count_unread_messages(session: AsyncSession, *, user_id: str) -> int:
    read_at_column = cast(ColumnElement[datetime | None], Message.read_at)
    result = await session.execute(
        select(func.count())
        .select_from(Message)
        .where(_eq(Message.recipient_id, user_id), read_at_column.is_(None))
    )
    return int(result.scalar_one() or 0)


async def send_message(
    session: AsyncSession,
    *,
    chat_id: int,
    sender: User,
    text: str | None,
) -> Message:
    """Send a message in an active chat and signal the recipient."""
    normalized = (text or "").strip()
    if not normalized:
        raise ValidationError("The message cannot be empty")
    if len(normalized) > MAX_MESSAGE_LENGTH:
        raise ValidationError(
            f"The message cannot exceed {MAX_MESSAGE_LENGTH} characters"
        )

    sender_id = sender.id
    chat = await session.get(Chat, chat_id)
    if chat is None:
        raise NotFoundError("Chat not found")
    if not chat.has_participant(sender_id):
        raise AuthorizationError("You're not a participant of this chat")
    if chat.status != CHAT_ACTIVE:
        raise AuthorizationError("This chat is disabled")

    recipient_id = chat.other_participant(sender_id)
    block_state = await block_relation(session, viewer_id=sender_id, other_id=recipient_id)
    if block_state.either_way:
        raise AuthorizationError("You're not allowed to message this user")

    message = Message(
        chat_id=chat_id,
        sender_id=sender_id,
        recipient_id=recipient_id,
        text=normalized,
    )
    session.add(message)
    chat.updated_at = datetime.now(timezone.utc)
    await session.execute(
        update(User).where(_eq(User.id, recipient_id)).values(unread_message=True)
    )
    await session.commit()
    await session.refresh(message)

    await signal(
        recipient_id,
        NEW_MESSAGE_EVENT,
        {"chatId": chat_id, "messageId": message.id, "senderId": sender_id},
    )
    await signal(
        recipient_id,
        UNREAD_MESSAGES_EVENT,
        {"unreadMessage": True},
    )
    return message


async def list_messages(
    session: AsyncSession,
    *,
    chat_id: int,
    user: User,
    page: int = 1,
    page_size: int = MESSAGES_PAGE_SIZE,
) -> MessagePage:
    cursor = page_cursor(page, page_size)
    await require_chat(session, chat_id=chat_id, user=user)
    result = await session.execute(
        select(Message)
        .where(_eq(Message.chat_id, chat_id))
        .order_by(_desc(Message.created_at), _desc(Message.id))
        .offset(cursor.skip)
        .limit(cursor.limit)
    )
    items = list(result.scalars().all())
    return MessagePage(items=items, is_last_page=is_last_page(len(items), page_size))


async def mark_chat_read(session: AsyncSession, *, chat_id: int, user: User) -> int:
    """Mark incoming messages in a chat as read and refresh the user's flag.

    Returns how many messages changed state.
    """
    user_id = user.id
    await require_chat(session, chat_id=chat_id, user=user)
    read_at_column = cast(ColumnElement[datetime | None], Message.read_at)
    result = await session.execute(
        update(Message)
        .where(
            _eq(Message.chat_id, chat_id),
            _eq(Message.recipient_id, user_id),
            read_at_column.is_(None),
        )
        .values(read_at=datetime.now(timezone.utc))
    )
    remaining = await _count_unread_messages(session, user_id=user_id)
    user.unread_message = remaining > 0
    session.add(user)
    await session.commit()

    await signal(user_id, UNREAD_MESSAGES_EVENT, {"unreadMessage": remaining > 0})
    return int(getattr(result, "rowcount", 0) or 0)


async def toggle_chat_status(session: AsyncSession, *, chat_id: int, user: User) -> Chat:
    """Disable an active chat, or re-enable one the same user disabled."""
    user_id = user.id
    chat = await require_chat(session, chat_id=chat_id, user=user)
    if chat.status == CHAT_ACTIVE:
        chat.status = CHAT_INACTIVE
        chat.disabled_by = user_id
    else:
        if chat.disabled_by != user_id:
            raise AuthorizationError("Only the user who disabled this chat can enable it")
        chat.status = CHAT_ACTIVE
        chat.disabled_by = None
    await session.commit()
    await session.refresh(chat)
    return chat
