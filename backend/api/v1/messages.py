"""Direct-message chat endpoints."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, status
from pydantic import Field
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_current_user, get_db
from models import Chat, User
from services.messaging import (
    ChatSummary,
    list_chats,
    list_messages,
    mark_chat_read,
    open_chat,
    send_message,
    toggle_chat_status,
)

from .pagination import PageQuery
from .schemas import CamelModel, Envelope, UserSummary, success, user_summary

router = APIRouter(prefix="/chats", tags=["chats"])


class OpenChatRequest(CamelModel):
    username: str = Field(min_length=1, max_length=30)


class SendMessageRequest(CamelModel):
    text: str = Field(max_length=4000)


class ChatOut(CamelModel):
    id: int
    creator_id: str
    counterpart_id: str
    status: str
    disabled_by: str | None = None
    created_at: datetime
    updated_at: datetime


class MessageOut(CamelModel):
    id: int
    chat_id: int
    sender_id: str
    recipient_id: str
    text: str
    read_at: datetime | None = None
    created_at: datetime


class ChatSummaryOut(CamelModel):
    chat: ChatOut
    counterpart: UserSummary
    latest_message: MessageOut | None = None
    is_empty: bool
    unread: bool


class MessagesPageOut(CamelModel):
    messages: list[MessageOut]
    is_last_page: bool


class ChatReadOut(CamelModel):
    chat_id: int
    updated: int


def _chat_summary_out(summary: ChatSummary) -> ChatSummaryOut:
    return ChatSummaryOut(
        chat=ChatOut.model_validate(summary.chat),
        counterpart=user_summary(summary.counterpart),
        latest_message=(
            MessageOut.model_validate(summary.latest_message)
            if summary.latest_message is not None
            else None
        ),
        is_empty=summary.is_empty,
        unread=summary.unread,
    )


@router.get("", response_model=Envelope[list[ChatSummaryOut]])
async def read_chats(
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> Envelope[list[ChatSummaryOut]]:
    summaries = await list_chats(session, user=current_user)
    return success([_chat_summary_out(summary) for summary in summaries])


@router.post("", status_code=status.HTTP_201_CREATED, response_model=Envelope[ChatOut])
async def open_chat_endpoint(
    payload: OpenChatRequest,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> Envelope[ChatOut]:
    chat: Chat = await open_chat(session, user=current_user, username=payload.username)
    return success(ChatOut.model_validate(chat))


@router.get("/{chat_id}/messages", response_model=Envelope[MessagesPageOut])
async def read_messages(
    chat_id: int,
    page: PageQuery = 1,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> Envelope[MessagesPageOut]:
    message_page = await list_messages(session, chat_id=chat_id, user=current_user, page=page)
    return success(
        MessagesPageOut(
            messages=[MessageOut.model_validate(message) for message in message_page.items],
            is_last_page=message_page.is_last_page,
        )
    )


@router.post(
    "/{chat_id}/messages",
    status_code=status.HTTP_201_CREATED,
    response_model=Envelope[MessageOut],
)
async def send_message_endpoint(
    chat_id: int,
    payload: SendMessageRequest,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> Envelope[MessageOut]:
    message = await send_message(
        session,
        chat_id=chat_id,
        sender=current_user,
        text=payload.text,
    )
    return success(MessageOut.model_validate(message))


@router.post("/{chat_id}/read", response_model=Envelope[ChatReadOut])
async def read_chat(
    chat_id: int,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> Envelope[ChatReadOut]:
    updated = await mark_chat_read(session, chat_id=chat_id, user=current_user)
    return success(ChatReadOut(chat_id=chat_id, updated=updated))


@router.post("/{chat_id}/status", response_model=Envelope[ChatOut])
async def toggle_chat(
    chat_id: int,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> Envelope[ChatOut]:
    chat = await toggle_chat_status(session, chat_id=chat_id, user=current_user)
    return success(ChatOut.model_validate(chat))
