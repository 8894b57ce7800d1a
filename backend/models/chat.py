"""Direct-message chat and message models."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, String, Text, func
from sqlmodel import Field, SQLModel

ChatStatus = Literal["active", "inactive"]
CHAT_ACTIVE = "active"
CHAT_INACTIVE = "inactive"


class Chat(SQLModel, table=True):
    """A conversation between the user who opened it and one counterpart."""

    __tablename__ = "chats"
    __table_args__ = (
        CheckConstraint("creator_id <> counterpart_id", name="ck_chats_distinct_participants"),
        Index("ix_chats_creator_counterpart", "creator_id", "counterpart_id", unique=True),
        Index("ix_chats_counterpart_id", "counterpart_id"),
    )

    id: int | None = Field(default=None, primary_key=True)
    creator_id: str = Field(
        sa_column=Column(
            String(36),
            ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        )
    )
    counterpart_id: str = Field(
        sa_column=Column(
            String(36),
            ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        )
    )
    status: str = Field(
        default=CHAT_ACTIVE,
        sa_column=Column(String(16), nullable=False, server_default=CHAT_ACTIVE),
    )
    disabled_by: str | None = Field(
        default=None,
        sa_column=Column(
            String(36),
            ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        ),
    )
    created_at: datetime = Field(
        sa_column=Column(
            DateTime(timezone=True), server_default=func.now(), nullable=False
        )
    )
    updated_at: datetime = Field(
        sa_column=Column(
            DateTime(timezone=True),
            server_default=func.now(),
            onupdate=func.now(),
            nullable=False,
        )
    )

    def other_participant(self, user_id: str) -> str:
        return self.counterpart_id if user_id == self.creator_id else self.creator_id

    def has_participant(self, user_id: str) -> bool:
        return user_id in (self.creator_id, self.counterpart_id)


class Message(SQLModel, table=True):
    """A single message inside a chat."""

    __tablename__ = "messages"
    __table_args__ = (
        Index("ix_messages_chat_created_at", "chat_id", "created_at"),
        Index("ix_messages_recipient_read_at", "recipient_id", "read_at"),
    )

    id: int | None = Field(default=None, primary_key=True)
    chat_id: int = Field(
        sa_column=Column(
            Integer,
            ForeignKey("chats.id", ondelete="CASCADE"),
            nullable=False,
        )
    )
    sender_id: str = Field(
        sa_column=Column(
            String(36),
            ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        )
    )
    recipient_id: str = Field(
        sa_column=Column(
            String(36),
            ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        )
    )
    text: str = Field(sa_column=Column(Text, nullable=False))
    read_at: datetime | None = Field(
        default=None, sa_column=Column(DateTime(timezone=True), nullable=True)
    )
    created_at: datetime = Field(
        sa_column=Column(
            DateTime(timezone=True), server_default=func.now(), nullable=False
        )
    )
