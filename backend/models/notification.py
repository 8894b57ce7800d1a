"""Notification model."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, String, Text, func
from sqlalchemy import text as sa_text
from sqlmodel import Field, SQLModel

NotificationKind = Literal["comment", "like", "follow"]
KIND_COMMENT = "comment"
KIND_LIKE = "like"
KIND_FOLLOW = "follow"


class Notification(SQLModel, table=True):
    """A notification produced by a comment, like or follow.

    The row is removed together with the entity that triggered it.
    """

    __tablename__ = "notifications"
    __table_args__ = (
        Index("ix_notifications_recipient_created_at", "recipient_id", "created_at"),
        Index("ix_notifications_comment_id", "comment_id"),
    )

    id: int | None = Field(default=None, primary_key=True)
    kind: str = Field(sa_column=Column(String(16), nullable=False))
    recipient_id: str = Field(
        sa_column=Column(
            String(36),
            ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        )
    )
    actor_id: str = Field(
        sa_column=Column(
            String(36),
            ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        )
    )
    post_id: int | None = Field(
        default=None,
        sa_column=Column(
            Integer,
            ForeignKey("posts.id", ondelete="CASCADE"),
            nullable=True,
            index=True,
        ),
    )
    comment_id: int | None = Field(
        default=None,
        sa_column=Column(
            Integer,
            ForeignKey("comments.id", ondelete="CASCADE"),
            nullable=True,
        ),
    )
    text: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    is_read: bool = Field(
        default=False,
        sa_column=Column(Boolean, nullable=False, server_default=sa_text("false")),
    )
    created_at: datetime = Field(
        sa_column=Column(
            DateTime(timezone=True), server_default=func.now(), nullable=False
        )
    )
