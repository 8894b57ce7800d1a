"""Post comment-notification subscription model."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, func
from sqlmodel import Field, SQLModel


class PostSubscription(SQLModel, table=True):
    """A user's opt-in to notifications for future comments on a post.

    Read by ``post_id`` it is the post's ``followedBy`` set; read by
    ``user_id`` it is the user's ``postsSubscribed`` list.
    """

    __tablename__ = "post_subscriptions"

    user_id: str = Field(
        sa_column=Column(
            String(36),
            ForeignKey("users.id", ondelete="CASCADE"),
            primary_key=True,
        )
    )
    post_id: int = Field(
        sa_column=Column(
            Integer,
            ForeignKey("posts.id", ondelete="CASCADE"),
            primary_key=True,
        )
    )
    created_at: datetime = Field(
        sa_column=Column(
            DateTime(timezone=True), server_default=func.now(), nullable=False
        )
    )
