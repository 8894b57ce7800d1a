"""Follow relationship model."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Index, String, UniqueConstraint, func
from sqlmodel import Field, SQLModel


class Follow(SQLModel, table=True):
    """Directed follower -> followee edge of the follow graph."""

    __tablename__ = "follows"
    __table_args__ = (
        UniqueConstraint("follower_id", "followee_id", name="ux_follows_follower_followee"),
        CheckConstraint("follower_id <> followee_id", name="ck_follows_no_self_follow"),
        Index("ix_follows_followee_follower", "followee_id", "follower_id"),
    )

    id: int | None = Field(default=None, primary_key=True)
    follower_id: str = Field(
        sa_column=Column(
            String(36),
            ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        )
    )
    followee_id: str = Field(
        sa_column=Column(
            String(36),
            ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        )
    )
    created_at: datetime = Field(
        sa_column=Column(
            DateTime(timezone=True), server_default=func.now(), nullable=False
        )
    )
