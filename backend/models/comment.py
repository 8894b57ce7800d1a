"""Comment and comment edit-history models."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, Text, func
from sqlmodel import Field, SQLModel


class Comment(SQLModel, table=True):
    """A comment attached to a post.

    ``post_owner_id`` is copied from the post when the comment is created so
    authorization checks do not need a join. Post ownership never changes, so
    the copy cannot go stale.
    """

    __tablename__ = "comments"
    __table_args__ = (
        Index("ix_comments_post_created_at", "post_id", "created_at"),
    )

    id: int | None = Field(default=None, primary_key=True)
    post_id: int = Field(
        sa_column=Column(
            Integer,
            ForeignKey("posts.id", ondelete="CASCADE"),
            nullable=False,
        )
    )
    post_owner_id: str = Field(
        sa_column=Column(
            String(36),
            ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        )
    )
    author_id: str = Field(
        sa_column=Column(
            String(36),
            ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        )
    )
    text: str = Field(sa_column=Column(Text, nullable=False))
    created_at: datetime = Field(
        sa_column=Column(
            DateTime(timezone=True), server_default=func.now(), nullable=False
        )
    )
    updated_at: datetime = Field(
        sa_column=Column(
            DateTime(timezone=True),
            server_default=func.now(),
            nullable=False,
        )
    )


class CommentEdit(SQLModel, table=True):
    """Append-only record of a comment's text before an edit."""

    __tablename__ = "comment_edits"
    __table_args__ = (
        Index("ix_comment_edits_comment_id_id", "comment_id", "id"),
    )

    id: int | None = Field(default=None, primary_key=True)
    comment_id: int = Field(
        sa_column=Column(
            Integer,
            ForeignKey("comments.id", ondelete="CASCADE"),
            nullable=False,
        )
    )
    text: str = Field(sa_column=Column(Text, nullable=False))
    previous_updated_at: datetime = Field(
        sa_column=Column(DateTime(timezone=True), nullable=False)
    )
    edited_at: datetime = Field(
        sa_column=Column(
            DateTime(timezone=True), server_default=func.now(), nullable=False
        )
    )
