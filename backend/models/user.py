"""User domain model."""

from __future__ import annotations

from datetime import datetime
from typing import Literal
from uuid import uuid4

from sqlalchemy import Boolean, Column, DateTime, String, func, text
from sqlmodel import Field, SQLModel

from core.config import settings

UserRole = Literal["user", "admin"]
UserStatus = Literal["active", "inactive", "deleted"]
ROLE_USER = "user"
ROLE_ADMIN = "admin"
STATUS_ACTIVE = "active"
STATUS_INACTIVE = "inactive"
STATUS_DELETED = "deleted"


class User(SQLModel, table=True):
    """Registered application user.

    Block relationships live in ``user_blocks`` and post subscriptions in
    ``post_subscriptions``; both are read from either side of the relation.
    """

    __tablename__ = "users"

    id: str = Field(default_factory=lambda: str(uuid4()), sa_column=Column(String(36), primary_key=True))
    name: str = Field(sa_column=Column(String(80), nullable=False))
    username: str = Field(
        sa_column=Column(String(30), unique=True, nullable=False, index=True)
    )
    email: str = Field(
        sa_column=Column(String(255), unique=True, nullable=False, index=True)
    )
    password_hash: str = Field(
        sa_column=Column(String(255), nullable=False)
    )
    avatar: str = Field(
        default=settings.default_avatar_url,
        sa_column=Column(String(512), nullable=False),
    )
    role: str = Field(
        default=ROLE_USER,
        sa_column=Column(String(16), nullable=False, server_default=ROLE_USER),
    )
    is_verified: bool = Field(
        default=False,
        sa_column=Column(Boolean, nullable=False, server_default=text("false")),
    )
    verification_code: str | None = Field(
        default=None, sa_column=Column(String(64), nullable=True)
    )
    reset_token: str | None = Field(
        default=None, sa_column=Column(String(128), nullable=True)
    )
    reset_token_expires_at: datetime | None = Field(
        default=None, sa_column=Column(DateTime(timezone=True), nullable=True)
    )
    new_message_popup: bool = Field(
        default=True,
        sa_column=Column(Boolean, nullable=False, server_default=text("true")),
    )
    unread_message: bool = Field(
        default=False,
        sa_column=Column(Boolean, nullable=False, server_default=text("false")),
    )
    unread_notification: bool = Field(
        default=False,
        sa_column=Column(Boolean, nullable=False, server_default=text("false")),
    )
    status: str = Field(
        default=STATUS_ACTIVE,
        sa_column=Column(String(16), nullable=False, server_default=STATUS_ACTIVE, index=True),
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

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    @property
    def is_active(self) -> bool:
        return self.status == STATUS_ACTIVE
