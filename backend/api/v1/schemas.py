"""Response envelope and shared response models."""

from __future__ import annotations

from datetime import datetime
from typing import Generic, Literal, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from models import User

T = TypeVar("T")


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class Envelope(BaseModel, Generic[T]):
    status: Literal["success"] = "success"
    data: T


class MessageOut(CamelModel):
    message: str


class UserSummary(CamelModel):
    id: str
    name: str
    username: str
    avatar: str | None = None
    status: str


class UserProfile(UserSummary):
    role: str
    created_at: datetime | None = None
    followers_count: int = 0
    following_count: int = 0
    is_following: bool = False
    is_blocked: bool = False


class CurrentUser(UserProfile):
    email: str
    is_verified: bool = False
    unread_message: bool = False
    unread_notification: bool = False
    new_message_popup: bool = True


def success(data: T) -> Envelope[T]:
    return Envelope(data=data)


def user_summary(user: User) -> UserSummary:
    return UserSummary.model_validate(user)
