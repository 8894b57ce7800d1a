"""Notification inbox endpoints."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_current_user, get_db
from models import User
from services.notifications import list_notifications, mark_all_read

from .pagination import PageQuery
from .schemas import CamelModel, Envelope, UserSummary, success, user_summary

router = APIRouter(prefix="/notifications", tags=["notifications"])


class NotificationOut(CamelModel):
    id: int
    kind: str
    actor: UserSummary
    post_id: int | None = None
    comment_id: int | None = None
    text: str | None = None
    is_read: bool
    created_at: datetime


class NotificationsPageOut(CamelModel):
    notifications: list[NotificationOut]
    unread_count: int
    is_last_page: bool


class MarkReadOut(CamelModel):
    updated: int


@router.get("", response_model=Envelope[NotificationsPageOut])
async def read_notifications(
    page: PageQuery = 1,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> Envelope[NotificationsPageOut]:
    notification_page = await list_notifications(
        session,
        user_id=current_user.id,
        page=page,
    )
    return success(
        NotificationsPageOut(
            notifications=[
                NotificationOut(
                    id=notification.id,
                    kind=notification.kind,
                    actor=user_summary(actor),
                    post_id=notification.post_id,
                    comment_id=notification.comment_id,
                    text=notification.text,
                    is_read=notification.is_read,
                    created_at=notification.created_at,
                )
                for notification, actor in notification_page.items
            ],
            unread_count=notification_page.unread_count,
            is_last_page=notification_page.is_last_page,
        )
    )


@router.post("/read", response_model=Envelope[MarkReadOut])
async def read_all_notifications(
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> Envelope[MarkReadOut]:
    updated = await mark_all_read(session, user=current_user)
    return success(MarkReadOut(updated=updated))
