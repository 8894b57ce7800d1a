"""Request-scoped dependencies shared by the API routers."""

from __future__ import annotations

from collections.abc import AsyncIterator

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from core import AuthenticationError
from db import get_session
from models import User
from services.auth import access_subject, read_access_token


async def get_db() -> AsyncIterator[AsyncSession]:
    async for session in get_session():
        yield session


async def get_current_user(
    request: Request,
    session: AsyncSession = Depends(get_db),
) -> User:
    """Resolve the authenticated user from the access cookie or bearer header."""
    token = read_access_token(request)
    if token is None:
        raise AuthenticationError("Not authenticated")

    user_id = access_subject(token)
    if user_id is None:
        raise AuthenticationError("Invalid or expired token")

    user = await session.get(User, user_id)
    if user is None or not user.is_active:
        raise AuthenticationError("Invalid or expired token")
    return user
