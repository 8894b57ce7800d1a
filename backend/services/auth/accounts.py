"""Account registration, credential checks and password changes."""

from __future__ import annotations

import logging
from typing import Any, cast

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core import (
    AuthenticationError,
    ConflictError,
    ValidationError,
    hash_password,
    needs_rehash,
    verify_password,
)
from db.errors import is_unique_violation
from models import User

MIN_PASSWORD_LENGTH = 8
MAX_PASSWORD_LENGTH = 128
DUPLICATE_ACCOUNT_MESSAGE = "User with that username or email already exists"

logger = logging.getLogger(__name__)


def normalize_email(value: str) -> str:
    return value.strip().lower()


def _lowered_email() -> Any:
    return func.lower(cast(Any, User.email))


def validate_password_strength(password: str) -> None:
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"The password must be at least {MIN_PASSWORD_LENGTH} characters long"
        )
    if len(password) > MAX_PASSWORD_LENGTH:
        raise ValidationError(
            f"The password cannot exceed {MAX_PASSWORD_LENGTH} characters"
        )


async def register_account(
    session: AsyncSession,
    *,
    username: str,
    email: str,
    password: str,
    name: str,
) -> User:
    """Create an active account, raising ConflictError on a taken username or e-mail."""
    validate_password_strength(password)
    email = normalize_email(email)
    taken = await session.scalar(
        select(func.count())
        .select_from(User)
        .where((User.username == username) | (_lowered_email() == email))
    )
    if taken:
        raise ConflictError(DUPLICATE_ACCOUNT_MESSAGE)

    user = User(
        username=username,
        email=email,
        password_hash=hash_password(password),
        name=name.strip(),
    )
    session.add(user)
    try:
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        if is_unique_violation(exc):
            raise ConflictError(DUPLICATE_ACCOUNT_MESSAGE) from exc
        raise
    await session.refresh(user)
    logger.info("User registered", extra={"user_id": user.id})
    return user


async def authenticate(
    session: AsyncSession,
    *,
    identifier: str,
    password: str,
) -> User:
    """Return the active user for a username or e-mail plus password.

    An identifier containing ``@`` is matched case-insensitively against
    e-mail addresses; anything else is an exact username.
    """
    identifier = identifier.strip()
    if "@" in identifier:
        condition = _lowered_email() == normalize_email(identifier)
    else:
        condition = User.username == identifier
    user = (await session.execute(select(User).where(condition).limit(1))).scalar_one_or_none()

    if user is None or not verify_password(password, user.password_hash):
        raise AuthenticationError("Invalid credentials")
    if not user.is_active:
        raise AuthenticationError("This account is not active")

    if needs_rehash(user.password_hash):
        user.password_hash = hash_password(password)
        session.add(user)
        await session.commit()
    return user


async def change_password(
    session: AsyncSession,
    *,
    user: User,
    current_password: str,
    new_password: str,
) -> None:
    if not verify_password(current_password, user.password_hash):
        raise AuthenticationError("Current password is incorrect")
    validate_password_strength(new_password)
    if current_password == new_password:
        raise ValidationError("The new password must differ from the current one")

    user.password_hash = hash_password(new_password)
    session.add(user)
    await session.commit()
    logger.info("Password changed", extra={"user_id": user.id})
