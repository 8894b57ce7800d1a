"""Authentication endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel, EmailStr, Field, field_validator
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_db
from core import create_access_token
from services.auth import (
    authenticate,
    issue_access_cookie,
    register_account,
    revoke_access_cookie,
)

from .schemas import CamelModel, CurrentUser, Envelope, MessageOut, success

router = APIRouter(prefix="/auth", tags=["auth"])


class RegisterRequest(BaseModel):
    username: str = Field(min_length=3, max_length=30)
    email: EmailStr
    password: str = Field(min_length=8, max_length=128)
    name: str = Field(min_length=1, max_length=80)

    @field_validator("username")
    @classmethod
    def _reject_email_like_username(cls, value: str) -> str:
        normalized = value.strip()
        if "@" in normalized:
            raise ValueError("Username cannot contain '@'")
        return normalized


class LoginRequest(BaseModel):
    # One field carries either the username or the e-mail address.
    username: str = Field(min_length=3, max_length=255)
    password: str = Field(min_length=8, max_length=128)


class TokenOut(CamelModel):
    access_token: str
    token_type: str = "bearer"
    user: CurrentUser


@router.post(
    "/register",
    status_code=status.HTTP_201_CREATED,
    response_model=Envelope[CurrentUser],
)
async def register(
    payload: RegisterRequest,
    session: AsyncSession = Depends(get_db),
) -> Envelope[CurrentUser]:
    user = await register_account(
        session,
        username=payload.username,
        email=str(payload.email),
        password=payload.password,
        name=payload.name,
    )
    return success(CurrentUser.model_validate(user))


@router.post("/login", response_model=Envelope[TokenOut])
async def login(
    payload: LoginRequest,
    response: Response,
    session: AsyncSession = Depends(get_db),
) -> Envelope[TokenOut]:
    user = await authenticate(
        session,
        identifier=payload.username,
        password=payload.password,
    )
    access_token = create_access_token(user.id)
    issue_access_cookie(response, access_token)
    return success(
        TokenOut(access_token=access_token, user=CurrentUser.model_validate(user))
    )


@router.post("/logout", response_model=Envelope[MessageOut])
async def logout(response: Response) -> Envelope[MessageOut]:
    revoke_access_cookie(response)
    return success(MessageOut(message="Logged out"))
