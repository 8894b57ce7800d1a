"""Tests for registration, login and password changes."""

from uuid import uuid4

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core import verify_password
from models import User


def make_user_payload(prefix: str) -> dict[str, str]:
    suffix = uuid4().hex[:6]
    return {
        "username": f"{prefix}_{suffix}",
        "email": f"{prefix}_{suffix}@example.com",
        "password": "Sup3rSecret!",
        "name": prefix.capitalize(),
    }


@pytest.mark.asyncio
async def test_register_returns_envelope(async_client: AsyncClient, db_session: AsyncSession):
    payload = make_user_payload("alice")

    response = await async_client.post("/api/v1/auth/register", json=payload)

    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "success"
    assert body["data"]["username"] == payload["username"]
    assert body["data"]["email"] == payload["email"]
    assert body["data"]["unreadNotification"] is False
    assert "passwordHash" not in body["data"]

    result = await db_session.execute(select(User).where(User.username == payload["username"]))
    user = result.scalar_one()
    assert verify_password(payload["password"], user.password_hash)


@pytest.mark.asyncio
async def test_register_rejects_duplicate_username(async_client: AsyncClient):
    payload = make_user_payload("dup")
    first = await async_client.post("/api/v1/auth/register", json=payload)
    assert first.status_code == 201

    second_payload = {**payload, "email": f"other_{uuid4().hex[:6]}@example.com"}
    second = await async_client.post("/api/v1/auth/register", json=second_payload)

    assert second.status_code == 409
    assert second.json() == {
        "status": "failed",
        "message": "User with that username or email already exists",
    }


@pytest.mark.asyncio
async def test_register_validation_error_uses_failure_envelope(async_client: AsyncClient):
    payload = make_user_payload("short")
    payload["password"] = "short"

    response = await async_client.post("/api/v1/auth/register", json=payload)

    assert response.status_code == 400
    assert response.json()["status"] == "failed"
    assert "password" in response.json()["message"]


@pytest.mark.asyncio
async def test_login_with_username_or_email(async_client: AsyncClient):
    payload = make_user_payload("login")
    await async_client.post("/api/v1/auth/register", json=payload)

    by_username = await async_client.post(
        "/api/v1/auth/login",
        json={"username": payload["username"], "password": payload["password"]},
    )
    assert by_username.status_code == 200
    assert by_username.json()["data"]["tokenType"] == "bearer"
    assert "access_token" in by_username.cookies

    by_email = await async_client.post(
        "/api/v1/auth/login",
        json={"username": payload["email"].upper(), "password": payload["password"]},
    )
    assert by_email.status_code == 200
    assert by_email.json()["data"]["user"]["username"] == payload["username"]


@pytest.mark.asyncio
async def test_login_rejects_wrong_password(async_client: AsyncClient):
    payload = make_user_payload("wrong")
    await async_client.post("/api/v1/auth/register", json=payload)

    response = await async_client.post(
        "/api/v1/auth/login",
        json={"username": payload["username"], "password": "NotTheRightOne"},
    )

    assert response.status_code == 401
    assert response.json() == {"status": "failed", "message": "Invalid credentials"}


@pytest.mark.asyncio
async def test_bearer_token_authenticates(async_client: AsyncClient):
    payload = make_user_payload("bearer")
    await async_client.post("/api/v1/auth/register", json=payload)
    login_resp = await async_client.post(
        "/api/v1/auth/login",
        json={"username": payload["username"], "password": payload["password"]},
    )
    token = login_resp.json()["data"]["accessToken"]
    async_client.cookies.clear()

    response = await async_client.get(
        "/api/v1/me",
        headers={"Authorization": f"Bearer {token}"},
    )

    assert response.status_code == 200
    assert response.json()["data"]["username"] == payload["username"]


@pytest.mark.asyncio
async def test_me_requires_authentication(async_client: AsyncClient):
    response = await async_client.get("/api/v1/me")

    assert response.status_code == 401
    assert response.json()["status"] == "failed"


@pytest.mark.asyncio
async def test_logout_clears_cookie(async_client: AsyncClient):
    payload = make_user_payload("logout")
    await async_client.post("/api/v1/auth/register", json=payload)
    await async_client.post(
        "/api/v1/auth/login",
        json={"username": payload["username"], "password": payload["password"]},
    )

    logout_resp = await async_client.post("/api/v1/auth/logout")
    assert logout_resp.status_code == 200

    response = await async_client.get("/api/v1/me")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_change_password(async_client: AsyncClient):
    payload = make_user_payload("pw")
    await async_client.post("/api/v1/auth/register", json=payload)
    await async_client.post(
        "/api/v1/auth/login",
        json={"username": payload["username"], "password": payload["password"]},
    )

    wrong = await async_client.patch(
        "/api/v1/me/password",
        json={"currentPassword": "NotTheRightOne", "newPassword": "An0therSecret!"},
    )
    assert wrong.status_code == 401

    changed = await async_client.patch(
        "/api/v1/me/password",
        json={"currentPassword": payload["password"], "newPassword": "An0therSecret!"},
    )
    assert changed.status_code == 200

    old_login = await async_client.post(
        "/api/v1/auth/login",
        json={"username": payload["username"], "password": payload["password"]},
    )
    assert old_login.status_code == 401
    new_login = await async_client.post(
        "/api/v1/auth/login",
        json={"username": payload["username"], "password": "An0therSecret!"},
    )
    assert new_login.status_code == 200


@pytest.mark.asyncio
async def test_health_endpoint(async_client: AsyncClient):
    response = await async_client.get("/api/v1/health")

    assert response.status_code == 200
    assert response.json() == {"status": "success", "data": "ok"}


@pytest.mark.asyncio
async def test_login_rejects_inactive_account(
    async_client: AsyncClient, db_session: AsyncSession
):
    payload = make_user_payload("dormant")
    await async_client.post("/api/v1/auth/register", json=payload)
    user = (
        await db_session.execute(select(User).where(User.username == payload["username"]))
    ).scalar_one()
    user.status = "inactive"
    await db_session.commit()

    response = await async_client.post(
        "/api/v1/auth/login",
        json={"username": payload["username"], "password": payload["password"]},
    )

    assert response.status_code == 401
    assert response.json()["message"] == "This account is not active"
