"""Request throttling tests."""

from __future__ import annotations

import pytest
from fastapi import FastAPI
from httpx import AsyncClient
from starlette.requests import Request

from core import create_access_token
from services import RateLimiter, client_key

THROTTLED_PATH = "/api/v1/auth/logout"


class _UnreachableStore:
    async def incr(self, key: str) -> int:
        raise ConnectionError("redis down")

    async def expire(self, key: str, ttl: int) -> bool:  # pragma: no cover
        return True


def _request(headers: dict[str, str] | None = None, host: str = "203.0.113.7") -> Request:
    return Request(
        {
            "type": "http",
            "method": "GET",
            "path": "/",
            "query_string": b"",
            "headers": [
                (name.lower().encode("latin-1"), value.encode("latin-1"))
                for name, value in (headers or {}).items()
            ],
            "client": (host, 50000),
        }
    )


def test_client_key_uses_cookie_subject() -> None:
    token = create_access_token("cookie-user")
    assert client_key(_request({"Cookie": f"access_token={token}"})) == "user:cookie-user"


def test_client_key_uses_bearer_subject() -> None:
    token = create_access_token("bearer-user")
    request = _request({"Authorization": f"Bearer {token}"})
    assert client_key(request) == "user:bearer-user"


def test_client_key_ignores_invalid_token() -> None:
    request = _request({"Cookie": "access_token=garbage"})
    assert client_key(request) == "host:203.0.113.7"


@pytest.mark.asyncio
async def test_requests_over_the_limit_get_429(
    async_client: AsyncClient, app: FastAPI, counting_store
) -> None:
    app.state.rate_limiter = RateLimiter(counting_store, limit=2, window_seconds=3600)

    statuses = [(await async_client.post(THROTTLED_PATH)).status_code for _ in range(3)]

    assert statuses == [200, 200, 429]
    rejected = await async_client.post(THROTTLED_PATH)
    assert rejected.json() == {
        "status": "failed",
        "message": "Too many requests, try again later",
    }
    assert 0 < int(rejected.headers["retry-after"]) <= 3600
    assert list(counting_store.ttls.values()) == [3600]


@pytest.mark.asyncio
async def test_zero_limit_disables_throttling(
    async_client: AsyncClient, app: FastAPI, counting_store
) -> None:
    app.state.rate_limiter = RateLimiter(counting_store, limit=0, window_seconds=30)

    for _ in range(4):
        assert (await async_client.post(THROTTLED_PATH)).status_code == 200
    assert counting_store.counts == {}


@pytest.mark.asyncio
async def test_health_check_is_never_throttled(
    async_client: AsyncClient, app: FastAPI, counting_store
) -> None:
    app.state.rate_limiter = RateLimiter(counting_store, limit=1, window_seconds=30)

    for _ in range(3):
        assert (await async_client.get("/api/v1/health")).status_code == 200


@pytest.mark.asyncio
async def test_store_outage_fails_open(
    async_client: AsyncClient, app: FastAPI, caplog
) -> None:
    app.state.rate_limiter = RateLimiter(_UnreachableStore(), limit=1, window_seconds=30)

    with caplog.at_level("WARNING", logger="services.rate_limiter"):
        response = await async_client.post(THROTTLED_PATH)

    assert response.status_code == 200
    assert any("Rate limiter unavailable" in r.getMessage() for r in caplog.records)
