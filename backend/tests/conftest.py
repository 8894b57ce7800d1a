"""Pytest fixtures for the social graph backend."""

from collections.abc import AsyncIterator, Iterator
from pathlib import Path

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from sqlmodel import SQLModel

import models  # noqa: F401  registers every table on SQLModel.metadata
from api.deps import get_db
from app import create_app
from db import build_engine
from services import RateLimiter
from services.notifications import InMemoryNotificationTransport, set_notification_transport


@pytest.fixture()
def test_database_url(tmp_path: Path) -> str:
    """Return a file-backed SQLite URL unique to the current test."""
    return f"sqlite+aiosqlite:///{tmp_path / 'backend-test.db'}"


@pytest_asyncio.fixture()
async def test_engine(test_database_url: str) -> AsyncIterator[AsyncEngine]:
    """Create an async engine with the full schema applied."""
    engine = build_engine(test_database_url)
    async with engine.begin() as connection:
        await connection.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture()
def session_maker(test_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Return a session factory bound to the test engine."""
    return async_sessionmaker(test_engine, expire_on_commit=False)


class CountingStore:
    """Dict-backed stand-in for the Redis INCR/EXPIRE pair."""

    def __init__(self) -> None:
        self.counts: dict[str, int] = {}
        self.ttls: dict[str, int] = {}

    async def incr(self, key: str) -> int:
        self.counts[key] = self.counts.get(key, 0) + 1
        return self.counts[key]

    async def expire(self, key: str, ttl: int) -> bool:
        self.ttls[key] = ttl
        return True


@pytest.fixture()
def counting_store() -> CountingStore:
    return CountingStore()


@pytest.fixture()
def app(
    session_maker: async_sessionmaker[AsyncSession],
    counting_store: CountingStore,
) -> Iterator[FastAPI]:
    """Create the FastAPI app with a test database and an in-memory rate limiter."""
    application = create_app()
    application.state.rate_limiter = RateLimiter(
        counting_store, limit=1_000, window_seconds=60
    )

    async def override_get_db() -> AsyncIterator[AsyncSession]:
        async with session_maker() as session:
            yield session

    application.dependency_overrides[get_db] = override_get_db
    yield application
    application.dependency_overrides.clear()


@pytest_asyncio.fixture()
async def async_client(app: FastAPI) -> AsyncIterator[AsyncClient]:
    """Return an HTTPX async client bound to the FastAPI app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client


@pytest_asyncio.fixture()
async def db_session(
    session_maker: async_sessionmaker[AsyncSession],
) -> AsyncIterator[AsyncSession]:
    """Provide a raw database session to tests."""
    async with session_maker() as session:
        yield session


@pytest.fixture(autouse=True)
def notification_transport() -> Iterator[InMemoryNotificationTransport]:
    transport = InMemoryNotificationTransport()
    set_notification_transport(transport)
    yield transport
    set_notification_transport(None)

