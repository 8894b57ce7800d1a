"""Shared async Redis client."""

from __future__ import annotations

from functools import lru_cache

from redis.asyncio import Redis

from core import settings


@lru_cache
def get_redis_client() -> Redis:
    """Return a cached async Redis client built from settings."""
    return Redis.from_url(settings.redis_url, decode_responses=False)
