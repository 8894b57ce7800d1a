"""Fixed-window request throttling backed by Redis."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Iterable, Protocol

from fastapi import status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.types import ASGIApp

from core import settings

from .auth.tokens import access_subject, read_access_token
from .redis_client import get_redis_client

TOO_MANY_REQUESTS_MESSAGE = "Too many requests, try again later"

logger = logging.getLogger(__name__)


class CounterStore(Protocol):
    async def incr(self, key: str) -> int: ...

    async def expire(self, key: str, ttl: int) -> object: ...


@dataclass(slots=True, frozen=True)
class RateLimitDecision:
    allowed: bool
    retry_after: int = 0


def client_key(request: Request) -> str:
    """Key requests by user when a valid access token is present, else by remote host."""
    token = read_access_token(request)
    subject = access_subject(token) if token else None
    if subject:
        return f"user:{subject}"
    if request.client and request.client.host:
        return f"host:{request.client.host}"
    return "host:unknown"


class RateLimiter:
    """Counts hits per key in windows of ``window_seconds``.

    A limit or window of zero disables throttling.
    """

    def __init__(
        self,
        store: CounterStore,
        *,
        limit: int,
        window_seconds: int,
        namespace: str = "throttle",
    ) -> None:
        self.store = store
        self.limit = limit
        self.window_seconds = window_seconds
        self.namespace = namespace

    @property
    def enabled(self) -> bool:
        return self.limit > 0 and self.window_seconds > 0

    async def hit(self, key: str) -> RateLimitDecision:
        if not self.enabled:
            return RateLimitDecision(allowed=True)

        now = int(time.time())
        window, elapsed = divmod(now, self.window_seconds)
        counter = f"{self.namespace}:{window}:{key}"
        hits = await self.store.incr(counter)
        if hits == 1:
            await self.store.expire(counter, self.window_seconds)
        if hits > self.limit:
            return RateLimitDecision(allowed=False, retry_after=self.window_seconds - elapsed)
        return RateLimitDecision(allowed=True)


def build_rate_limiter() -> RateLimiter:
    return RateLimiter(
        get_redis_client(),
        limit=settings.rate_limit_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Rejects requests over the limit with 429.

    The limiter is read from ``app.state.rate_limiter`` on every request, so
    it can be swapped at runtime.
    """

    def __init__(
        self,
        app: ASGIApp,
        exempt_paths: Iterable[str] = (),
        key_func: Callable[[Request], str] = client_key,
    ) -> None:
        super().__init__(app)
        self.exempt_paths = frozenset(exempt_paths)
        self.key_func = key_func

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint):
        limiter: RateLimiter | None = getattr(request.app.state, "rate_limiter", None)
        if limiter is None or request.url.path in self.exempt_paths:
            return await call_next(request)

        key = self.key_func(request)
        try:
            decision = await limiter.hit(key)
        except Exception:
            logger.warning(
                "Rate limiter unavailable, letting request through",
                extra={"key": key},
                exc_info=True,
            )
            return await call_next(request)

        if not decision.allowed:
            return JSONResponse(
                {"status": "failed", "message": TOO_MANY_REQUESTS_MESSAGE},
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                headers={"Retry-After": str(decision.retry_after)},
            )
        return await call_next(request)
