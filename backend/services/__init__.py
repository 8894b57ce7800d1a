"""Domain services behind the HTTP API."""

from .rate_limiter import (
    RateLimitDecision,
    RateLimitMiddleware,
    RateLimiter,
    build_rate_limiter,
    client_key,
)

__all__ = [
    "RateLimitDecision",
    "RateLimitMiddleware",
    "RateLimiter",
    "build_rate_limiter",
    "client_key",
]
