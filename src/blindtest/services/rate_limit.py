"""Rate limiting for authentication endpoints (in-memory sliding window)."""

import asyncio
import time
from collections import defaultdict, deque
from dataclasses import dataclass
from enum import Enum

from fastapi import Request


class RateLimitType(str, Enum):
    """Endpoint categories with their own budgets."""

    AUTH = "auth"  # password sign-in / sign-up
    PASSKEY = "passkey"  # passkey ceremonies
    VERIFICATION = "verification"  # outgoing verification emails


@dataclass
class RateLimitConfig:
    """Configuration for a rate limit type."""

    requests: int
    window_seconds: int


RATE_LIMIT_CONFIG: dict[RateLimitType, RateLimitConfig] = {
    RateLimitType.AUTH: RateLimitConfig(requests=10, window_seconds=60),
    RateLimitType.PASSKEY: RateLimitConfig(requests=20, window_seconds=60),
    RateLimitType.VERIFICATION: RateLimitConfig(requests=3, window_seconds=60),
}


@dataclass
class RateLimitResult:
    """Result of a rate limit check."""

    success: bool
    limit: int
    remaining: int
    reset: int  # Unix timestamp in seconds


class InMemoryRateLimiter:
    """Per-process sliding window limiter.

    Counts are not shared between workers; each process enforces its own budget.
    """

    def __init__(self) -> None:
        self._hits: dict[str, deque[float]] = defaultdict(deque)
        self._lock = asyncio.Lock()

    async def check(self, identifier: str, limit_type: RateLimitType) -> RateLimitResult:
        """Record a hit for ``identifier`` unless its window is already full."""
        config = RATE_LIMIT_CONFIG[limit_type]
        key = f"{limit_type.value}:{identifier}"
        now = time.time()

        async with self._lock:
            hits = self._hits[key]
            while hits and hits[0] <= now - config.window_seconds:
                hits.popleft()

            if len(hits) >= config.requests:
                return RateLimitResult(
                    success=False,
                    limit=config.requests,
                    remaining=0,
                    reset=int(hits[0] + config.window_seconds),
                )

            hits.append(now)
            return RateLimitResult(
                success=True,
                limit=config.requests,
                remaining=config.requests - len(hits),
                reset=int(hits[0] + config.window_seconds),
            )

    def reset(self) -> None:
        """Forget all recorded hits. Useful for testing."""
        self._hits.clear()


_rate_limiter = InMemoryRateLimiter()


def get_rate_limiter() -> InMemoryRateLimiter:
    """Get the global rate limiter instance."""
    return _rate_limiter


def get_client_ip(request: Request) -> str | None:
    """Extract the client IP, honouring common proxy headers."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()

    for header in ("x-real-ip", "cf-connecting-ip"):
        value = request.headers.get(header)
        if value:
            return value.strip()

    if request.client:
        return request.client.host
    return None


async def check_rate_limit(request: Request, limit_type: RateLimitType) -> RateLimitResult:
    """Check the rate limit for the request's client IP."""
    identifier = f"ip:{get_client_ip(request) or 'unknown'}"
    return await get_rate_limiter().check(identifier, limit_type)


def rate_limit_headers(result: RateLimitResult) -> dict[str, str]:
    """Build X-RateLimit-* headers (plus Retry-After when blocked)."""
    headers = {
        "X-RateLimit-Limit": str(result.limit),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": str(result.reset),
    }
    if not result.success:
        headers["Retry-After"] = str(max(0, result.reset - int(time.time())))
    return headers
