"""Per-user sliding-window admission control."""

import asyncio
import time
from collections import defaultdict, deque
from collections.abc import Callable
from typing import Protocol

from loguru import logger

from .exceptions import RateLimitExceeded


class RateLimitBackend(Protocol):
    """Protocol for rate limit backend implementations."""

    async def check_and_increment(
        self, key: str, limit: int, window_seconds: float
    ) -> tuple[bool, int]:
        """Check if request is allowed and increment counter.

        Returns:
            tuple: (is_allowed, current_count)
        """
        ...

    async def get_remaining(self, key: str, limit: int, window_seconds: float) -> int:
        """Get remaining requests in current window."""
        ...

    async def reset(self, key: str) -> None:
        """Reset rate limit for a key."""
        ...


class InMemoryRateLimitBackend:
    """Single-process backend. State lives in memory and is lost on restart.

    Several instances behind a load balancer each keep their own windows;
    a shared store needs another ``RateLimitBackend``.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self.requests: dict[str, deque[float]] = defaultdict(deque)
        self._clock = clock
        self._lock = asyncio.Lock()
        logger.info("In-memory rate limit backend initialized")

    def _prune(self, key: str, window_seconds: float, now: float) -> deque[float]:
        window = self.requests[key]
        while window and window[0] <= now - window_seconds:
            window.popleft()
        return window

    async def check_and_increment(
        self, key: str, limit: int, window_seconds: float
    ) -> tuple[bool, int]:
        """Check and consume one slot atomically."""
        async with self._lock:
            now = self._clock()
            window = self._prune(key, window_seconds, now)
            if len(window) >= limit:
                return False, len(window)
            window.append(now)
            return True, len(window)

    async def get_remaining(self, key: str, limit: int, window_seconds: float) -> int:
        async with self._lock:
            window = self._prune(key, window_seconds, self._clock())
            return max(0, limit - len(window))

    async def reset(self, key: str) -> None:
        async with self._lock:
            self.requests.pop(key, None)


class RateLimiter:
    """Admission control gating entry into the orchestrator."""

    def __init__(
        self,
        backend: RateLimitBackend | None = None,
        limit: int = 10,
        window_seconds: float = 60.0,
    ) -> None:
        self.backend = backend or InMemoryRateLimitBackend()
        self.limit = limit
        self.window_seconds = window_seconds

    async def try_admit(self, user_id: str) -> bool:
        """Consume one admission for the user if any is left."""
        allowed, current = await self.backend.check_and_increment(
            user_id, self.limit, self.window_seconds
        )
        if allowed:
            logger.debug(f"Admitted {user_id}: {current}/{self.limit}")
        else:
            logger.warning(f"Rate limit exceeded for {user_id}: {current}/{self.limit}")
        return allowed

    async def remaining(self, user_id: str) -> int:
        return await self.backend.get_remaining(user_id, self.limit, self.window_seconds)

    async def ensure_capacity(self, user_id: str) -> None:
        """Raise ``RateLimitExceeded`` without consuming when nothing is left."""
        if await self.remaining(user_id) == 0:
            raise RateLimitExceeded(
                f"Rate limit of {self.limit} messages per {int(self.window_seconds)}s exceeded"
            )

    async def reset(self, user_id: str) -> None:
        await self.backend.reset(user_id)


def create_rate_limiter() -> RateLimiter:
    """Factory function to create rate limiter based on configuration."""
    from .config import settings

    logger.info(f"Using in-memory rate limiter: {settings.rate_limit_per_minute}/minute")
    return RateLimiter(InMemoryRateLimitBackend(), limit=settings.rate_limit_per_minute)
