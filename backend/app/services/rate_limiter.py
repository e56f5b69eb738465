"""Per-identity booking admission control.

Fixed windows: the first request opens a window of `window_seconds`, and at
most `max_requests` attempts are admitted until it expires. The in-memory
limiter is process-local, so running several instances multiplies the
effective quota by the instance count. Use the Redis backend for a shared
window.
"""

import logging
import threading
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass

import redis.asyncio as redis

from app.config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    remaining: int
    reset_at: float  # clock seconds when the current window closes

    def retry_after(self, now: float) -> int:
        return max(0, int(self.reset_at - now + 0.999))


@dataclass
class _Window:
    count: int
    reset_at: float


def decide(window: _Window | None, now: float, window_seconds: float, max_requests: int) -> tuple[_Window, RateLimitDecision]:
    """Pure admission step: (previous window, clock) -> (next window, decision)."""
    if window is None or now > window.reset_at:
        window = _Window(count=1, reset_at=now + window_seconds)
        return window, RateLimitDecision(True, max_requests - 1, window.reset_at)

    if window.count >= max_requests:
        return window, RateLimitDecision(False, 0, window.reset_at)

    window = _Window(count=window.count + 1, reset_at=window.reset_at)
    return window, RateLimitDecision(True, max_requests - window.count, window.reset_at)


class RateLimiter(ABC):
    window_seconds: float
    max_requests: int

    @abstractmethod
    async def admit(self, identity: str) -> RateLimitDecision:
        ...

    @abstractmethod
    def now(self) -> float:
        ...

    async def close(self):
        pass


class InMemoryRateLimiter(RateLimiter):
    """Process-local windows guarded by a lock so same-identity increments never race."""

    def __init__(
        self,
        window_seconds: float = 60,
        max_requests: int = 10,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.window_seconds = window_seconds
        self.max_requests = max_requests
        self._clock = clock
        self._windows: dict[str, _Window] = {}
        self._lock = threading.Lock()
        self._last_prune = clock()

    def now(self) -> float:
        return self._clock()

    async def admit(self, identity: str) -> RateLimitDecision:
        return self.admit_at(identity, self._clock())

    def admit_at(self, identity: str, now: float) -> RateLimitDecision:
        with self._lock:
            self._prune(now)
            window, decision = decide(
                self._windows.get(identity), now, self.window_seconds, self.max_requests
            )
            self._windows[identity] = window
            return decision

    def _prune(self, now: float):
        # Drop closed windows at most once per window length
        if now - self._last_prune < self.window_seconds:
            return
        expired = [k for k, w in self._windows.items() if now > w.reset_at]
        for key in expired:
            del self._windows[key]
        self._last_prune = now

    def reset(self):
        with self._lock:
            self._windows.clear()


class RedisRateLimiter(RateLimiter):
    """Shared windows in Redis (INCR + PEXPIRE). Degrades to in-memory if Redis is down."""

    KEY_PREFIX = "ratelimit:booking:"

    def __init__(
        self,
        url: str,
        window_seconds: float = 60,
        max_requests: int = 10,
        client: redis.Redis | None = None,
    ):
        self.window_seconds = window_seconds
        self.max_requests = max_requests
        self._url = url
        self._redis = client
        self._fallback = InMemoryRateLimiter(window_seconds, max_requests, clock=time.time)

    def now(self) -> float:
        return time.time()

    async def _get_redis(self) -> redis.Redis:
        if self._redis is None:
            self._redis = redis.from_url(self._url, encoding="utf-8", decode_responses=True)
        return self._redis

    async def admit(self, identity: str) -> RateLimitDecision:
        key = f"{self.KEY_PREFIX}{identity}"
        window_ms = int(self.window_seconds * 1000)
        try:
            r = await self._get_redis()
            count = int(await r.incr(key))
            if count == 1:
                await r.pexpire(key, window_ms)
                ttl_ms = window_ms
            else:
                ttl_ms = int(await r.pttl(key))
                if ttl_ms < 0:
                    # Key lost its expiry; restart the window rather than lock the identity out
                    await r.pexpire(key, window_ms)
                    ttl_ms = window_ms
        except (redis.RedisError, OSError) as e:
            logger.warning(f"Redis unavailable, using in-process rate limit: {e}")
            return await self._fallback.admit(identity)

        reset_at = self.now() + ttl_ms / 1000
        if count > self.max_requests:
            return RateLimitDecision(False, 0, reset_at)
        return RateLimitDecision(True, self.max_requests - count, reset_at)

    async def close(self):
        if self._redis:
            await self._redis.aclose()
            self._redis = None


def build_rate_limiter() -> RateLimiter:
    if settings.rate_limit_backend == "redis":
        logger.info("Booking rate limit backed by Redis")
        return RedisRateLimiter(
            settings.redis_url,
            window_seconds=settings.rate_limit_window_seconds,
            max_requests=settings.rate_limit_max_requests,
        )
    return InMemoryRateLimiter(
        window_seconds=settings.rate_limit_window_seconds,
        max_requests=settings.rate_limit_max_requests,
    )


rate_limiter = build_rate_limiter()
