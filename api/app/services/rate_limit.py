"""Rate limiting with a swappable counter store.

The in-memory store only limits within one process; deployments running
several API instances should set REDIS_URL so every instance shares counters.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Protocol

import redis

from ..cache import get_redis_client

logger = logging.getLogger(__name__)


class RateLimitStore(Protocol):
    def hit(self, key: str, limit: int, window_seconds: int) -> tuple[bool, int]:
        """
        Count one request against `key`.

        Returns:
            Tuple of (allowed, remaining)
        """
        ...


class InMemoryRateLimitStore:
    """Fixed-window counters held in process memory."""

    def __init__(self, clock=time.monotonic):
        self._clock = clock
        self._lock = threading.Lock()
        self._windows: dict[str, tuple[float, int]] = {}

    def hit(self, key: str, limit: int, window_seconds: int) -> tuple[bool, int]:
        now = self._clock()
        with self._lock:
            expires_at, count = self._windows.get(key, (0.0, 0))
            if now >= expires_at:
                expires_at, count = now + window_seconds, 0
                self._prune(now)

            if count >= limit:
                self._windows[key] = (expires_at, count)
                return False, 0

            count += 1
            self._windows[key] = (expires_at, count)
            return True, max(0, limit - count)

    def _prune(self, now: float) -> None:
        expired = [key for key, (expires_at, _) in self._windows.items() if now >= expires_at]
        for key in expired:
            del self._windows[key]


class RedisRateLimitStore:
    """Counters in Redis (INCR + EXPIRE), shared across instances."""

    def __init__(self, client: redis.Redis):
        self._client = client

    def hit(self, key: str, limit: int, window_seconds: int) -> tuple[bool, int]:
        try:
            current = self._client.get(key)
            count = int(current) if current else 0

            if count >= limit:
                return False, 0

            pipe = self._client.pipeline()
            pipe.incr(key)
            pipe.expire(key, window_seconds)
            results = pipe.execute()

            return True, max(0, limit - results[0])
        except Exception as e:
            logger.error(f"Rate limit check error for key '{key}': {e}")
            # Fail open - allow request if Redis error
            return True, limit


_store: RateLimitStore | None = None


def get_rate_limit_store() -> RateLimitStore:
    """FastAPI dependency: Redis-backed store when configured, in-memory otherwise."""
    global _store
    if _store is None:
        client = get_redis_client()
        if client is not None:
            _store = RedisRateLimitStore(client)
        else:
            logger.info("Redis not configured, using in-memory rate limiting")
            _store = InMemoryRateLimitStore()
    return _store


def check_rate_limit(
    store: RateLimitStore, key: str, limit: int, window_seconds: int = 60
) -> tuple[bool, int]:
    """
    Check and increment a rate limit counter.

    A non-positive limit disables limiting.

    Args:
        store: Counter store
        key: Counter key (e.g., "ratelimit:blog_view:{ip}")
        limit: Maximum number of requests allowed in the window
        window_seconds: Time window in seconds (default: 60)

    Returns:
        Tuple of (allowed: bool, remaining: int)
    """
    if limit <= 0:
        return True, 0
    return store.hit(key, limit, window_seconds)
