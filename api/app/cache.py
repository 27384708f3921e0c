"""Optional Redis connection shared by the summary cache and rate limiting.

Everything here is fail-open: with REDIS_URL unset or Redis down, reads miss,
writes are dropped and callers fall back to computing from the database.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import redis

from . import settings

logger = logging.getLogger(__name__)

_redis_client: redis.Redis | None = None


def get_redis_client() -> redis.Redis | None:
    """Connected client, or None when Redis is unconfigured or unreachable."""
    global _redis_client

    if _redis_client is None and settings.REDIS_URL:
        client = redis.from_url(settings.REDIS_URL, decode_responses=True)
        try:
            client.ping()
        except redis.RedisError as e:
            logger.warning(f"Redis unavailable ({e}); continuing without it")
            return None
        logger.info("Connected to Redis")
        _redis_client = client

    return _redis_client


def reset_redis_client() -> None:
    """Forget the cached connection (after REDIS_URL changes)."""
    global _redis_client
    _redis_client = None


def cache_get(key: str) -> Any | None:
    """Decoded JSON value stored under `key`, or None on a miss or error."""
    client = get_redis_client()
    if client is None:
        return None

    try:
        raw = client.get(key)
    except redis.RedisError as e:
        logger.warning(f"Cache read failed for {key}: {e}")
        return None
    if raw is None:
        return None

    try:
        return json.loads(raw)
    except ValueError:
        logger.warning(f"Dropping undecodable cache entry {key}")
        return None


def cache_set(key: str, value: Any, ttl: int) -> bool:
    """Store `value` as JSON for `ttl` seconds. Returns False if not stored."""
    client = get_redis_client()
    if client is None:
        return False

    try:
        client.setex(key, ttl, json.dumps(value))
    except (redis.RedisError, TypeError) as e:
        logger.warning(f"Cache write failed for {key}: {e}")
        return False
    return True


def cache_invalidate(pattern: str) -> int:
    """Delete every key matching a glob pattern; returns the number deleted."""
    client = get_redis_client()
    if client is None:
        return 0

    try:
        keys = list(client.scan_iter(match=pattern))
        deleted = client.delete(*keys) if keys else 0
    except redis.RedisError as e:
        logger.warning(f"Cache invalidation failed for {pattern}: {e}")
        return 0

    if deleted:
        logger.info(f"Invalidated {deleted} cache entries matching {pattern}")
    return deleted
