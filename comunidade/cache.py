"""Redis cache utility functions.

Every helper degrades to a no-op when Redis is not configured or unreachable;
callers always have a database fallback.
"""

from __future__ import annotations

import logging
import os

import redis

logger = logging.getLogger(__name__)

# Redis connection
_redis_client: redis.Redis | None = None


def get_redis_client() -> redis.Redis | None:
    """
    Get or create Redis client instance.

    Returns None if REDIS_URL is not set or the connection fails.
    """
    global _redis_client

    if _redis_client is not None:
        return _redis_client

    redis_url = os.getenv("REDIS_URL")
    if not redis_url:
        return None

    try:
        client = redis.from_url(redis_url, decode_responses=True)
        # Test connection
        client.ping()
        logger.info("Redis cache connected successfully")
        _redis_client = client
        return _redis_client
    except redis.RedisError as e:
        logger.warning(f"Redis cache unavailable: {e}. Continuing without cache.")
        return None


def cache_get_int(key: str) -> int | None:
    client = get_redis_client()
    if not client:
        return None

    try:
        value = client.get(key)
        if value is None:
            return None
        return int(value)
    except (redis.RedisError, ValueError) as e:
        logger.warning(f"Cache get error for key '{key}': {e}")
        return None


def cache_set_int(key: str, value: int, ttl: int = 3600) -> bool:
    client = get_redis_client()
    if not client:
        return False

    try:
        client.setex(key, ttl, int(value))
        return True
    except redis.RedisError as e:
        logger.warning(f"Cache set error for key '{key}': {e}")
        return False


def cache_incr(key: str, amount: int = 1) -> None:
    """
    Increment a counter only if it is already cached.

    A missing key means the next read recomputes from the database, so creating
    it here would publish a partial count.
    """
    client = get_redis_client()
    if not client:
        return

    try:
        if client.exists(key):
            client.incrby(key, amount)
    except redis.RedisError as e:
        logger.warning(f"Cache incr error for key '{key}': {e}")


def cache_decr(key: str, amount: int = 1) -> None:
    client = get_redis_client()
    if not client:
        return

    try:
        if client.exists(key):
            new_value = client.decrby(key, amount)
            if new_value < 0:
                client.set(key, 0, keepttl=True)
    except redis.RedisError as e:
        logger.warning(f"Cache decr error for key '{key}': {e}")


def rate_limit_check(key: str, limit: int, window_seconds: int = 3600) -> bool:
    """
    Check and increment a fixed-window rate limit counter.

    Returns True if the action is allowed. Fails open when Redis is unavailable.
    """
    client = get_redis_client()
    if not client:
        return True

    try:
        pipe = client.pipeline()
        pipe.incr(key)
        pipe.expire(key, window_seconds, nx=True)
        count, _ = pipe.execute()
        return int(count) <= limit
    except redis.RedisError as e:
        logger.warning(f"Rate limit check error for key '{key}': {e}")
        return True
