# common/cache.py
import logging
import os
import time
from typing import Optional

import redis

logger = logging.getLogger(__name__)

# Seconds to wait before trying an unreachable Redis again
RETRY_AFTER_SECONDS = float(os.getenv("REDIS_RETRY_AFTER", "30"))

_redis_client: Optional[redis.Redis] = None
_unreachable_until = 0.0


def get_redis_client() -> Optional[redis.Redis]:
    """
    Return a Redis client if REDIS_URL is configured, otherwise None.
    Fails gracefully (no invalidation) if Redis is not reachable, and does
    not try again until RETRY_AFTER_SECONDS have passed.
    """
    global _redis_client, _unreachable_until

    if _redis_client is not None:
        return _redis_client

    redis_url = os.getenv("REDIS_URL")
    if not redis_url:
        return None

    if time.monotonic() < _unreachable_until:
        return None

    try:
        client = redis.from_url(redis_url, decode_responses=True)
        # Lightweight health check
        client.ping()
    except redis.RedisError:
        logger.warning("Redis at %s unreachable, view invalidation disabled", redis_url)
        _redis_client = None
        _unreachable_until = time.monotonic() + RETRY_AFTER_SECONDS
        return None

    _redis_client = client
    return _redis_client


def delete_prefix(prefix: str) -> int:
    """
    Delete all keys starting with prefix and return how many were removed.
    Example: prefix='rooms:' or 'room:R101'.
    """
    client = get_redis_client()
    if client is None:
        return 0

    removed = 0
    for key in client.scan_iter(prefix + "*"):
        removed += client.delete(key)
    return removed


def invalidate_views(*prefixes: str) -> None:
    """
    Tell dependent views that data under ``prefixes`` changed.

    Fire-and-forget: Redis errors are logged, never raised to the caller.
    """
    for prefix in prefixes:
        try:
            removed = delete_prefix(prefix)
        except redis.RedisError:
            logger.warning("Failed to invalidate cached views under %s", prefix, exc_info=True)
            continue
        logger.debug("Invalidated %d cached views under %s", removed, prefix)
