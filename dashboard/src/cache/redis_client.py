"""
Redis client for the latest-reading cache.

Provides a connection helper plus best-effort JSON get/set/delete wrappers.
Connection or command failures are logged but never propagate: callers fall
back to the compute collaborator when the cache is unavailable.

CHANGELOG:
- 2026-10-19: Initial creation
"""

import json
import logging
from typing import Any

import redis.asyncio as redis

logger = logging.getLogger(__name__)


async def get_redis(url: str) -> redis.Redis:
    """Create and return an async Redis client.

    Args:
        url: Redis connection URL.

    Returns:
        redis.Redis: Async Redis client.
    """
    return redis.from_url(url)


async def read_json(url: str, key: str) -> Any | None:
    """Return the decoded JSON value stored at *key*, or None.

    None is returned on a cache miss, an undecodable value, or any Redis
    failure.
    """
    try:
        client = await get_redis(url)
        try:
            cached = await client.get(key)
        finally:
            await client.aclose()
    except Exception:
        logger.warning("Redis read failed for key %s", key, exc_info=True)
        return None

    if cached is None:
        return None
    try:
        return json.loads(cached)
    except ValueError:
        logger.warning("Discarding undecodable cache entry %s", key)
        return None


async def write_json(url: str, key: str, value: Any, ttl_s: int) -> None:
    """Store *value* as JSON at *key* with a TTL (best-effort)."""
    try:
        client = await get_redis(url)
        try:
            await client.set(key, json.dumps(value), ex=ttl_s)
        finally:
            await client.aclose()
    except Exception:
        logger.warning("Redis write failed for key %s", key, exc_info=True)


async def delete_key(url: str, key: str) -> None:
    """Delete *key* (best-effort)."""
    try:
        client = await get_redis(url)
        try:
            await client.delete(key)
        finally:
            await client.aclose()
    except Exception:
        logger.warning("Redis delete failed for key %s", key, exc_info=True)
