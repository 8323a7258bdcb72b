"""Redis store for shared caching.

Handles:
- JSON cache primitives
- Materialization entries shared across API instances

TTL policies:
- Materialized variant by external id: no expiry (the platform stays
  authoritative, a stale entry only costs one extra lookup)
- Container product by source type: no expiry
"""

import json
import logging
from typing import Any

import redis.asyncio as redis

from stonebridge.settings import get_settings

# TTL constants (in seconds); None means the key never expires
TTL_MATERIALIZED_VARIANT: int | None = None
TTL_CONTAINER_PRODUCT: int | None = None

# Key prefixes
PREFIX_MATERIALIZED_VARIANT = "materialized:variant:"
PREFIX_CONTAINER_PRODUCT = "materialized:product:"

# Redis client (initialized on startup)
_redis: redis.Redis | None = None
logger = logging.getLogger("uvicorn.error")


async def init_redis() -> None:
    """Initialize Redis connection."""
    global _redis
    settings = get_settings()
    client = redis.from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
        socket_connect_timeout=5,
        socket_timeout=5,
    )
    # Validate connectivity early (especially for `rediss://` in production).
    try:
        await client.ping()
    except Exception:
        await client.aclose()
        raise
    _redis = client
    logger.info("Redis connected")


async def close_redis() -> None:
    """Close Redis connection."""
    global _redis
    if _redis:
        await _redis.aclose()
        _redis = None


def is_redis_configured() -> bool:
    """True once init_redis() has succeeded."""
    return _redis is not None


def _get_redis() -> redis.Redis:
    """Get Redis client instance."""
    if _redis is None:
        raise RuntimeError("Redis not initialized. Call init_redis() first.")
    return _redis


# ============================================================
# Generic cache operations
# ============================================================


async def cache_get(key: str) -> str | None:
    """Get value from cache.

    Args:
        key: Cache key.

    Returns:
        Cached value or None if not found.
    """
    return await _get_redis().get(key)


async def cache_set(key: str, value: str, ttl: int | None) -> None:
    """Set value in cache.

    Args:
        key: Cache key.
        value: Value to cache.
        ttl: Time-to-live in seconds, or None to keep the key until evicted.
    """
    if ttl is None:
        await _get_redis().set(key, value)
    else:
        await _get_redis().setex(key, ttl, value)


async def cache_get_json(key: str) -> dict[str, Any] | None:
    """Get JSON value from cache.

    Returns:
        Parsed JSON dict or None if not found.
    """
    value = await cache_get(key)
    if value:
        return json.loads(value)
    return None


async def cache_set_json(key: str, value: dict[str, Any], ttl: int | None) -> None:
    """Set JSON value in cache."""
    await cache_set(key, json.dumps(value), ttl)
