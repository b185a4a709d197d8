"""
Redis connection for the admin report cache.

The client is created on first use, so importing the app never opens a
connection, and closed from the application lifespan.
"""

import logging
from typing import Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from parcelflow.app.core.config import settings

logger = logging.getLogger(__name__)

_client: Optional[redis.Redis] = None


def get_redis_client() -> redis.Redis:
    global _client
    if _client is None:
        _client = redis.from_url(settings.redis_url, decode_responses=settings.redis_decode_responses)
    return _client


async def get_redis() -> redis.Redis:
    """FastAPI dependency; overridden with an in-memory double in tests."""
    return get_redis_client()


async def close_redis() -> None:
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None


async def ping_redis(client) -> bool:
    """True when the cache answers a PING."""
    try:
        return bool(await client.ping())
    except (RedisError, OSError) as exc:
        logger.warning("Redis ping failed: %s", exc)
        return False
