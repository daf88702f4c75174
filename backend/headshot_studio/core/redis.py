"""Shared Redis client.

Holds revoked token ids for every API process and carries the operator
alert channel. Both the API and the worker close it on shutdown.
"""

from typing import Optional

import redis.asyncio as redis

from headshot_studio.core.config import settings

_client: Optional[redis.Redis] = None


def get_redis() -> redis.Redis:
    """Return the process-wide client, creating its pool on first use."""
    global _client
    if _client is None:
        _client = redis.Redis.from_url(
            settings.REDIS_URL,
            max_connections=settings.REDIS_MAX_CONNECTIONS,
            decode_responses=True,
        )
    return _client


async def redis_available() -> bool:
    """Report whether Redis answers a PING, for the status endpoint."""
    try:
        return bool(await get_redis().ping())
    except (redis.RedisError, OSError):
        return False


async def close_redis() -> None:
    """Close the client and its pool (run on shutdown)."""
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None
