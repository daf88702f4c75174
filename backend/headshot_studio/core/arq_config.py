"""ARQ (Async Redis Queue) connection settings for the maintenance worker."""

import re

from arq.connections import RedisSettings

from headshot_studio.core.config import settings

REDIS_URL_PATTERN = re.compile(r"redis://(?::([^@]+)@)?([^:/]+)(?::(\d+))?(?:/(\d+))?")


def parse_redis_url(url: str) -> RedisSettings:
    """Parse Redis URL into ARQ RedisSettings.

    Args:
        url: Redis URL in format redis://:password@host:port/db

    Returns:
        RedisSettings configured for ARQ

    Raises:
        ValueError: If the URL cannot be parsed
    """
    match = REDIS_URL_PATTERN.match(url)
    if not match:
        raise ValueError(f"Invalid Redis URL format: {url}")

    password, host, port, database = match.groups()
    return RedisSettings(
        host=host,
        port=int(port) if port else 6379,
        password=password,
        database=int(database) if database else 0,
    )


def get_redis_settings() -> RedisSettings:
    """Get ARQ Redis settings from application config."""
    return parse_redis_url(settings.REDIS_URL)
