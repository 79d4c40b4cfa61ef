"""Redis connection utilities.

Helpers for creating Redis connections from process settings, shared by
the API, the Dramatiq broker and the scheduler.
"""

import redis.asyncio as redis

from compensation.config.settings import settings


def get_redis_client() -> redis.Redis:
    """
    Create a Redis client with settings from config.

    Returns:
        redis.Redis: Configured client with decode_responses=True
    """
    return redis.Redis(
        host=settings.redis_host,
        port=settings.redis_port,
        password=settings.redis_password,
        db=settings.redis_db,
        decode_responses=True,
    )


def get_redis_url() -> str:
    """
    Build Redis URL from settings.

    WARNING: The URL contains the password in plaintext. Use
    get_redis_url_masked() for logging.
    """
    if settings.redis_password:
        return f"redis://:{settings.redis_password}@{settings.redis_host}:{settings.redis_port}/{settings.redis_db}"
    return f"redis://{settings.redis_host}:{settings.redis_port}/{settings.redis_db}"


def get_redis_url_masked() -> str:
    """Redis URL with the password replaced by asterisks."""
    if settings.redis_password:
        return f"redis://:****@{settings.redis_host}:{settings.redis_port}/{settings.redis_db}"
    return f"redis://{settings.redis_host}:{settings.redis_port}/{settings.redis_db}"
