"""
Redis client utilities.

Provides lazy-initialized Redis client to avoid import-time connections.
"""

import functools

import redis

from crm_whatsapp.core.settings import get_settings


@functools.lru_cache()
def get_redis_client() -> redis.Redis:
    """
    Get Redis client (cached).

    This function lazily initializes the Redis client to avoid import-time connections.
    """
    return redis.from_url(get_settings().REDIS_URL, decode_responses=True)
