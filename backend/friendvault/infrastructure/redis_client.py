"""
Redis client configuration
"""

import logging

import redis
from friendvault.infrastructure.settings import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()

# Connections are opened lazily, on first command
redis_pool = redis.ConnectionPool.from_url(settings.REDIS_URL, decode_responses=True)
redis_client = redis.Redis(connection_pool=redis_pool)


def get_redis() -> redis.Redis:
    """Get Redis client instance"""
    return redis_client


def ping_redis() -> bool:
    """Ping Redis to check connectivity"""
    try:
        return bool(redis_client.ping())
    except redis.RedisError as e:
        logger.warning(f"Redis ping failed: {e}")
        return False
