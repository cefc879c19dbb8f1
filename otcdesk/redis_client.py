"""
Redis connection setup using redis-py async client.

Holds the derived exchange-rate cache read by the pricing path.
Provides a shared redis instance with optional TLS support.
"""

import redis.asyncio as aioredis

from otcdesk.config import settings

redis = aioredis.from_url(
    settings.REDIS_URL,
    decode_responses=True,
    ssl=settings.REDIS_SSL,
)


async def get_redis() -> aioredis.Redis:
    """FastAPI dependency that provides the Redis client."""
    return redis
