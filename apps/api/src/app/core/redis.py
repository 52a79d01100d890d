"""
Redis Configuration

Shared async Redis client, used as the rate limiting backend.
"""

from redis.asyncio import Redis, from_url

from app.core.config import settings

# Redis client instance (None until init_redis succeeds)
redis_client: Redis | None = None


async def init_redis() -> Redis:
    """
    Connect to Redis and verify the connection.

    Call this on application startup. The client is only published once the
    ping succeeds, so callers never see a half-initialized client.
    """
    global redis_client
    client = from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
    )
    await client.ping()
    redis_client = client
    return redis_client


async def get_redis() -> Redis | None:
    """
    Get the Redis client, or None when Redis is not connected.

    Usable directly or as a FastAPI dependency.
    """
    return redis_client


async def close_redis() -> None:
    """Close the Redis connection."""
    global redis_client
    if redis_client:
        await redis_client.aclose()
        redis_client = None
