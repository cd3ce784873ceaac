"""
Redis connection.

Backs the certification and job locks. The process shares one client and
its connection pool; ``close_redis`` releases it on shutdown.
"""

import logging

import redis.asyncio as redis
from redis.exceptions import RedisError

from carpool_backend.app.core.config import settings

logger = logging.getLogger("carpool.redis")


def build_redis_client(url: str = None) -> redis.Redis:
    return redis.from_url(
        url or settings.redis_url,
        decode_responses=settings.redis_decode_responses,
    )


redis_client = build_redis_client()


async def get_redis() -> redis.Redis:
    """FastAPI dependency returning the lock backend."""
    return redis_client


async def ping_redis(client=None) -> bool:
    """True if Redis answers (default: the shared client)."""
    try:
        return bool(await (client or redis_client).ping())
    except (RedisError, OSError) as e:
        logger.warning("Redis unreachable: %s", e)
        return False


async def close_redis() -> None:
    await redis_client.aclose()
