import logging

import redis.asyncio as redis
from redis.exceptions import RedisError

from sms_relay.config import Settings

logger = logging.getLogger(__name__)


def build_redis_client(settings: Settings) -> redis.Redis:
    """
    Build an asyncio Redis client backed by a bounded connection pool.

    BlockingConnectionPool waits up to REDIS_POOL_TIMEOUT for a free
    connection instead of failing immediately when all REDIS_POOL_SIZE
    connections are busy. Socket reads and writes share one socket timeout,
    so it is set to the larger of the two; the per-operation bounds are
    applied by SmsCacheStore.
    """
    pool = redis.BlockingConnectionPool(
        host=settings.REDIS_HOST,
        port=settings.REDIS_PORT,
        password=settings.REDIS_PASSWORD or None,
        db=settings.REDIS_DB,
        max_connections=settings.REDIS_POOL_SIZE,
        timeout=settings.REDIS_POOL_TIMEOUT,
        socket_connect_timeout=settings.REDIS_CONNECT_TIMEOUT,
        socket_timeout=max(settings.REDIS_READ_TIMEOUT, settings.REDIS_WRITE_TIMEOUT),
        # Values come back as str, which is what the JSON decoder wants
        decode_responses=True,
    )
    logger.info(
        "Redis client configured",
        extra={
            "redis_addr": f"{settings.REDIS_HOST}:{settings.REDIS_PORT}",
            "redis_db": settings.REDIS_DB,
            "pool_size": settings.REDIS_POOL_SIZE,
        },
    )
    return redis.Redis(connection_pool=pool)


async def check_redis_health(client: redis.Redis) -> bool:
    """
    Check that Redis answers PING.

    Returns:
        True if Redis is reachable, False otherwise.
    """
    try:
        pong = await client.ping()
    except (RedisError, OSError) as e:
        logger.error(f"Redis health check failed: {e}")
        return False
    logger.debug(f"Redis PING answered: {pong}")
    return bool(pong)
