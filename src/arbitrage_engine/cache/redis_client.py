"""Shared Redis client for the snapshot cache."""
import logging
from typing import Optional

import redis.asyncio as redis

from ..config.settings import settings

logger = logging.getLogger(__name__)

# One client per process, shared by every cache instance
redis_client: Optional[redis.Redis] = None


async def init_redis(redis_url: Optional[str] = None) -> redis.Redis:
    """
    Connect to Redis once and return the shared client.

    Raises:
        ValueError: if no URL is given or configured
        redis.ConnectionError: if the server does not answer PING
    """
    global redis_client

    if redis_client is not None:
        return redis_client

    url = redis_url or settings.redis_url
    if not url:
        raise ValueError("Redis URL not configured (REDIS_URL)")

    client = redis.Redis.from_url(
        url,
        decode_responses=True,
        health_check_interval=30,
        socket_keepalive=True,
        retry_on_timeout=True,
        max_connections=10,
    )

    try:
        await client.ping()
    except redis.RedisError as e:
        logger.error(f"Redis at {url} unreachable: {e}")
        await client.aclose()
        raise

    logger.info(f"Snapshot cache connected to Redis at {url}")
    redis_client = client
    return redis_client


async def close_redis() -> None:
    global redis_client

    if redis_client is not None:
        await redis_client.aclose()
        redis_client = None
        logger.info("Redis connection closed")
