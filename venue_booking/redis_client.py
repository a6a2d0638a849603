"""Shared Redis connection backing slot locks and bearer tokens."""

import logging

import redis.asyncio as redis

from venue_booking.config import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()

_redis_client: redis.Redis | None = None


async def get_redis() -> redis.Redis:
    """Get the process-wide Redis client, connecting on first use."""
    global _redis_client
    if _redis_client is None:
        _redis_client = redis.from_url(
            settings.redis_url,
            encoding="utf-8",
            decode_responses=True,
            max_connections=settings.REDIS_MAX_CONNECTIONS,
            socket_timeout=settings.REDIS_SOCKET_TIMEOUT_SECONDS,
        )
    return _redis_client


async def redis_is_up(client: redis.Redis) -> bool:
    """
    Whether Redis answers a ping.

    Bookings cannot be created while Redis is down, since every
    reservation takes a slot lock there.
    """
    try:
        return bool(await client.ping())
    except redis.RedisError as e:
        logger.warning(f"Redis ping failed: {e}")
        return False


async def close_redis() -> None:
    """Close the Redis connection pool."""
    global _redis_client
    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None
