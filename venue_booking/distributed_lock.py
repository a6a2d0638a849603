"""Redis lock serializing reservations of one venue on one day."""

import asyncio
import logging
import uuid
from contextlib import asynccontextmanager
from datetime import date
from typing import AsyncContextManager, AsyncGenerator, Callable

import redis.asyncio as redis

from venue_booking.config import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()

# key -> async context manager holding the lock for the duration of the block
LockFactory = Callable[[str], AsyncContextManager[object]]

KEY_PREFIX = "lock:"


class DistributedLockError(Exception):
    """Raised when a lock cannot be acquired within its retry budget."""

    pass


def slot_lock_key(venue_id: int, booking_date: date) -> str:
    """Lock key covering all reservations of one venue on one day."""
    return f"booking-slot:{venue_id}:{booking_date.isoformat()}"


class DistributedLock:
    """
    Lock held in Redis under ``lock:<key>``.

    Acquired with SET NX EX so a crashed holder cannot keep the slot locked
    past ``timeout_seconds``. Each holder writes a random token, and release
    and extend only act when the stored token is still ours.
    """

    # Delete the key only while it still holds our token
    RELEASE_SCRIPT = """
    if redis.call("get", KEYS[1]) == ARGV[1] then
        return redis.call("del", KEYS[1])
    else
        return 0
    end
    """

    # Push the expiry out only while it still holds our token
    EXTEND_SCRIPT = """
    if redis.call("get", KEYS[1]) == ARGV[1] then
        return redis.call("pexpire", KEYS[1], ARGV[2])
    else
        return 0
    end
    """

    def __init__(
        self,
        redis_client: redis.Redis,
        key: str,
        timeout_seconds: int | None = None,
        retry_delay_ms: int | None = None,
        max_retries: int | None = None,
    ):
        """
        Args:
            redis_client: Redis client instance
            key: Lock name, without the ``lock:`` prefix
            timeout_seconds: Expiry of the lock key
            retry_delay_ms: Pause between acquisition attempts
            max_retries: Attempts after the first one before giving up
        """
        self.redis = redis_client
        self.key = f"{KEY_PREFIX}{key}"
        self.timeout_seconds = timeout_seconds or settings.LOCK_TIMEOUT_SECONDS
        self.retry_delay_ms = retry_delay_ms or settings.LOCK_RETRY_DELAY_MS
        self.max_retries = (
            settings.LOCK_MAX_RETRIES if max_retries is None else max_retries
        )
        self.token: str | None = None
        self._release_script = self.redis.register_script(self.RELEASE_SCRIPT)
        self._extend_script = self.redis.register_script(self.EXTEND_SCRIPT)

    async def _try_set(self, token: str) -> bool:
        return bool(
            await self.redis.set(self.key, token, nx=True, ex=self.timeout_seconds)
        )

    async def acquire(self, blocking: bool = True) -> bool:
        """
        Acquire the lock.

        Args:
            blocking: Retry up to ``max_retries`` times, sleeping
                ``retry_delay_ms`` between attempts. When False, try once.

        Returns:
            True if the lock is now ours.
        """
        token = uuid.uuid4().hex
        attempts = 1 + (self.max_retries if blocking else 0)

        for attempt in range(attempts):
            if attempt:
                await asyncio.sleep(self.retry_delay_ms / 1000)
            if await self._try_set(token):
                self.token = token
                return True

        logger.debug(f"Gave up on {self.key} after {attempts} attempts")
        return False

    async def release(self) -> bool:
        """
        Release the lock.

        Returns:
            False if we no longer held it (expired or taken over).
        """
        if self.token is None:
            return False

        released = await self._release_script(keys=[self.key], args=[self.token])
        self.token = None
        if not released:
            logger.warning(f"Lock {self.key} expired before release")
        return bool(released)

    async def extend(self, seconds: int | None = None) -> bool:
        """Reset the expiry to ``seconds`` (default: the lock timeout)."""
        if self.token is None:
            return False

        ttl_ms = (seconds or self.timeout_seconds) * 1000
        extended = await self._extend_script(keys=[self.key], args=[self.token, ttl_ms])
        return bool(extended)

    async def is_locked(self) -> bool:
        """Whether anyone holds the lock."""
        return await self.redis.exists(self.key) == 1

    async def owned(self) -> bool:
        """Whether this instance holds the lock."""
        if self.token is None:
            return False
        return await self.redis.get(self.key) == self.token


@asynccontextmanager
async def distributed_lock(
    redis_client: redis.Redis,
    key: str,
    timeout_seconds: int | None = None,
    blocking: bool = True,
    max_retries: int | None = None,
) -> AsyncGenerator[DistributedLock, None]:
    """
    Hold a lock for the duration of the block.

    Usage:
        async with distributed_lock(redis, slot_lock_key(venue_id, day)):
            # Critical section
            ...

    Raises:
        DistributedLockError: If the lock cannot be acquired
    """
    lock = DistributedLock(redis_client, key, timeout_seconds, max_retries=max_retries)

    if not await lock.acquire(blocking=blocking):
        raise DistributedLockError(f"Failed to acquire lock for key: {key}")

    try:
        yield lock
    finally:
        await lock.release()


def redis_lock_factory(redis_client: redis.Redis) -> LockFactory:
    """Lock factory backed by Redis, for multi-process deployments."""

    def factory(key: str) -> AsyncContextManager[DistributedLock]:
        return distributed_lock(redis_client, key)

    return factory
