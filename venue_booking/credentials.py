"""Access token storage backed by Redis."""

import logging
import secrets
from dataclasses import dataclass

import redis.asyncio as redis

from venue_booking.config import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()


@dataclass(frozen=True)
class ExpiryPolicy:
    """
    Token lifetime rules.

    Tokens live for ``ttl_seconds``. When a token is read with less than
    ``refresh_window_seconds`` left, its lifetime is reset to the full TTL.
    A refresh window of 0 disables sliding expiry.
    """

    ttl_seconds: int
    refresh_window_seconds: int = 0

    def should_refresh(self, remaining_seconds: int) -> bool:
        # Redis reports -1 for keys without expiry, -2 for missing keys
        if remaining_seconds < 0:
            return False
        return remaining_seconds < self.refresh_window_seconds

    @classmethod
    def from_settings(cls) -> "ExpiryPolicy":
        return cls(
            ttl_seconds=settings.TOKEN_TTL_SECONDS,
            refresh_window_seconds=settings.TOKEN_REFRESH_WINDOW_SECONDS,
        )


class CredentialStore:
    """Maps opaque bearer tokens to user IDs."""

    def __init__(
        self,
        redis_client: redis.Redis,
        policy: ExpiryPolicy | None = None,
        prefix: str = "credential",
    ):
        self.redis = redis_client
        self.policy = policy or ExpiryPolicy.from_settings()
        self.prefix = prefix

    def _key(self, token: str) -> str:
        return f"{self.prefix}:{token}"

    async def set(self, token: str, user_id: str) -> None:
        """Store a token for a user with a fresh TTL."""
        await self.redis.set(self._key(token), user_id, ex=self.policy.ttl_seconds)

    async def get(self, token: str) -> str | None:
        """Resolve a token to its user ID, sliding its expiry when due."""
        key = self._key(token)
        user_id = await self.redis.get(key)
        if user_id is None:
            return None

        remaining = await self.redis.ttl(key)
        if self.policy.should_refresh(remaining):
            await self.redis.expire(key, self.policy.ttl_seconds)
            logger.debug(f"Refreshed credential for user {user_id}")

        return user_id

    async def clear(self, token: str) -> None:
        """Revoke a token."""
        await self.redis.delete(self._key(token))

    async def issue(self, user_id: str) -> str:
        """Create and store a new token for a user."""
        token = secrets.token_urlsafe(32)
        await self.set(token, user_id)
        return token
