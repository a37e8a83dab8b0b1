"""Revocation list for issued tokens.

A revoked token string is remembered until its TTL runs out. The backing store
is picked once at startup: Redis when REDIS_URL is configured, so every worker
sees the same list, otherwise a process-local dict.
"""

import hashlib
import logging
import threading
import time
from abc import ABC, abstractmethod
from collections.abc import Callable

import redis.asyncio as redis
from redis.exceptions import RedisError

from jobboard.core.config import Settings

logger = logging.getLogger(__name__)

DEFAULT_KEY_PREFIX = "jobboard:revoked:"


class RevocationStoreError(Exception):
    """The external revocation store could not be reached or failed."""


class RevocationStore(ABC):
    """Set of revoked token strings whose entries expire."""

    @abstractmethod
    async def add(self, token: str, ttl_seconds: int) -> None:
        """Remember a token as revoked for ``ttl_seconds``."""

    @abstractmethod
    async def contains(self, token: str) -> bool:
        """Check whether a token is currently on the list."""

    @abstractmethod
    async def claim(self, token: str, ttl_seconds: int) -> bool:
        """Put a token on the list unless it is already there.

        Returns True for exactly one of any number of concurrent callers; that
        caller owns the single use of the token.
        """

    @abstractmethod
    async def ping(self) -> bool: ...

    async def close(self) -> None:
        return None


class InMemoryRevocationStore(RevocationStore):
    """Process-local revocation list.

    Entries map token -> expiry on ``clock``. Expired entries are dropped on
    read and by ``cleanup_expired()``, which the app runs on a schedule.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._entries: dict[str, float] = {}
        self._lock = threading.Lock()

    async def add(self, token: str, ttl_seconds: int) -> None:
        if ttl_seconds <= 0:
            return
        with self._lock:
            self._entries[token] = self._clock() + ttl_seconds

    async def contains(self, token: str) -> bool:
        with self._lock:
            expires_at = self._entries.get(token)
            if expires_at is None:
                return False
            if self._clock() >= expires_at:
                del self._entries[token]
                return False
            return True

    async def claim(self, token: str, ttl_seconds: int) -> bool:
        now = self._clock()
        with self._lock:
            expires_at = self._entries.get(token)
            if expires_at is not None and now < expires_at:
                return False
            self._entries[token] = now + max(ttl_seconds, 1)
            return True

    def cleanup_expired(self) -> int:
        """Remove expired entries. Returns count removed."""
        now = self._clock()
        with self._lock:
            expired = [token for token, expires_at in self._entries.items() if now >= expires_at]
            for token in expired:
                del self._entries[token]
            return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    async def ping(self) -> bool:
        return True


class ExternalRevocationStore(RevocationStore):
    """Revocation list in Redis, relying on key expiry for eviction.

    Keys are a digest of the token so arbitrary-length tokens map to
    fixed-size keys.
    """

    def __init__(self, client: redis.Redis, key_prefix: str = DEFAULT_KEY_PREFIX):
        self._redis = client
        self._key_prefix = key_prefix

    @classmethod
    def from_url(cls, url: str, socket_timeout: float = 2.0) -> "ExternalRevocationStore":
        client = redis.from_url(
            url,
            decode_responses=True,
            socket_timeout=socket_timeout,
            socket_connect_timeout=socket_timeout,
        )
        return cls(client)

    def _key(self, token: str) -> str:
        return self._key_prefix + hashlib.sha256(token.encode()).hexdigest()

    async def add(self, token: str, ttl_seconds: int) -> None:
        if ttl_seconds <= 0:
            return
        try:
            await self._redis.set(self._key(token), "1", ex=ttl_seconds)
        except RedisError as e:
            raise RevocationStoreError(f"Failed to revoke token: {e}") from e

    async def contains(self, token: str) -> bool:
        try:
            return await self._redis.exists(self._key(token)) > 0
        except RedisError as e:
            raise RevocationStoreError(f"Failed to check revocation list: {e}") from e

    async def claim(self, token: str, ttl_seconds: int) -> bool:
        # SET NX replies None when the key already exists
        try:
            created = await self._redis.set(self._key(token), "1", ex=max(ttl_seconds, 1), nx=True)
        except RedisError as e:
            raise RevocationStoreError(f"Failed to claim token: {e}") from e
        return bool(created)

    async def ping(self) -> bool:
        try:
            return bool(await self._redis.ping())
        except RedisError as e:
            logger.debug(f"Revocation store ping failed: {e}")
            return False

    async def close(self) -> None:
        await self._redis.aclose()


def create_revocation_store(settings: Settings) -> RevocationStore:
    """Pick the revocation backend from configuration."""
    if settings.redis_url:
        logger.info("Using Redis for the token revocation list")
        return ExternalRevocationStore.from_url(
            settings.redis_url,
            socket_timeout=settings.redis_socket_timeout,
        )
    logger.info("Using the in-memory token revocation list")
    return InMemoryRevocationStore()
