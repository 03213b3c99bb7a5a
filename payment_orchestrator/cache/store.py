"""
Key-value cache store used as the only persistence layer.

The ledger depends on the CacheStore interface, never on Redis directly,
so tests and alternative backends can be injected.
"""
import abc
from typing import Optional

import redis.asyncio as aioredis
import structlog
from redis.exceptions import RedisError

from payment_orchestrator.exceptions import CacheError

logger = structlog.get_logger(__name__)


class CacheMiss(Exception):
    """Raised by CacheStore.get when the key does not exist."""

    def __init__(self, key: str):
        super().__init__(f"cache miss: {key}")
        self.key = key


class CacheStore(abc.ABC):
    """Async key-value store with per-key expiration."""

    @abc.abstractmethod
    async def get(self, key: str) -> bytes:
        """Return the value stored under key or raise CacheMiss."""

    @abc.abstractmethod
    async def set(self, key: str, value: bytes, ttl: int = 0) -> None:
        """Store value under key. A ttl of 0 means no expiration."""

    @abc.abstractmethod
    async def delete(self, key: str) -> int:
        """Delete key and return the number of removed keys."""

    @abc.abstractmethod
    async def ping(self) -> bool:
        """Return True when the store is reachable."""


class RedisCacheStore(CacheStore):
    """
    CacheStore backed by redis.asyncio.

    Every Redis failure, including timeouts, surfaces as CacheError so
    request handlers can fail a single request without crashing.
    """

    def __init__(self, client: aioredis.Redis):
        self.client = client

    @classmethod
    def from_url(cls, url: str, socket_timeout: Optional[float] = 5.0) -> "RedisCacheStore":
        """Create a store with its own connection pool."""
        client = aioredis.from_url(
            url,
            decode_responses=False,
            socket_timeout=socket_timeout,
            socket_connect_timeout=socket_timeout,
        )
        return cls(client)

    async def get(self, key: str) -> bytes:
        try:
            value = await self.client.get(key)
        except (RedisError, OSError) as e:
            logger.error("cache_get_failed", key=key, error=str(e))
            raise CacheError(f"Failed to read {key}: {e}", key=key) from e

        if value is None:
            raise CacheMiss(key)
        return value

    async def set(self, key: str, value: bytes, ttl: int = 0) -> None:
        try:
            await self.client.set(key, value, ex=ttl or None)
        except (RedisError, OSError) as e:
            logger.error("cache_set_failed", key=key, error=str(e))
            raise CacheError(f"Failed to write {key}: {e}", key=key) from e

    async def delete(self, key: str) -> int:
        try:
            return int(await self.client.delete(key))
        except (RedisError, OSError) as e:
            logger.error("cache_delete_failed", key=key, error=str(e))
            raise CacheError(f"Failed to delete {key}: {e}", key=key) from e

    async def ping(self) -> bool:
        try:
            return bool(await self.client.ping())
        except (RedisError, OSError) as e:
            logger.warning("cache_ping_failed", error=str(e))
            return False

    async def close(self) -> None:
        """Close the Redis connection pool."""
        await self.client.aclose()
