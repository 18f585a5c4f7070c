"""
Session-scoped key/value storage backends for the cache store.

Both backends hold plain strings (JSON-serialized cache entries) and raise
``StorageQuotaExceeded`` when a write does not fit.
"""

import uuid
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

import redis.asyncio as redis
from redis.exceptions import OutOfMemoryError, RedisError

from shared.errors import CacheStorageError, StorageQuotaExceeded
from shared.logging import get_logger


class SessionStorage(ABC):
    """Web-storage style interface: string keys to string values."""

    @abstractmethod
    async def get_item(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    async def set_item(self, key: str, value: str) -> None:
        ...

    @abstractmethod
    async def remove_item(self, key: str) -> None:
        ...

    @abstractmethod
    async def keys(self, prefix: str = "") -> List[str]:
        ...

    async def clear(self, prefix: str = "") -> int:
        """Remove every key starting with ``prefix``; returns the count."""
        removed = 0
        for key in await self.keys(prefix):
            await self.remove_item(key)
            removed += 1
        return removed


class MemorySessionStorage(SessionStorage):
    """In-process storage with a size quota, like a browser session storage.

    Usage is measured in characters of keys plus values.
    """

    def __init__(self, quota_bytes: Optional[int] = 5 * 1024 * 1024):
        self.quota_bytes = quota_bytes
        self._items: Dict[str, str] = {}
        self._usage = 0

    @property
    def usage(self) -> int:
        return self._usage

    async def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    async def set_item(self, key: str, value: str) -> None:
        previous = self._items.get(key)
        released = len(key) + len(previous) if previous is not None else 0
        required = len(key) + len(value)
        projected = self._usage - released + required

        if self.quota_bytes is not None and projected > self.quota_bytes:
            raise StorageQuotaExceeded(
                details={"key": key, "required": required, "usage": self._usage, "quota": self.quota_bytes}
            )

        self._items[key] = value
        self._usage = projected

    async def remove_item(self, key: str) -> None:
        value = self._items.pop(key, None)
        if value is not None:
            self._usage -= len(key) + len(value)

    async def keys(self, prefix: str = "") -> List[str]:
        return [key for key in self._items if key.startswith(prefix)]


class RedisSessionStorage(SessionStorage):
    """Redis-backed storage scoped to one session.

    Keys are stored under ``session:<session_id>:`` and expire after
    ``session_ttl`` seconds, which ends the session's cache.
    """

    def __init__(self, redis_url: str, session_id: Optional[str] = None, session_ttl: Optional[int] = None):
        self.redis_url = redis_url
        self.session_id = session_id or str(uuid.uuid4())
        self.session_ttl = session_ttl
        self.logger = get_logger("sync.session_storage")

        self._redis: Optional[redis.Redis] = None

    async def _get_redis(self) -> redis.Redis:
        """Get Redis connection."""
        if self._redis is None:
            self._redis = redis.from_url(self.redis_url, decode_responses=True)
        return self._redis

    def _scoped(self, key: str) -> str:
        return f"session:{self.session_id}:{key}"

    def _unscoped(self, key: str) -> str:
        return key[len(self._scoped("")):]

    async def get_item(self, key: str) -> Optional[str]:
        redis_client = await self._get_redis()
        try:
            return await redis_client.get(self._scoped(key))
        except RedisError as e:
            raise CacheStorageError(f"Session storage read failed: {e}", details={"key": key})

    async def set_item(self, key: str, value: str) -> None:
        redis_client = await self._get_redis()
        try:
            if self.session_ttl:
                await redis_client.setex(self._scoped(key), self.session_ttl, value)
            else:
                await redis_client.set(self._scoped(key), value)
        except OutOfMemoryError as e:
            raise StorageQuotaExceeded(details={"key": key, "error": str(e)})
        except RedisError as e:
            raise CacheStorageError(f"Session storage write failed: {e}", details={"key": key})

    async def remove_item(self, key: str) -> None:
        redis_client = await self._get_redis()
        try:
            await redis_client.delete(self._scoped(key))
        except RedisError as e:
            raise CacheStorageError(f"Session storage delete failed: {e}", details={"key": key})

    async def keys(self, prefix: str = "") -> List[str]:
        redis_client = await self._get_redis()
        try:
            return [
                self._unscoped(key)
                async for key in redis_client.scan_iter(match=f"{self._scoped(prefix)}*")
            ]
        except RedisError as e:
            raise CacheStorageError(f"Session storage scan failed: {e}", details={"prefix": prefix})

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None
