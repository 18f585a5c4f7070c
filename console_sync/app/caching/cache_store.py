"""
Session cache store for response snapshots.
"""

import math
import time
from typing import Callable, List, Optional, Tuple

from pydantic import ValidationError

from shared.errors import CacheStorageError, StorageQuotaExceeded
from shared.logging import get_logger
from shared.metrics import MetricsCollector
from ..models import CacheEntry, RequestDescriptor
from .session_storage import SessionStorage


class CacheStore:
    """Namespaced, versioned cache of ``CacheEntry`` records.

    Keys look like ``namespace:version:METHOD:url[:body_hash]``; bumping
    ``version`` orphans every entry written under the previous token.
    Writes are last-write-wins and storage failures never propagate.
    """

    def __init__(
        self,
        storage: SessionStorage,
        namespace: str = "console",
        version: str = "v1",
        *,
        clock: Callable[[], float] = time.time,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.storage = storage
        self.namespace = namespace
        self.version = version
        self.clock = clock
        self.metrics = metrics
        self.logger = get_logger("sync.cache_store")

    @property
    def prefix(self) -> str:
        return f"{self.namespace}:{self.version}:"

    def key_for(self, descriptor: RequestDescriptor) -> str:
        return descriptor.cache_key(self.namespace, self.version)

    async def _load(self, key: str) -> Optional[CacheEntry]:
        """Read and decode an entry without checking freshness."""
        try:
            raw = await self.storage.get_item(key)
        except CacheStorageError as e:
            self.logger.warning("Cache read failed", key=key, error=e.message)
            return None

        if raw is None:
            return None

        try:
            return CacheEntry.model_validate_json(raw)
        except ValidationError:
            self.logger.warning("Discarding undecodable cache entry", key=key)
            await self.delete(key)
            return None

    async def get(self, key: str) -> Optional[CacheEntry]:
        """Return the fresh entry for ``key``; expired entries are purged."""
        entry = await self._load(key)

        if entry is None:
            self._count("cache_misses_total", cache_type="session")
            return None

        if not entry.is_fresh(self.clock()):
            self.logger.debug("Purging expired cache entry", key=key, stored_at=entry.stored_at, ttl=entry.ttl)
            await self.delete(key)
            self._count("cache_evictions_total", reason="expired")
            self._count("cache_misses_total", cache_type="session")
            return None

        self._count("cache_hits_total", cache_type="session")
        return entry

    async def put(self, key: str, entry: CacheEntry) -> bool:
        """Store ``entry``. On quota failure evict the oldest half and retry once."""
        value = entry.model_dump_json()

        try:
            await self.storage.set_item(key, value)
            return True
        except StorageQuotaExceeded:
            evicted = await self.evict_oldest(0.5)
            self.logger.warning("Storage quota exceeded, evicted oldest entries", key=key, evicted=evicted)
        except CacheStorageError as e:
            self.logger.warning("Cache write failed", key=key, error=e.message)
            return False

        try:
            await self.storage.set_item(key, value)
            return True
        except CacheStorageError as e:
            self.logger.warning("Cache write failed after eviction", key=key, error=e.message)
            return False

    async def touch(
        self,
        key: str,
        etag: Optional[str] = None,
        last_modified: Optional[str] = None,
    ) -> Optional[CacheEntry]:
        """Refresh ``stored_at`` (and validators when given) after a 304."""
        entry = await self._load(key)
        if entry is None:
            return None

        updates = {"stored_at": self.clock()}
        if etag:
            updates["etag"] = etag
        if last_modified:
            updates["last_modified"] = last_modified

        refreshed = entry.model_copy(update=updates)
        await self.put(key, refreshed)
        return refreshed

    async def delete(self, key: str) -> None:
        try:
            await self.storage.remove_item(key)
        except CacheStorageError as e:
            self.logger.warning("Cache delete failed", key=key, error=e.message)

    async def evict_oldest(self, percentage: float) -> int:
        """Delete the oldest ``percentage`` of entries across the namespace.

        Entries that cannot be decoded sort first. Returns the number deleted.
        """
        try:
            keys = await self.storage.keys(f"{self.namespace}:")
        except CacheStorageError as e:
            self.logger.warning("Cache eviction scan failed", error=e.message)
            return 0

        if not keys:
            return 0

        aged: List[Tuple[float, str]] = []
        for key in keys:
            entry = await self._peek(key)
            aged.append((entry.stored_at if entry else float("-inf"), key))
        aged.sort()

        count = min(len(aged), math.ceil(len(aged) * percentage))
        for _, key in aged[:count]:
            await self.delete(key)

        self._count("cache_evictions_total", amount=count, reason="quota")
        return count

    async def _peek(self, key: str) -> Optional[CacheEntry]:
        try:
            raw = await self.storage.get_item(key)
            return CacheEntry.model_validate_json(raw) if raw is not None else None
        except (CacheStorageError, ValidationError):
            return None

    async def clear(self) -> int:
        """Remove every entry in the namespace (session end)."""
        try:
            return await self.storage.clear(f"{self.namespace}:")
        except CacheStorageError as e:
            self.logger.warning("Cache clear failed", error=e.message)
            return 0

    async def purge_foreign_versions(self) -> int:
        """Remove entries written under a version token other than ours."""
        try:
            keys = await self.storage.keys(f"{self.namespace}:")
        except CacheStorageError as e:
            self.logger.warning("Cache version purge failed", error=e.message)
            return 0

        stale = [key for key in keys if not key.startswith(self.prefix)]
        for key in stale:
            await self.delete(key)

        if stale:
            self.logger.info("Purged cache entries from other versions", count=len(stale), version=self.version)
        return len(stale)

    def _count(self, metric_name: str, amount: float = 1, **labels) -> None:
        if self.metrics:
            self.metrics.increment_counter(metric_name, amount, **labels)
