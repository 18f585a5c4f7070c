"""
Wiring for one console session: settings, API client and cache store.
"""

from typing import Any, Optional

import httpx

from shared.config import SyncSettings, get_settings
from shared.logging import configure_logging, get_logger
from shared.metrics import MetricsCollector, get_metrics_collector
from .adapters.api_client import ApiClient
from .caching.cache_store import CacheStore
from .caching.session_storage import MemorySessionStorage, RedisSessionStorage, SessionStorage
from .fetching.engine import FetchResource
from .fetching.options import FetchOptions
from .mutations.executor import MutationExecutor, MutationOptions
from .session import SessionProvider


class SyncContext:
    """Owns the shared collaborators and hands out per-consumer objects.

    Everything is injected through the constructor; pass ``storage`` or
    ``transport`` to run against in-memory fakes.
    """

    def __init__(
        self,
        settings: Optional[SyncSettings] = None,
        *,
        session: Optional[SessionProvider] = None,
        storage: Optional[SessionStorage] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        metrics: Optional[MetricsCollector] = None,
        configure_logs: bool = False,
    ):
        self.settings = settings or get_settings()
        self.logger = get_logger("sync.context")

        if configure_logs:
            configure_logging("console_sync", self.settings.log_level)

        if metrics is None and self.settings.enable_metrics:
            metrics = get_metrics_collector("console_sync")
        self.metrics = metrics

        self.storage = storage or self._build_storage()
        self.cache_store = CacheStore(
            self.storage,
            namespace=self.settings.cache_namespace,
            version=self.settings.cache_version,
            metrics=self.metrics,
        )
        self.client = ApiClient(
            self.settings.api_base_url,
            timeout=self.settings.request_timeout,
            transport=transport,
            session=session,
            metrics=self.metrics,
        )

    def _build_storage(self) -> SessionStorage:
        backend = self.settings.storage_backend.lower()
        if backend == "redis":
            self.logger.info("Using redis session storage", redis_url=self.settings.redis_url)
            return RedisSessionStorage(self.settings.redis_url, session_ttl=self.settings.session_ttl)
        if backend != "memory":
            self.logger.warning("Unknown storage backend, falling back to memory", backend=backend)
        return MemorySessionStorage(quota_bytes=self.settings.storage_quota_bytes)

    def resource(self, url: Optional[str], **options: Any) -> FetchResource:
        """Create a read-path consumer with settings-derived defaults."""
        return FetchResource(
            url,
            FetchOptions.from_settings(self.settings, **options),
            client=self.client,
            cache_store=self.cache_store,
        )

    def mutation(self, url: str, **options: Any) -> MutationExecutor:
        """Create a write-path consumer with settings-derived defaults."""
        options.setdefault("min_loading_duration", self.settings.min_loading_duration)
        return MutationExecutor(
            url,
            MutationOptions(**options),
            client=self.client,
            cache_store=self.cache_store,
        )

    async def start(self) -> None:
        """Drop entries left behind by an older cache version."""
        await self.cache_store.purge_foreign_versions()

    async def close(self, clear_cache: bool = True) -> None:
        """End the session."""
        if clear_cache:
            await self.cache_store.clear()
        await self.client.aclose()
        if isinstance(self.storage, RedisSessionStorage):
            await self.storage.close()

    async def __aenter__(self) -> "SyncContext":
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()
