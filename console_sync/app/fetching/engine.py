"""
Fetch cache engine: the read path one UI consumer uses for one resource.
"""

import asyncio
from dataclasses import replace
from typing import Any, Callable, List, Optional

from pydantic import ValidationError

from shared.errors import MalformedResponseError
from shared.logging import get_logger
from ..adapters.api_client import ApiClient
from ..caching.cache_store import CacheStore
from ..models import CacheEntry, FetchState, RequestDescriptor, SuccessResponse
from ..presentation import LoadingSmoother
from .options import FetchOptions
from .tasks import TaskRegistry

Listener = Callable[[FetchState], None]


class FetchResource:
    """Stale-while-revalidate view of a remote resource.

    A fresh cache entry is surfaced before any network I/O and then
    revalidated in the background with the entry's validators. Cache misses
    and forced refreshes run a foreground fetch, which is the only kind of
    request that toggles ``loading``. Starting a foreground fetch cancels the
    previous one, so only the most recently started one reaches the state.
    Revalidation and polling results update the cache only, unless nothing
    is on screen yet.
    Errors are delivered through ``error`` and ``on_error``; no operation
    raises on a failed request.
    """

    def __init__(
        self,
        url: Optional[str],
        options: Optional[FetchOptions] = None,
        *,
        client: ApiClient,
        cache_store: Optional[CacheStore] = None,
        **overrides: Any,
    ):
        options = options or FetchOptions()
        if overrides:
            options = replace(options, **overrides)

        self.url = url
        self.options = options
        self.client = client
        self.cache_store = cache_store
        self.state = FetchState()
        self.smoother = LoadingSmoother(options.min_loading_duration)
        self.logger = get_logger("sync.fetch")

        self._deps = tuple(options.deps)
        self._envelope: Optional[SuccessResponse] = None
        self._foreground: Optional[asyncio.Task] = None
        self._poll_task: Optional[asyncio.Task] = None
        self._background = TaskRegistry(owner=url or "idle")
        self._listeners: List[Listener] = []
        self._mounted = False

    # Consumer-visible state

    @property
    def data(self) -> Any:
        return self.state.data

    @property
    def loading(self) -> bool:
        return self.state.loading

    @property
    def error(self) -> Optional[Exception]:
        return self.state.error

    @property
    def is_error(self) -> bool:
        return self.state.error is not None

    @property
    def is_success(self) -> bool:
        return self._envelope is not None and self.state.error is None

    @property
    def is_empty(self) -> bool:
        if self._envelope is None:
            return False
        data = self._envelope.data
        return not data or (isinstance(data, list) and len(data) == 0)

    @property
    def mounted(self) -> bool:
        return self._mounted

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener`` with a state snapshot after every transition."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # Lifecycle

    async def mount(self) -> None:
        """Start the resource: serve from cache or kick off a foreground fetch."""
        self._mounted = True
        if self.url and self.options.auto:
            await self._read(force=self.options.force_refresh)
        if self.options.poll_interval:
            self.start_polling()

    async def unmount(self) -> None:
        """Abort in-flight work and stop polling."""
        self._mounted = False
        foreground = self._cancel_foreground()
        if foreground is not None:
            await asyncio.gather(foreground, return_exceptions=True)
        self._poll_task = None
        cancelled = await self._background.cancel_all()
        self.logger.debug("Fetch resource unmounted", url=self.url, cancelled_tasks=cancelled)

    async def settled(self) -> None:
        """Wait until no foreground fetch is pending."""
        while self._foreground is not None and not self._foreground.done():
            await asyncio.wait([self._foreground])

    async def drain(self) -> None:
        """Wait for foreground and one-shot background work (not polling)."""
        await self.settled()
        pending = [task for task in self._background.tasks() if task is not self._poll_task]
        if pending:
            await asyncio.wait(pending)

    # Operations

    async def refetch(self, force: bool = False) -> None:
        """Re-run the read path; ``force`` skips the cache lookup."""
        await self._read(force=force)
        await self.settled()

    def reset(self) -> None:
        """Drop visible state and abort the foreground fetch."""
        self._cancel_foreground()
        self._envelope = None
        self.state = FetchState()
        self._notify()

    def start_polling(self, interval: Optional[float] = None) -> bool:
        interval = interval or self.options.poll_interval
        if not interval or interval <= 0 or not self.url:
            return False
        if self._poll_task is not None and not self._poll_task.done():
            return False
        self._poll_task = self._background.spawn(self._poll_loop(interval), name=f"poll:{self.url}")
        self.logger.debug("Polling started", url=self.url, interval=interval)
        return True

    def stop_polling(self) -> bool:
        if self._poll_task is None:
            return False
        self._poll_task.cancel()
        self._poll_task = None
        self.logger.debug("Polling stopped", url=self.url)
        return True

    @property
    def polling(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    async def prefetch(self) -> bool:
        """Warm the cache for this resource without touching visible state."""
        if not self.url or not self._writes_cache():
            return False

        descriptor = self.descriptor()
        key = self.cache_store.key_for(descriptor)
        if await self.cache_store.get(key) is not None:
            return True

        try:
            await self._load(descriptor, kind="prefetch")
        except Exception as e:
            self.logger.info("Prefetch failed", url=self.url, error=str(e))
            return False
        return True

    async def clear_cache(self) -> None:
        if self.url and self.cache_store is not None:
            await self.cache_store.delete(self.cache_store.key_for(self.descriptor()))

    async def set_url(self, url: Optional[str]) -> None:
        """Point the consumer at another resource (None = idle)."""
        if url == self.url:
            return
        self.url = url
        if url is None:
            self.stop_polling()
            if self._cancel_foreground() is not None:
                self.state.loading = False
                self._notify()
            return
        if self._mounted and self.options.auto:
            await self._read(force=self.options.force_refresh)

    async def set_deps(self, *deps: Any) -> None:
        """Refetch when the extra dependency values change."""
        if deps == self._deps:
            return
        self._deps = deps
        if self._mounted and self.options.auto and self.url:
            await self._read(force=self.options.force_refresh)

    def descriptor(self) -> RequestDescriptor:
        return RequestDescriptor(url=self.url, method=self.options.method, body=self.options.body)

    # Read path

    def _reads_cache(self) -> bool:
        return self._writes_cache() and not self.options.force_refresh

    def _writes_cache(self) -> bool:
        return self.cache_store is not None and self.options.cache and not self.options.bypass_cache

    async def _read(self, force: bool) -> None:
        if not self.url:
            return

        descriptor = self.descriptor()
        if self._reads_cache() and not force:
            key = self.cache_store.key_for(descriptor)
            entry = await self.cache_store.get(key)
            if entry is not None and self._surface_cached(entry):
                self._background.spawn(
                    self._revalidate(descriptor, entry),
                    name=f"revalidate:{self.url}"
                )
                return

        self._start_foreground(descriptor)

    def _surface_cached(self, entry: CacheEntry) -> bool:
        try:
            envelope = SuccessResponse.model_validate(entry.payload)
        except ValidationError:
            self.logger.warning("Cached payload is not a success envelope", url=self.url)
            return False

        self._cancel_foreground()
        self.logger.debug("Serving cached response", url=self.url, stored_at=entry.stored_at)
        self._succeed(envelope)
        return True

    def _start_foreground(self, descriptor: RequestDescriptor) -> None:
        self._cancel_foreground()
        self.state.loading = True
        self.state.error = None
        self._notify()
        self._foreground = asyncio.create_task(
            self._foreground_fetch(descriptor),
            name=f"fetch:{descriptor.url}"
        )

    def _cancel_foreground(self) -> Optional[asyncio.Task]:
        task = self._foreground
        self._foreground = None
        if task is not None and not task.done():
            task.cancel()
            return task
        return None

    async def _foreground_fetch(self, descriptor: RequestDescriptor) -> None:
        started = self.smoother.start()
        try:
            envelope = await self._load(descriptor, kind="foreground")
        except Exception as error:
            await self.smoother.settle(started)
            if self._owns_state():
                self.logger.warning(
                    "Fetch failed",
                    url=descriptor.url,
                    code=getattr(error, "code", type(error).__name__),
                    error=str(error)
                )
                self._fail(error)
            return

        await self.smoother.settle(started)
        if self._owns_state():
            self._succeed(envelope)

    def _owns_state(self) -> bool:
        return asyncio.current_task() is self._foreground

    async def _load(
        self,
        descriptor: RequestDescriptor,
        kind: str,
        entry: Optional[CacheEntry] = None,
    ) -> SuccessResponse:
        """Network round trip plus cache bookkeeping. No visible state changes."""
        headers = dict(self.options.headers)
        if entry is not None:
            headers.update(entry.validator_headers())

        result = await self.client.request(
            descriptor.method,
            descriptor.url,
            json=descriptor.body,
            headers=headers,
            kind=kind,
        )

        caching = self._writes_cache()
        key = self.cache_store.key_for(descriptor) if caching else None

        if result.not_modified:
            refreshed = await self.cache_store.touch(key, result.etag, result.last_modified) if caching else None
            if refreshed is None:
                raise MalformedResponseError(
                    "Received 304 Not Modified without a cached response",
                    details={"url": descriptor.url}
                )
            return SuccessResponse.model_validate(refreshed.payload)

        if caching:
            await self.cache_store.put(key, CacheEntry(
                payload=result.payload,
                stored_at=self.cache_store.clock(),
                ttl=self.options.cache_ttl,
                etag=result.etag,
                last_modified=result.last_modified,
            ))
        return result.envelope

    async def _revalidate(self, descriptor: RequestDescriptor, entry: CacheEntry) -> None:
        try:
            envelope = await self._load(descriptor, kind="revalidate", entry=entry)
        except Exception as e:
            self.logger.debug("Revalidation failed", url=descriptor.url, error=str(e))
            return

        if self._surfaces_background(descriptor):
            self._succeed(envelope)

    def _surfaces_background(self, descriptor: RequestDescriptor) -> bool:
        """Background results only reach the consumer while nothing is on screen."""
        idle = self._foreground is None or self._foreground.done()
        return self._envelope is None and idle and descriptor.url == self.url

    async def _poll_loop(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            await self._poll_once()

    async def _poll_once(self) -> None:
        if not self.url:
            return
        descriptor = self.descriptor()
        entry = None
        if self._writes_cache():
            entry = await self.cache_store.get(self.cache_store.key_for(descriptor))

        try:
            envelope = await self._load(descriptor, kind="poll", entry=entry)
        except Exception as e:
            self.logger.info("Poll failed", url=descriptor.url, error=str(e))
            return

        if self._surfaces_background(descriptor):
            self._succeed(envelope)

    # State transitions

    def _succeed(self, envelope: SuccessResponse) -> None:
        try:
            data = self.options.transform(envelope) if self.options.transform else envelope
        except Exception as e:
            self.logger.error("Response transform failed", url=self.url, error=str(e))
            self._fail(e)
            return

        self._envelope = envelope
        self.state.data = data
        self.state.loading = False
        self.state.error = None
        self._notify()
        self._invoke(self.options.on_success, data)

    def _fail(self, error: Exception) -> None:
        self.state.loading = False
        self.state.error = error
        self._notify()
        self._invoke(self.options.on_error, error)

    def _notify(self) -> None:
        snapshot = self.state.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as e:
                self.logger.error("State listener failed", url=self.url, error=str(e))

    def _invoke(self, callback: Optional[Callable[[Any], None]], argument: Any) -> None:
        if callback is None:
            return
        try:
            callback(argument)
        except Exception as e:
            self.logger.error("Consumer callback failed", url=self.url, callback=getattr(callback, "__name__", repr(callback)), error=str(e))
