"""
Mutation executor: the write path (POST/PUT/PATCH/DELETE) for one consumer.
"""

from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, List, Optional, Sequence

from shared.errors import MalformedResponseError
from shared.logging import get_logger
from ..adapters.api_client import ApiClient
from ..caching.cache_store import CacheStore
from ..models import FetchState, RequestDescriptor, SuccessResponse
from ..presentation import LoadingSmoother

Listener = Callable[[FetchState], None]


@dataclass
class MutationOptions:
    """Options recognised by ``MutationExecutor``.

    ``invalidates`` lists GET urls whose cache entries are dropped after a
    successful write.
    """

    method: str = "POST"
    headers: Dict[str, str] = field(default_factory=dict)
    optimistic_update: Optional[Callable[[Any], None]] = None
    rollback_optimistic_update: Optional[Callable[[Any], None]] = None
    min_loading_duration: float = 0.4
    on_success: Optional[Callable[[SuccessResponse], None]] = None
    on_error: Optional[Callable[[Exception], None]] = None
    on_settled: Optional[Callable[[], None]] = None
    invalidates: Sequence[str] = ()


class MutationExecutor:
    """Send writes with optional optimistic update and rollback.

    Every ``mutate`` call takes a ticket from a monotonic counter. Calls are
    not queued; each runs to completion, but only the most recently started
    call may change ``data``/``error``/``loading``. Older results are still
    returned to their caller and still roll back their own optimistic update.
    """

    def __init__(
        self,
        url: str,
        options: Optional[MutationOptions] = None,
        *,
        client: ApiClient,
        cache_store: Optional[CacheStore] = None,
        **overrides: Any,
    ):
        options = options or MutationOptions()
        if overrides:
            options = replace(options, **overrides)

        self.url = url
        self.options = options
        self.client = client
        self.cache_store = cache_store
        self.state = FetchState()
        self.smoother = LoadingSmoother(options.min_loading_duration)
        self.logger = get_logger("sync.mutation")

        self._sequence = 0
        self._listeners: List[Listener] = []

    @property
    def data(self) -> Optional[SuccessResponse]:
        return self.state.data

    @property
    def error(self) -> Optional[Exception]:
        return self.state.error

    @property
    def loading(self) -> bool:
        return self.state.loading

    @property
    def is_error(self) -> bool:
        return self.state.error is not None

    @property
    def is_success(self) -> bool:
        return self.state.data is not None

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def mutate(self, variables: Any = None) -> Optional[SuccessResponse]:
        """Send ``variables`` as the JSON body.

        The optimistic hooks run for any ``variables`` other than None, so
        empty payloads such as ``{}`` or ``0`` still get an optimistic update
        and its rollback.

        Returns the success envelope, or None when the write failed (the
        error is in ``error``).
        """
        self._sequence += 1
        ticket = self._sequence
        self.state = FetchState(loading=True)
        self._notify()

        if variables is not None:
            self._invoke(self.options.optimistic_update, variables)

        started = self.smoother.start()
        try:
            try:
                envelope = await self._send(variables)
            except Exception as error:
                await self.smoother.settle(started)
                if variables is not None:
                    self._invoke(self.options.rollback_optimistic_update, variables)
                self._settle_error(ticket, error)
                return None

            await self.smoother.settle(started)
            await self._invalidate()
            self._settle_success(ticket, envelope)
            return envelope
        finally:
            if ticket == self._sequence and self.state.loading:
                self.state.loading = False
                self._notify()
            if self.options.on_settled is not None:
                try:
                    self.options.on_settled()
                except Exception as e:
                    self.logger.error("Consumer callback failed", url=self.url, callback="on_settled", error=str(e))

    def reset(self) -> None:
        """Clear state; results of in-flight calls are discarded."""
        self._sequence += 1
        self.state = FetchState()
        self._notify()

    async def _send(self, variables: Any) -> SuccessResponse:
        result = await self.client.request(
            self.options.method,
            self.url,
            json=variables,
            headers=dict(self.options.headers),
            kind="mutation",
        )
        if result.envelope is None:
            raise MalformedResponseError(
                "Unexpected response format from server",
                details={"url": self.url, "status_code": result.status_code}
            )
        return result.envelope

    async def _invalidate(self) -> None:
        if self.cache_store is None:
            return
        for url in self.options.invalidates:
            await self.cache_store.delete(self.cache_store.key_for(RequestDescriptor(url=url)))

    def _settle_success(self, ticket: int, envelope: SuccessResponse) -> None:
        if ticket != self._sequence:
            self.logger.debug("Discarding stale mutation result", url=self.url, ticket=ticket, current=self._sequence)
            return
        self.state = FetchState(data=envelope)
        self._notify()
        self._invoke(self.options.on_success, envelope)

    def _settle_error(self, ticket: int, error: Exception) -> None:
        self.logger.warning(
            "Mutation failed",
            url=self.url,
            method=self.options.method,
            code=getattr(error, "code", type(error).__name__),
            error=str(error)
        )
        if ticket != self._sequence:
            self.logger.debug("Discarding stale mutation error", url=self.url, ticket=ticket, current=self._sequence)
            return
        self.state = FetchState(error=error)
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
