"""
Consumer configuration for the fetch engine.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Tuple

from shared.config import SyncSettings


@dataclass
class FetchOptions:
    """Options recognised by ``FetchResource``.

    Durations are in seconds. ``force_refresh`` skips the cache lookup but
    still stores the fresh result; ``bypass_cache`` skips the cache entirely.
    Callbacks are plain callables and run on the event loop.
    """

    auto: bool = True
    cache: bool = False
    cache_ttl: float = 300.0
    poll_interval: Optional[float] = None
    deps: Tuple[Any, ...] = ()
    transform: Optional[Callable[[Any], Any]] = None
    on_success: Optional[Callable[[Any], None]] = None
    on_error: Optional[Callable[[Exception], None]] = None
    min_loading_duration: float = 0.4
    force_refresh: bool = False
    bypass_cache: bool = False

    # Request options
    method: str = "GET"
    headers: Dict[str, str] = field(default_factory=dict)
    body: Any = None

    @classmethod
    def from_settings(cls, settings: SyncSettings, **overrides) -> "FetchOptions":
        """Defaults taken from settings, then explicit overrides."""
        values = {
            "cache_ttl": settings.default_cache_ttl,
            "min_loading_duration": settings.min_loading_duration,
        }
        values.update(overrides)
        return cls(**values)
