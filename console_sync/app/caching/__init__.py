"""
Session caching package.

Provides the namespaced, versioned cache store used by the fetch engine and
the session-scoped storage backends behind it. Cached data is always
provisional; the next authoritative fetch supersedes it.
"""

from .cache_store import CacheStore
from .session_storage import MemorySessionStorage, RedisSessionStorage, SessionStorage

__all__ = [
    "CacheStore",
    "MemorySessionStorage",
    "RedisSessionStorage",
    "SessionStorage",
]
