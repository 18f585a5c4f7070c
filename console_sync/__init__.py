"""
Console data-sync layer.

Fetch-and-cache engine, mutation executor and session cache store that sit
between the console's screens and its JSON API.
"""

from console_sync.app.context import SyncContext
from console_sync.app.fetching import FetchGroup, FetchOptions, FetchResource
from console_sync.app.mutations import MutationExecutor, MutationOptions

__all__ = [
    "SyncContext",
    "FetchGroup",
    "FetchOptions",
    "FetchResource",
    "MutationExecutor",
    "MutationOptions",
]
