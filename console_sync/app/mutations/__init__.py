"""
Write path: mutation executor with optimistic update and rollback.
"""

from .executor import MutationExecutor, MutationOptions

__all__ = [
    "MutationExecutor",
    "MutationOptions",
]
