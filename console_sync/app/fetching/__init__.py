"""
Read path: per-consumer fetch engine, its options and resource groups.
"""

from .engine import FetchResource
from .group import FetchGroup
from .options import FetchOptions
from .tasks import TaskRegistry

__all__ = [
    "FetchResource",
    "FetchGroup",
    "FetchOptions",
    "TaskRegistry",
]
