"""
Resource groups for screens that need several resources at once.
"""

import asyncio
from typing import Any, Callable, Dict, Optional

from .engine import FetchResource


class FetchGroup:
    """Mount, refetch and unmount a named set of resources together.

    ``loading`` is true while any member loads; ``value`` runs ``combine``
    over the members' data once every member has some.
    """

    def __init__(
        self,
        resources: Dict[str, FetchResource],
        combine: Optional[Callable[[Dict[str, Any]], Any]] = None,
    ):
        self.resources = dict(resources)
        self.combine = combine

    def __getitem__(self, name: str) -> FetchResource:
        return self.resources[name]

    @property
    def loading(self) -> bool:
        return any(resource.loading for resource in self.resources.values())

    @property
    def ready(self) -> bool:
        return all(resource.data is not None for resource in self.resources.values())

    @property
    def data(self) -> Dict[str, Any]:
        return {name: resource.data for name, resource in self.resources.items()}

    @property
    def errors(self) -> Dict[str, Exception]:
        return {
            name: resource.error
            for name, resource in self.resources.items()
            if resource.error is not None
        }

    @property
    def value(self) -> Any:
        if self.combine is None or not self.ready:
            return None
        return self.combine(self.data)

    async def mount(self) -> None:
        for resource in self.resources.values():
            await resource.mount()

    async def settled(self) -> None:
        await asyncio.gather(*(resource.settled() for resource in self.resources.values()))

    async def refetch(self, force: bool = False) -> None:
        await asyncio.gather(*(resource.refetch(force) for resource in self.resources.values()))

    async def unmount(self) -> None:
        await asyncio.gather(*(resource.unmount() for resource in self.resources.values()))
