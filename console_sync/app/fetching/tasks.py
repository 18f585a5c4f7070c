"""
Tracked background tasks.
"""

import asyncio
from typing import Any, Coroutine, List, Optional, Set

from shared.logging import get_logger


class TaskRegistry:
    """A small set of asyncio tasks owned by one consumer.

    Finished tasks drop out on their own; ``cancel_all`` tears the rest down
    as a group and waits for them to unwind.
    """

    def __init__(self, owner: str = "consumer"):
        self.owner = owner
        self.logger = get_logger("sync.tasks")
        self._tasks: Set[asyncio.Task] = set()

    def spawn(self, coro: Coroutine[Any, Any, Any], name: Optional[str] = None) -> asyncio.Task:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self.logger.error(
                "Background task failed",
                owner=self.owner,
                task=task.get_name(),
                error=str(exc),
                error_type=type(exc).__name__
            )

    def tasks(self) -> List[asyncio.Task]:
        return list(self._tasks)

    def __len__(self) -> int:
        return len(self._tasks)

    async def cancel_all(self) -> int:
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        return len(tasks)
