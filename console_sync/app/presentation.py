"""
Presentation-side timing helpers.

The data layer resolves as soon as the network does; this wrapper only
decides when a consumer-visible terminal transition may happen so that fast
responses do not flash a loading indicator.
"""

import asyncio
import time
from typing import Callable


class LoadingSmoother:
    """Hold terminal state transitions until ``min_duration`` has elapsed."""

    def __init__(self, min_duration: float = 0.4, clock: Callable[[], float] = time.monotonic):
        self.min_duration = max(0.0, min_duration)
        self.clock = clock

    def start(self) -> float:
        return self.clock()

    def remaining(self, started_at: float) -> float:
        return max(0.0, self.min_duration - (self.clock() - started_at))

    async def settle(self, started_at: float) -> None:
        """Sleep ``max(0, min_duration - elapsed)``."""
        delay = self.remaining(started_at)
        if delay > 0:
            await asyncio.sleep(delay)
