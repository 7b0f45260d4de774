"""
Launch Checklist Engine - Batch Pacing

Sliding-window limiter for external calls made by batch items.
"""
import asyncio
import os
import time
from typing import Callable, List

BULK_MAX_CALLS_PER_SECOND = int(os.getenv("BULK_MAX_CALLS_PER_SECOND", "4"))


class RateLimiter:
    """At most `max_calls` acquisitions in any `period`-second window."""

    def __init__(
        self,
        max_calls: int = BULK_MAX_CALLS_PER_SECOND,
        period: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_calls = max(1, max_calls)
        self.period = period
        self.clock = clock
        self.call_times: List[float] = []
        self._lock = asyncio.Lock()

    async def acquire(self):
        async with self._lock:
            while True:
                now = self.clock()
                self.call_times = [t for t in self.call_times if now - t < self.period]
                if len(self.call_times) < self.max_calls:
                    self.call_times.append(now)
                    return
                sleep_time = self.period - (now - min(self.call_times))
                await asyncio.sleep(max(sleep_time, 0.001))
