"""Fixed-interval scheduler with cooperative cancellation.

The scheduler runs one coroutine per tick. Shutdown is signalled through an
``asyncio.Event``: the event doubles as the interval timer, so a stop request
wakes a sleeping scheduler immediately, while a tick already in flight is
allowed to finish its network calls.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

LOGGER = logging.getLogger(__name__)

MIN_INTERVAL_SECONDS = 0.1


class IntervalScheduler:
    """Calls ``tick`` every ``interval`` seconds until ``stop_event`` is set."""

    def __init__(
        self,
        name: str,
        tick: Callable[[], Awaitable[object]],
        *,
        interval: float,
        stop_event: asyncio.Event,
        initial_delay: float = 0.0,
    ) -> None:
        self.name = name
        self._tick = tick
        self._interval = max(interval, MIN_INTERVAL_SECONDS)
        self._initial_delay = max(initial_delay, 0.0)
        self._stop_event = stop_event
        self.ticks = 0

    @property
    def interval(self) -> float:
        return self._interval

    async def run(self) -> None:
        if self._initial_delay and await self._sleep(self._initial_delay):
            return

        while not self._stop_event.is_set():
            try:
                await self._tick()
            except asyncio.CancelledError:
                raise
            except Exception:
                # A tick must never take the schedule down with it
                LOGGER.exception("Scheduled task %s failed", self.name)
            self.ticks += 1

            if await self._sleep(self._interval):
                break

        LOGGER.debug("Scheduler %s stopped after %d ticks", self.name, self.ticks)

    async def _sleep(self, timeout: float) -> bool:
        """Wait for ``timeout`` seconds; True when woken by a stop request."""
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            return False
        return True
