"""Cancellable scheduled callbacks on the running asyncio loop.

The orchestrator never touches loop timers directly; it asks a scheduler for
a ScheduledTask handle, which keeps rescheduling and cancellation explicit and
lets tests swap in a manual scheduler.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional, Protocol

LOGGER = logging.getLogger(__name__)


class ScheduledTask(Protocol):
    @property
    def active(self) -> bool:
        ...

    def cancel(self) -> None:
        ...


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[[], None]) -> ScheduledTask:
        ...

    def call_every(self, interval: float, callback: Callable[[], None]) -> ScheduledTask:
        ...


class _DeferredCall:
    """One-shot callback backed by ``loop.call_later``."""

    def __init__(self, loop: asyncio.AbstractEventLoop, delay: float, callback: Callable[[], None]) -> None:
        self._callback = callback
        self._fired = False
        self._handle = loop.call_later(max(0.0, delay), self._fire)

    def _fire(self) -> None:
        self._fired = True
        self._callback()

    @property
    def active(self) -> bool:
        return not self._fired and not self._handle.cancelled()

    def cancel(self) -> None:
        self._handle.cancel()


class _PeriodicCall:
    """Fixed-rate callback running as a background task until cancelled."""

    def __init__(self, interval: float, callback: Callable[[], None]) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self._interval = interval
        self._callback = callback
        self._task: Optional[asyncio.Task] = asyncio.get_running_loop().create_task(self._run())

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        next_tick = loop.time() + self._interval
        while True:
            await asyncio.sleep(max(0.0, next_tick - loop.time()))
            next_tick += self._interval
            try:
                self._callback()
            except Exception:
                LOGGER.exception("Scheduled callback failed")

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    def cancel(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None


class AsyncioScheduler:
    """Scheduler bound to the currently running event loop."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> ScheduledTask:
        return _DeferredCall(asyncio.get_running_loop(), delay, callback)

    def call_every(self, interval: float, callback: Callable[[], None]) -> ScheduledTask:
        return _PeriodicCall(interval, callback)
