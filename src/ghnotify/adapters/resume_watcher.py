"""Detect system sleep/resume by comparing wall-clock and monotonic time.

The monotonic clock stops while the machine is suspended, the wall clock does
not. A heartbeat that sees the wall clock jump well past the monotonic delta
reports a resume.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Optional

LOGGER = logging.getLogger(__name__)

HEARTBEAT_SECONDS = 15.0
RESUME_THRESHOLD_SECONDS = 60.0


class ResumeWatcher:
    def __init__(
        self,
        on_resume: Callable[[], None],
        heartbeat: float = HEARTBEAT_SECONDS,
        threshold: float = RESUME_THRESHOLD_SECONDS,
        wall_clock: Callable[[], float] = time.time,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self._on_resume = on_resume
        self._heartbeat = heartbeat
        self._threshold = threshold
        self._wall_clock = wall_clock
        self._monotonic = monotonic
        self._last_wall = wall_clock()
        self._last_mono = monotonic()
        self._task: Optional[asyncio.Task] = None

    def check(self) -> bool:
        """Compare clocks since the previous check; returns True on a detected resume."""

        wall, mono = self._wall_clock(), self._monotonic()
        gap = (wall - self._last_wall) - (mono - self._last_mono)
        self._last_wall, self._last_mono = wall, mono
        if gap < self._threshold:
            return False
        LOGGER.info("Detected system resume after ~%ss asleep", int(gap))
        try:
            self._on_resume()
        except Exception:
            LOGGER.exception("Resume handler failed")
        return True

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._heartbeat)
            self.check()

    def start(self) -> None:
        if self._task is None:
            self._last_wall, self._last_mono = self._wall_clock(), self._monotonic()
            self._task = asyncio.get_running_loop().create_task(self._run())

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None
