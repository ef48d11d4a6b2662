"""Pick up settings and snooze changes written by other ghnotify processes.

The CLI writes config.json and the snooze row directly. The agent polls a
cheap fingerprint of both (file mtime plus the stored snooze expiry) and
reloads when it changes.
"""

from __future__ import annotations

import asyncio
import logging
import os
from typing import Callable, Hashable, Optional, Tuple

from ghnotify.core.ports import SnoozeStore

LOGGER = logging.getLogger(__name__)

CHECK_INTERVAL_SECONDS = 5.0


def config_fingerprint(config_path: str, snooze_store: SnoozeStore) -> Tuple[Optional[float], float]:
    try:
        mtime: Optional[float] = os.stat(config_path).st_mtime
    except FileNotFoundError:
        mtime = None
    return mtime, snooze_store.get_snooze_until()


class StateWatcher:
    def __init__(
        self,
        fingerprint: Callable[[], Hashable],
        on_change: Callable[[], None],
        interval: float = CHECK_INTERVAL_SECONDS,
    ) -> None:
        self._fingerprint = fingerprint
        self._on_change = on_change
        self._interval = interval
        self._last = fingerprint()
        self._task: Optional[asyncio.Task] = None

    def check(self) -> bool:
        """Return True (after calling ``on_change``) when the fingerprint moved."""

        try:
            current = self._fingerprint()
        except Exception:
            LOGGER.exception("Could not read agent state")
            return False
        if current == self._last:
            return False
        self._last = current
        LOGGER.info("Settings or snooze changed on disk, reloading")
        try:
            self._on_change()
        except Exception:
            LOGGER.exception("Reload failed")
        return True

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            self.check()

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.get_running_loop().create_task(self._run())

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None
