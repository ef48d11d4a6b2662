"""Notification suppression: manual snooze plus recurring quiet hours.

Suppression only gates delivery. Polling and seen-set tracking continue while
notifications are suppressed.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Callable

from ghnotify.core.ports import SettingsStore, SnoozeStore

LOGGER = logging.getLogger(__name__)


def parse_hhmm(value: str) -> int:
    """Return minutes since midnight for an "HH:MM" string."""

    hours, _, minutes = value.strip().partition(":")
    return int(hours) * 60 + int(minutes)


def is_in_quiet_hours(start: str, end: str, now: datetime) -> bool:
    """Return True when ``now`` (local time) falls inside ``[start, end)``.

    A start later than the end wraps past midnight, e.g. 22:00-06:00 covers
    23:30 and 02:00. Equal start and end is an empty window.
    """

    current = now.hour * 60 + now.minute
    start_minutes = parse_hhmm(start)
    end_minutes = parse_hhmm(end)

    if start_minutes > end_minutes:
        return current >= start_minutes or current < end_minutes
    return start_minutes <= current < end_minutes


class SuppressionPolicy:
    """Resolve whether notification delivery is currently suppressed."""

    def __init__(
        self,
        settings_store: SettingsStore,
        snooze_store: SnoozeStore,
        now: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._settings_store = settings_store
        self._snooze_store = snooze_store
        self._now = now

    def now(self) -> datetime:
        return self._now()

    def snooze_until(self) -> float:
        """Return the active snooze expiry as a POSIX timestamp, or 0."""

        until = self._snooze_store.get_snooze_until()
        if not until:
            return 0
        if self._now().timestamp() >= until:
            # Lazy expiry: clearing twice is harmless, so concurrent readers
            # can never resurrect a stale snooze.
            self._snooze_store.clear_snooze()
            LOGGER.info("Snooze expired")
            return 0
        return until

    def is_snoozed(self) -> bool:
        return self.snooze_until() > 0

    def is_in_quiet_hours(self) -> bool:
        settings = self._settings_store.get_settings()
        if not settings.quiet_hours_enabled:
            return False
        return is_in_quiet_hours(settings.quiet_hours_start, settings.quiet_hours_end, self._now())

    def is_suppressed(self) -> bool:
        if self.is_snoozed():
            return True
        return self.is_in_quiet_hours()

    def activate_snooze(self, duration_minutes: float) -> float:
        """Snooze notifications for ``duration_minutes`` and return the expiry timestamp."""

        if duration_minutes <= 0:
            raise ValueError("Snooze duration must be positive")
        until = (self._now() + timedelta(minutes=duration_minutes)).timestamp()
        self._snooze_store.set_snooze_until(until)
        LOGGER.info("Notifications snoozed for %s minutes", duration_minutes)
        return until

    def cancel_snooze(self) -> None:
        self._snooze_store.clear_snooze()
        LOGGER.info("Snooze cancelled")
