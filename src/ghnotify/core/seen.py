"""In-memory seen-set with first-seen timestamps.

The orchestrator loads a SeenSet from persistence at the start of a cycle,
mutates it, and writes it back once at the end. A cycle that fails midway
never reaches the write, so the persisted set is all-or-nothing per cycle.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, List, Optional

from ghnotify.core.models import SeenEntry

LOGGER = logging.getLogger(__name__)

DEFAULT_MAX_AGE_DAYS = 30


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SeenSet:
    """Mapping of pull request key to the time it was first seen."""

    def __init__(
        self,
        entries: Iterable[SeenEntry] = (),
        now: Callable[[], datetime] = utc_now,
    ) -> None:
        self._now = now
        self._entries: dict[str, SeenEntry] = {}
        for entry in entries:
            # Keep the earliest timestamp if persistence ever held duplicates.
            current = self._entries.get(entry.key)
            if current is None or entry.seen_at < current.seen_at:
                self._entries[entry.key] = entry

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def is_seen(self, key: str) -> bool:
        return key in self._entries

    def get(self, key: str) -> Optional[SeenEntry]:
        return self._entries.get(key)

    def mark_seen(self, keys: Iterable[str]) -> int:
        """Insert keys that are not present yet and return how many were added.

        Existing entries keep their original first-seen timestamp.
        """

        now = self._now()
        added = 0
        for key in keys:
            if key in self._entries:
                continue
            self._entries[key] = SeenEntry(key=key, seen_at=now)
            added += 1
        return added

    def prune(self, max_age_days: int = DEFAULT_MAX_AGE_DAYS) -> int:
        """Drop entries first seen before the cutoff and return the number removed."""

        cutoff = self._now() - timedelta(days=max_age_days)
        stale = [key for key, entry in self._entries.items() if entry.seen_at < cutoff]
        for key in stale:
            del self._entries[key]
        if stale:
            LOGGER.info("Pruned %s seen entries older than %s days", len(stale), max_age_days)
        return len(stale)

    def entries(self) -> List[SeenEntry]:
        return list(self._entries.values())
