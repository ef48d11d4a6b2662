"""SQLite storage adapter.

Implements the core SeenStore and SnoozeStore ports using a simple SQLite
database.
"""

from __future__ import annotations

import os
import sqlite3
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from ghnotify.core.models import SeenEntry

SNOOZE_UNTIL = "snooze_until"


def _parse_timestamp(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class SQLiteStorage:
    """Thin SQLite wrapper that satisfies the SeenStore and SnoozeStore contracts."""

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def init_db(self) -> None:
        """Create tables if they do not exist.

        Tables:
        - seen: pull request keys with their first-seen timestamp
        - state: small key/value rows (snooze expiry)
        """

        directory = os.path.dirname(self._db_path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        with self._connect() as conn:
            # seen is the durable seen-set. Rows are only ever inserted or
            # pruned; first_seen is never updated for an existing key.
            # Fields:
            # - key: "owner/repo#number" (PRIMARY KEY)
            # - seen_at: ISO-8601 UTC timestamp of first observation
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS seen (
                    key TEXT PRIMARY KEY,
                    seen_at TIMESTAMP NOT NULL
                )
                """
            )
            # state holds scalar values that must survive restarts.
            # Fields:
            # - name: setting name (PRIMARY KEY)
            # - value: text-encoded value
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS state (
                    name TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
                """
            )

    def get_seen_prs(self) -> List[SeenEntry]:
        with self._connect() as conn:
            rows = conn.execute("SELECT key, seen_at FROM seen").fetchall()
        return [SeenEntry(key=row["key"], seen_at=_parse_timestamp(row["seen_at"])) for row in rows]

    def save_seen_prs(self, entries: Iterable[SeenEntry]) -> None:
        """Replace the stored seen-set in a single transaction."""

        rows = [
            (entry.key, entry.seen_at.astimezone(timezone.utc).isoformat())
            for entry in entries
        ]
        with self._connect() as conn:
            conn.execute("DELETE FROM seen")
            conn.executemany("INSERT OR IGNORE INTO seen (key, seen_at) VALUES (?, ?)", rows)

    def _get_state(self, name: str) -> Optional[str]:
        with self._connect() as conn:
            row = conn.execute("SELECT value FROM state WHERE name = ?", (name,)).fetchone()
        return row["value"] if row else None

    def _set_state(self, name: str, value: str) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO state (name, value)
                VALUES (?, ?)
                ON CONFLICT(name) DO UPDATE SET value = excluded.value
                """,
                (name, value),
            )

    def get_snooze_until(self) -> float:
        """Return the snooze expiry as a POSIX timestamp, 0 when none is set."""

        raw = self._get_state(SNOOZE_UNTIL)
        if not raw:
            return 0
        try:
            return float(raw)
        except ValueError:
            return 0

    def set_snooze_until(self, until: float) -> None:
        self._set_state(SNOOZE_UNTIL, repr(float(until)))

    def clear_snooze(self) -> None:
        self._set_state(SNOOZE_UNTIL, "0")
