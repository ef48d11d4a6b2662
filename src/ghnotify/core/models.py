"""Core domain models.

These dataclasses are shared across the core and adapters to avoid tight
coupling to GitHub response payloads or any storage-specific types.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


class NotificationMode(str, Enum):
    TOAST = "toast"
    SPEECH = "speech"
    BOTH = "both"


class NotificationSound(str, Enum):
    NONE = "none"
    DEFAULT = "default"
    CUSTOM = "custom"


class TrayState(str, Enum):
    NORMAL = "normal"
    ERROR = "error"
    UNCONFIGURED = "unconfigured"
    QUIET = "quiet"


@dataclass(frozen=True)
class PullRequestRecord:
    """Canonical pull request built from a search result item."""

    number: int
    title: str
    repo_full_name: str
    author: str
    url: str

    @property
    def key(self) -> str:
        """Stable identity used for dedup and the seen-set."""

        return f"{self.repo_full_name}#{self.number}"


@dataclass(frozen=True)
class SeenEntry:
    """First time a pull request key showed up in a filtered poll result."""

    key: str
    seen_at: datetime


@dataclass(frozen=True)
class FetchResult:
    prs: list[PullRequestRecord]
    changed: bool


@dataclass
class CachedQueryResult:
    """Conditional-request cache slot for one query category."""

    etag: Optional[str] = None
    data: list[PullRequestRecord] = field(default_factory=list)


@dataclass(frozen=True)
class ConnectionResult:
    success: bool
    message: str
    username: Optional[str] = None
