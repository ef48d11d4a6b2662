"""Ports (interfaces) used by the core pipeline.

Ports define the minimal contracts for the GitHub client, persistence, status
and notification adapters so that the core can be reused with different
backends.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable, List, Optional, Protocol

from ghnotify.core.models import (
    ConnectionResult,
    FetchResult,
    NotificationMode,
    NotificationSound,
    PullRequestRecord,
    SeenEntry,
    TrayState,
)

if TYPE_CHECKING:
    from ghnotify.core.config import AppSettings


class RemoteQueryClient(Protocol):
    """GitHub search operations required by the orchestrator."""

    def set_token(self, token: str) -> None:
        ...

    async def get_authenticated_user(self) -> str:
        ...

    async def fetch_assigned(self, username: str) -> FetchResult:
        ...

    async def fetch_review_requested(self, username: str) -> FetchResult:
        ...

    async def test_connection(self, token: str) -> ConnectionResult:
        ...


class CredentialStore(Protocol):
    def get_token(self) -> Optional[str]:
        ...

    def save_token(self, token: str) -> None:
        ...

    def has_token(self) -> bool:
        ...


class SettingsStore(Protocol):
    def get_settings(self) -> "AppSettings":
        ...

    def save_settings(self, settings: "AppSettings") -> None:
        ...


class SeenStore(Protocol):
    def get_seen_prs(self) -> List[SeenEntry]:
        ...

    def save_seen_prs(self, entries: Iterable[SeenEntry]) -> None:
        ...


class SnoozeStore(Protocol):
    def get_snooze_until(self) -> float:
        ...

    def set_snooze_until(self, until: float) -> None:
        ...

    def clear_snooze(self) -> None:
        ...


class StatusSink(Protocol):
    """Tray or UI surface that reflects the agent state."""

    def set_status(self, state: TrayState) -> None:
        ...

    def set_tooltip(self, tooltip: str) -> None:
        ...


class NotifierPort(Protocol):
    """Notification operations required by the core pipeline."""

    async def dispatch(
        self,
        prs: List[PullRequestRecord],
        mode: NotificationMode,
        sound_mode: NotificationSound,
        custom_sound_path: str,
    ) -> None:
        ...


class ToastBackend(Protocol):
    async def show(
        self, title: str, body: str, *, silent: bool, open_url: Optional[str] = None
    ) -> None:
        ...


class SpeechBackend(Protocol):
    async def speak(self, text: str) -> None:
        ...


class SoundPlayer(Protocol):
    def play(self, path: str) -> None:
        ...
