"""Desktop notification dispatcher.

Implements the core NotifierPort by fanning a batch of new pull requests out
to toast, speech and sound backends. Every channel failure is logged and
contained here, so a broken speech engine can never fail a poll cycle.
"""

from __future__ import annotations

import logging
from typing import List

from ghnotify.adapters.notification_formatting import (
    APP_NAME,
    format_rollup_body,
    format_rollup_speech,
    format_speech,
    format_toast_body,
    format_toast_title,
    safe_github_url,
)
from ghnotify.core.models import NotificationMode, NotificationSound, PullRequestRecord
from ghnotify.core.ports import SoundPlayer, SpeechBackend, ToastBackend

LOGGER = logging.getLogger(__name__)

MAX_INDIVIDUAL_NOTIFICATIONS = 5


class DesktopNotifier:
    """Notifier adapter that shows toasts, speaks summaries and plays a sound."""

    def __init__(self, toast: ToastBackend, speech: SpeechBackend, sound: SoundPlayer) -> None:
        self._toast = toast
        self._speech = speech
        self._sound = sound

    async def dispatch(
        self,
        prs: List[PullRequestRecord],
        mode: NotificationMode,
        sound_mode: NotificationSound,
        custom_sound_path: str,
    ) -> None:
        if not prs:
            return

        individual = prs[:MAX_INDIVIDUAL_NOTIFICATIONS]
        remaining = len(prs) - len(individual)

        # One custom sound per batch; toasts stay silent unless the OS sound is wanted.
        if sound_mode is NotificationSound.CUSTOM and custom_sound_path:
            try:
                self._sound.play(custom_sound_path)
            except Exception:
                LOGGER.exception("Failed to play custom sound %s", custom_sound_path)
        silent = sound_mode is not NotificationSound.DEFAULT

        if mode in (NotificationMode.TOAST, NotificationMode.BOTH):
            await self._show_toasts(individual, remaining, silent)

        if mode in (NotificationMode.SPEECH, NotificationMode.BOTH):
            await self._speak(individual, remaining)

        LOGGER.info("Dispatched notifications for %s PRs (%s rolled up)", len(prs), max(remaining, 0))

    async def _show_toasts(self, prs: List[PullRequestRecord], remaining: int, silent: bool) -> None:
        for pr in prs:
            open_url = safe_github_url(pr.url)
            if open_url is None:
                LOGGER.warning("Refusing to link untrusted URL for %s: %r", pr.key, pr.url)
            try:
                await self._toast.show(
                    format_toast_title(pr),
                    format_toast_body(pr),
                    silent=silent,
                    open_url=open_url,
                )
            except Exception:
                LOGGER.exception("Toast failed for %s", pr.key)

        if remaining > 0:
            try:
                await self._toast.show(APP_NAME, format_rollup_body(remaining), silent=silent)
            except Exception:
                LOGGER.exception("Rollup toast failed")

    async def _speak(self, prs: List[PullRequestRecord], remaining: int) -> None:
        for pr in prs:
            try:
                await self._speech.speak(format_speech(pr))
            except Exception:
                # Stop the per-PR run after the first failure; the rollup still runs.
                LOGGER.exception("Speech failed for %s, skipping remaining items", pr.key)
                break

        if remaining > 0:
            try:
                await self._speech.speak(format_rollup_speech(remaining))
            except Exception:
                LOGGER.exception("Rollup speech failed")
