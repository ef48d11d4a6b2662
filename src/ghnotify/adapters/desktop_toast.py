"""Native toast notifications.

macOS goes through pync (terminal-notifier), which supports click-to-open and
sound selection. Other platforms use plyer, whose notifications carry no click
action, so the link is only available on macOS.
"""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import Optional

from ghnotify.adapters.notification_formatting import APP_NAME

LOGGER = logging.getLogger(__name__)

TOAST_TIMEOUT_SECONDS = 10


class PlatformToastBackend:
    """ToastBackend that picks the notification library for the running OS."""

    def __init__(self, app_name: str = APP_NAME, platform: str = sys.platform) -> None:
        self._app_name = app_name
        self._platform = platform

    def _show_macos(self, title: str, body: str, silent: bool, open_url: Optional[str]) -> None:
        import pync

        options = {"title": title, "group": self._app_name}
        if open_url:
            options["open"] = open_url
        if not silent:
            options["sound"] = "default"
        pync.notify(body, **options)

    def _show_plyer(self, title: str, body: str) -> None:
        from plyer import notification

        notification.notify(
            title=title,
            message=body,
            app_name=self._app_name,
            timeout=TOAST_TIMEOUT_SECONDS,
        )

    def _show(self, title: str, body: str, silent: bool, open_url: Optional[str]) -> None:
        if self._platform == "darwin":
            self._show_macos(title, body, silent, open_url)
        else:
            self._show_plyer(title, body)

    async def show(
        self, title: str, body: str, *, silent: bool, open_url: Optional[str] = None
    ) -> None:
        # Both libraries block on a subprocess or DBus call.
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._show, title, body, silent, open_url)
        LOGGER.debug("Toast shown: %s", title)
