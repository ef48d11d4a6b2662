"""Status sink for headless runs.

Without a tray icon the agent state is surfaced through the log; the latest
state and tooltip stay available for the CLI.
"""

from __future__ import annotations

import logging

from ghnotify.core.models import TrayState

LOGGER = logging.getLogger(__name__)


class LoggingStatusSink:
    """StatusSink that logs state transitions and tooltip changes."""

    def __init__(self) -> None:
        self.state = TrayState.UNCONFIGURED
        self.tooltip = "GitHub Notify - Not configured"

    def set_status(self, state: TrayState) -> None:
        if state is self.state:
            return
        LOGGER.info("Status changed: %s -> %s", self.state.value, state.value)
        self.state = state

    def set_tooltip(self, tooltip: str) -> None:
        if tooltip == self.tooltip:
            return
        self.tooltip = tooltip
        LOGGER.info("%s", tooltip.replace("\n", " | "))
