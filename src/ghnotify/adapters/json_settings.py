"""JSON file settings adapter.

Settings live in the "settings" section of config.json. Other sections (for
example "logging") are left untouched when settings are written back.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile

from ghnotify.core.config import AppSettings, validate_settings
from ghnotify.core.errors import SettingsError

LOGGER = logging.getLogger(__name__)

SETTINGS_SECTION = "settings"


class JsonSettingsStore:
    """SettingsStore backed by config.json."""

    def __init__(self, path: str) -> None:
        self._path = path

    @property
    def path(self) -> str:
        return self._path

    def _load(self) -> dict:
        if not os.path.exists(self._path):
            return {}
        try:
            with open(self._path, "r", encoding="utf-8") as handle:
                config = json.load(handle)
        except ValueError as exc:
            LOGGER.warning("Could not parse %s, ignoring it: %s", self._path, exc)
            return {}
        if not isinstance(config, dict):
            LOGGER.warning("Expected a JSON object in %s, ignoring it", self._path)
            return {}
        return config

    def get_settings(self) -> AppSettings:
        """Return stored settings, or defaults when nothing valid is stored."""

        raw = self._load().get(SETTINGS_SECTION) or {}
        if not isinstance(raw, dict):
            LOGGER.warning("Stored settings are not an object, using defaults")
            return AppSettings()
        try:
            return validate_settings(raw)
        except SettingsError as exc:
            LOGGER.warning("Stored settings are invalid, using defaults: %s", exc)
            return AppSettings()

    def save_settings(self, settings: AppSettings) -> None:
        # Re-validate so a hand-built AppSettings cannot bypass the checks.
        validated = validate_settings(settings.to_dict())

        config = self._load()
        config[SETTINGS_SECTION] = validated.to_dict()

        directory = os.path.dirname(self._path) or "."
        os.makedirs(directory, exist_ok=True)
        # Write to a temp file first so a crash never leaves half a config behind.
        fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".config-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(config, handle, indent=2)
                handle.write("\n")
            os.replace(tmp_path, self._path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise
