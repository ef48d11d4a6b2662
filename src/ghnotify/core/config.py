"""Core configuration dataclasses.

Settings parsing from disk lives in the adapters, but these dataclasses and
the validator define the shape the core expects, so every settings write goes
through the same checks before anything is applied.
"""

from __future__ import annotations

import re
from dataclasses import asdict, dataclass, field
from typing import Any, Mapping

from ghnotify.core.errors import SettingsError
from ghnotify.core.models import NotificationMode, NotificationSound

MIN_POLL_INTERVAL = 60
MAX_POLL_INTERVAL = 3600
MAX_FILTERS = 100
MAX_FILTER_LENGTH = 200

_HHMM = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")

# Older config files spelled the speech channel "tts".
_MODE_ALIASES = {"tts": NotificationMode.SPEECH.value}


@dataclass(frozen=True)
class AppSettings:
    """User settings consumed by the poll orchestrator and notifier."""

    poll_interval: int = 300
    notification_mode: NotificationMode = NotificationMode.BOTH
    notification_sound: NotificationSound = NotificationSound.DEFAULT
    custom_sound_path: str = ""
    auto_start: bool = True
    filters: tuple[str, ...] = field(default_factory=tuple)
    quiet_hours_enabled: bool = False
    quiet_hours_start: str = "22:00"
    quiet_hours_end: str = "08:00"

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["notification_mode"] = self.notification_mode.value
        data["notification_sound"] = self.notification_sound.value
        data["filters"] = list(self.filters)
        return data


def _coerce_bool(raw: Mapping[str, Any], key: str, default: bool, problems: list[str]) -> bool:
    value = raw.get(key, default)
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.lower() in {"true", "false", "1", "0", "yes", "no"}:
        return value.lower() in {"true", "1", "yes"}
    problems.append(f"{key} must be a boolean")
    return default


def _coerce_time(raw: Mapping[str, Any], key: str, default: str, problems: list[str]) -> str:
    value = raw.get(key, default)
    if not isinstance(value, str) or not _HHMM.match(value.strip()):
        problems.append(f"{key} must use HH:MM (00:00-23:59)")
        return default
    return value.strip()


def validate_settings(raw: Mapping[str, Any]) -> AppSettings:
    """Validate a raw settings mapping and return an AppSettings.

    All problems are collected and raised together as a SettingsError, so a
    caller never ends up with a partially applied configuration.
    """

    defaults = AppSettings()
    problems: list[str] = []

    unknown = sorted(set(raw) - set(defaults.to_dict()))
    if unknown:
        problems.append(f"unknown settings: {', '.join(unknown)}")

    poll_interval = defaults.poll_interval
    raw_interval = raw.get("poll_interval", defaults.poll_interval)
    try:
        if isinstance(raw_interval, bool):
            raise ValueError
        poll_interval = int(raw_interval)
    except (TypeError, ValueError):
        problems.append("poll_interval must be an integer")
    else:
        if not MIN_POLL_INTERVAL <= poll_interval <= MAX_POLL_INTERVAL:
            problems.append(
                f"poll_interval must be between {MIN_POLL_INTERVAL} and {MAX_POLL_INTERVAL} seconds"
            )

    notification_mode = defaults.notification_mode
    raw_mode = str(raw.get("notification_mode", defaults.notification_mode.value)).lower()
    try:
        notification_mode = NotificationMode(_MODE_ALIASES.get(raw_mode, raw_mode))
    except ValueError:
        allowed = ", ".join(mode.value for mode in NotificationMode)
        problems.append(f"notification_mode must be one of: {allowed}")

    notification_sound = defaults.notification_sound
    raw_sound = str(raw.get("notification_sound", defaults.notification_sound.value)).lower()
    try:
        notification_sound = NotificationSound(raw_sound)
    except ValueError:
        allowed = ", ".join(sound.value for sound in NotificationSound)
        problems.append(f"notification_sound must be one of: {allowed}")

    custom_sound_path = raw.get("custom_sound_path", "") or ""
    if not isinstance(custom_sound_path, str):
        problems.append("custom_sound_path must be a string")
        custom_sound_path = ""
    if notification_sound is NotificationSound.CUSTOM and not custom_sound_path.strip():
        problems.append("custom_sound_path is required when notification_sound is custom")

    raw_filters = raw.get("filters", []) or []
    filters: list[str] = []
    if isinstance(raw_filters, str) or not isinstance(raw_filters, (list, tuple)):
        problems.append("filters must be a list of strings")
    else:
        if len(raw_filters) > MAX_FILTERS:
            problems.append(f"filters may hold at most {MAX_FILTERS} entries")
        for entry in raw_filters:
            if not isinstance(entry, str):
                problems.append("filters must be a list of strings")
                break
            if len(entry) > MAX_FILTER_LENGTH:
                problems.append(f"filter entries may be at most {MAX_FILTER_LENGTH} characters")
                break
            if entry.strip():
                filters.append(entry.strip())

    settings = AppSettings(
        poll_interval=poll_interval,
        notification_mode=notification_mode,
        notification_sound=notification_sound,
        custom_sound_path=custom_sound_path.strip(),
        auto_start=_coerce_bool(raw, "auto_start", defaults.auto_start, problems),
        filters=tuple(filters),
        quiet_hours_enabled=_coerce_bool(
            raw, "quiet_hours_enabled", defaults.quiet_hours_enabled, problems
        ),
        quiet_hours_start=_coerce_time(raw, "quiet_hours_start", defaults.quiet_hours_start, problems),
        quiet_hours_end=_coerce_time(raw, "quiet_hours_end", defaults.quiet_hours_end, problems),
    )

    if problems:
        raise SettingsError(problems)
    return settings
