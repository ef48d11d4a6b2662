"""Filesystem locations and static configuration for ghnotify.

User-editable settings (polling, notifications, quiet hours, logging) live in
a single config.json inside the data directory, next to the SQLite database
that holds the seen-set and snooze state.
"""

import json
import os
from typing import Optional

from dotenv import load_dotenv

# .env lets users point the agent at another data directory or API host.
load_dotenv()

# Data directory: config.json, ghnotify.db and the default log file.
DATA_DIR = os.path.abspath(os.path.expanduser(os.getenv("GHNOTIFY_HOME", "~/.ghnotify")))

CONFIG_PATH = os.path.join(DATA_DIR, "config.json")
DB_PATH = os.path.join(DATA_DIR, "ghnotify.db")
DEFAULT_LOG_PATH = os.path.join(DATA_DIR, "logs", "ghnotify.log")

# Keyring service name for the encrypted GitHub token.
KEYRING_SERVICE = os.getenv("GHNOTIFY_KEYRING_SERVICE", "ghnotify")

# Read-only token fallback for headless machines without a keyring backend.
TOKEN_ENV_VAR = "GHNOTIFY_TOKEN"


def load_json_config(path: Optional[str] = None) -> dict:
    """Load config.json, returning an empty config when the file does not exist."""

    path = path or CONFIG_PATH
    if not os.path.exists(path):
        return {}
    try:
        with open(path, "r", encoding="utf-8") as handle:
            config = json.load(handle)
    except ValueError:
        # Logging is not configured yet; the settings store reports the bad file.
        return {}
    return config if isinstance(config, dict) else {}


def logging_config(path: Optional[str] = None) -> dict:
    """Logging section of config.json (optional)."""

    section = load_json_config(path).get("logging", {})
    return section if isinstance(section, dict) else {}
