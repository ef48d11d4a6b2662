"""Credential store adapter backed by the OS keyring.

The keyring backend (Keychain, Windows Credential Locker, Secret Service)
keeps the token encrypted at rest. Any failure to read it back is treated as
"no token", so the agent falls into the unconfigured state instead of crashing.
"""

from __future__ import annotations

import logging
import os
from typing import Optional

import keyring
from keyring.errors import KeyringError

from ghnotify.core.errors import CredentialError

LOGGER = logging.getLogger(__name__)

TOKEN_USERNAME = "github-token"


class KeyringCredentialStore:
    """CredentialStore using ``keyring`` with an optional environment fallback."""

    def __init__(self, service_name: str, env_var: Optional[str] = None) -> None:
        self._service_name = service_name
        self._env_var = env_var

    def get_token(self) -> Optional[str]:
        try:
            token = keyring.get_password(self._service_name, TOKEN_USERNAME)
        except KeyringError as exc:
            LOGGER.warning("Could not read token from keyring: %s", exc)
            token = None
        if token:
            return token
        if self._env_var:
            return os.getenv(self._env_var) or None
        return None

    def save_token(self, token: str) -> None:
        token = token.strip()
        if not token:
            raise CredentialError("Token must not be empty")
        try:
            keyring.set_password(self._service_name, TOKEN_USERNAME, token)
        except KeyringError as exc:
            raise CredentialError(f"Encryption not available on this system: {exc}") from exc
        LOGGER.info("Token saved to keyring service %s", self._service_name)

    def has_token(self) -> bool:
        return self.get_token() is not None
