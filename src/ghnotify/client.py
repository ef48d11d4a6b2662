"""HTTP client factory for the GitHub REST API.

The client is created once per GitHubClient and closed explicitly on
shutdown, so it is obvious when connections are opened and when they end.
"""

from __future__ import annotations

import logging
import os

import httpx
from dotenv import load_dotenv

from ghnotify import __version__

DEFAULT_API_URL = "https://api.github.com"
DEFAULT_TIMEOUT_SECONDS = 30.0


def build_http_client() -> httpx.AsyncClient:
    """Create an httpx client for api.github.com (or GHNOTIFY_API_URL).

    Authentication is added per request, so one client factory serves both
    the polling client and short-lived token probes.
    """

    load_dotenv()

    base_url = os.getenv("GHNOTIFY_API_URL", DEFAULT_API_URL)
    timeout = float(os.getenv("GHNOTIFY_HTTP_TIMEOUT", DEFAULT_TIMEOUT_SECONDS))

    logging.getLogger(__name__).debug("Initializing GitHub HTTP client for %s", base_url)

    return httpx.AsyncClient(
        base_url=base_url,
        timeout=timeout,
        headers={
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": f"ghnotify/{__version__}",
        },
    )
