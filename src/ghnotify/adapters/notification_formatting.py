"""Shared notification formatting helpers.

Keeping formatting here prevents drift between the toast and speech channels
and keeps messages consistent regardless of delivery backend.
"""

from __future__ import annotations

import re
from typing import Optional
from urllib.parse import urlsplit

from ghnotify.core.models import PullRequestRecord

APP_NAME = "GitHub Notify"
SPEECH_TITLE_CHARS = 100

# Speech engines get letters, digits, whitespace and a little punctuation only.
_UNSAFE_SPEECH_CHARS = re.compile(r"[^\w\s.,:;!?'()#/@-]|_")


def format_toast_title(pr: PullRequestRecord) -> str:
    return f"{pr.repo_full_name}#{pr.number}"


def format_toast_body(pr: PullRequestRecord) -> str:
    return f"{pr.title}\nby @{pr.author}"


def format_rollup_body(remaining: int) -> str:
    return f"{remaining} more new pull requests need your attention"


def safe_github_url(url: str) -> Optional[str]:
    """Return ``url`` if it points at https://github.com/, otherwise None."""

    try:
        parts = urlsplit(url or "")
    except ValueError:
        return None
    if parts.scheme != "https" or parts.netloc.lower() != "github.com":
        return None
    if not parts.path.startswith("/"):
        return None
    return url


def sanitize_for_speech(text: str) -> str:
    """Strip characters a speech engine could treat as markup or control codes."""

    cleaned = _UNSAFE_SPEECH_CHARS.sub(" ", text)
    return re.sub(r"\s+", " ", cleaned).strip()


def truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


def format_speech(pr: PullRequestRecord) -> str:
    title = truncate(pr.title, SPEECH_TITLE_CHARS)
    return (
        f"New pull request in {sanitize_for_speech(pr.repo_full_name)}: "
        f"{sanitize_for_speech(title)}, by {sanitize_for_speech(pr.author)}"
    )


def format_rollup_speech(remaining: int) -> str:
    return f"And {remaining} more pull requests need your attention."
