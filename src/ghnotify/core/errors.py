"""Error types shared by the core and adapters."""

from __future__ import annotations

from typing import Optional


class GhNotifyError(Exception):
    """Base class for all ghnotify errors."""


class SettingsError(GhNotifyError):
    """Raised when settings fail validation. Nothing is applied in that case."""

    def __init__(self, problems: list[str]) -> None:
        super().__init__("; ".join(problems))
        self.problems = problems


class CredentialError(GhNotifyError):
    """Raised when the credential store cannot persist a token."""


class GitHubAPIError(GhNotifyError):
    """Raised for failed GitHub API calls.

    ``status_code`` is None when the request never got an HTTP response
    (DNS failure, connection reset, timeout).
    """

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class AuthenticationError(GitHubAPIError):
    """The token was rejected (HTTP 401)."""

    def __init__(self, message: str = "Bad credentials") -> None:
        super().__init__(message, status_code=401)


class RateLimitError(GitHubAPIError):
    """Primary or secondary (abuse detection) rate limit hit."""

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        retry_after: Optional[float] = None,
        is_secondary: bool = False,
    ) -> None:
        super().__init__(message, status_code=status_code)
        self.retry_after = retry_after
        self.is_secondary = is_secondary
