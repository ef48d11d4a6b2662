"""GitHub REST adapter for the search endpoint.

Implements the core RemoteQueryClient port on top of httpx. Handles:
- Conditional requests with one etag cache slot per query category
- Normalizing search items into PullRequestRecord
- Primary rate limits (bounded retry) and secondary rate limits (no retry)
- A non-raising connectivity probe for token testing
"""

from __future__ import annotations

import asyncio
import logging
import re
import time
from typing import Any, Awaitable, Callable, Iterable, List, Optional

import httpx

from ghnotify.client import build_http_client
from ghnotify.core.errors import AuthenticationError, GitHubAPIError, RateLimitError
from ghnotify.core.models import CachedQueryResult, ConnectionResult, FetchResult, PullRequestRecord

LOGGER = logging.getLogger(__name__)

ASSIGNED = "assigned"
REVIEW_REQUESTED = "review_requested"
CATEGORIES = (ASSIGNED, REVIEW_REQUESTED)

UNKNOWN_REPO = "unknown/unknown"
UNKNOWN_AUTHOR = "unknown"
SEARCH_PAGE_SIZE = 100
MAX_RATE_LIMIT_RETRIES = 2

_REPO_PATTERN = re.compile(r"repos/(.+)$")


def parse_search_results(items: Iterable[dict[str, Any]]) -> List[PullRequestRecord]:
    """Convert search items to PullRequestRecord, skipping plain issues."""

    prs: List[PullRequestRecord] = []
    for item in items:
        pr_links = item.get("pull_request")
        if not pr_links:
            continue
        repo_match = _REPO_PATTERN.search(item.get("repository_url") or "")
        user = item.get("user") or {}
        prs.append(
            PullRequestRecord(
                number=int(item["number"]),
                title=item.get("title") or "",
                repo_full_name=repo_match.group(1) if repo_match else UNKNOWN_REPO,
                author=user.get("login") or UNKNOWN_AUTHOR,
                url=pr_links.get("html_url") or item.get("html_url") or "",
            )
        )
    return prs


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return response.reason_phrase


def _retry_delay(response: httpx.Response) -> Optional[float]:
    """Seconds the server asks us to wait, from retry-after or the reset header."""

    retry_after = response.headers.get("retry-after")
    if retry_after is not None:
        try:
            return max(0.0, float(retry_after))
        except ValueError:
            pass
    reset = response.headers.get("x-ratelimit-reset")
    if reset is not None:
        try:
            return max(0.0, float(reset) - time.time())
        except ValueError:
            pass
    return None


def classify_rate_limit(response: httpx.Response) -> Optional[RateLimitError]:
    """Return a RateLimitError for rate-limited responses, otherwise None."""

    if response.status_code not in (403, 429):
        return None
    message = _error_message(response)
    retry_after = _retry_delay(response)
    if response.headers.get("x-ratelimit-remaining") == "0":
        return RateLimitError(
            f"Rate limit exceeded: {message}",
            status_code=response.status_code,
            retry_after=retry_after,
        )
    if "secondary rate limit" in message.lower() or response.headers.get("retry-after") is not None:
        return RateLimitError(
            f"Secondary rate limit: {message}",
            status_code=response.status_code,
            retry_after=retry_after,
            is_secondary=True,
        )
    return None


class GitHubClient:
    """Search client with per-category etag caches and rate limit handling."""

    def __init__(
        self,
        token: Optional[str] = None,
        *,
        client: Optional[httpx.AsyncClient] = None,
        client_factory: Callable[[], httpx.AsyncClient] = build_http_client,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        max_rate_limit_retries: int = MAX_RATE_LIMIT_RETRIES,
    ) -> None:
        self._client_factory = client_factory
        self._client = client or client_factory()
        self._sleep = sleep
        self._max_rate_limit_retries = max_rate_limit_retries
        self._token: Optional[str] = None
        self._username: Optional[str] = None
        self._caches: dict[str, CachedQueryResult] = {}
        self._reset_caches()
        if token:
            self.set_token(token)

    def _reset_caches(self) -> None:
        self._caches = {category: CachedQueryResult() for category in CATEGORIES}

    def cache_for(self, category: str) -> CachedQueryResult:
        return self._caches[category]

    def set_token(self, token: str) -> None:
        """Use ``token`` for future requests; a new token drops all cached state."""

        if token == self._token:
            return
        self._token = token
        self._username = None
        self._reset_caches()

    def _auth_headers(self) -> dict[str, str]:
        if not self._token:
            raise GitHubAPIError("GitHub client has no token")
        return {"Authorization": f"Bearer {self._token}"}

    async def _request(
        self,
        path: str,
        *,
        params: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> httpx.Response:
        request_headers = {**self._auth_headers(), **(headers or {})}
        retries = 0
        while True:
            try:
                response = await self._client.get(path, params=params, headers=request_headers)
            except httpx.HTTPError as exc:
                raise GitHubAPIError(f"GET {path} failed: {exc}") from exc

            rate_limit = classify_rate_limit(response)
            if rate_limit is None:
                return response

            if rate_limit.is_secondary:
                LOGGER.warning("Secondary rate limit for GET %s", path)
                raise rate_limit

            LOGGER.warning("Rate limit hit for GET %s", path)
            if retries >= self._max_rate_limit_retries:
                raise rate_limit
            retries += 1
            delay = rate_limit.retry_after or 0.0
            LOGGER.info("Retrying after %s seconds", round(delay))
            await self._sleep(delay)

    @staticmethod
    def _raise_for_status(response: httpx.Response, operation: str) -> None:
        if response.status_code == 401:
            raise AuthenticationError(_error_message(response))
        if response.status_code >= 400:
            raise GitHubAPIError(
                f"{operation} failed: {_error_message(response)}",
                status_code=response.status_code,
            )

    async def get_authenticated_user(self) -> str:
        """Return the login for the current token, cached until the token changes."""

        if self._username:
            return self._username
        response = await self._request("/user")
        self._raise_for_status(response, "GET /user")
        self._username = response.json()["login"]
        return self._username

    async def fetch_category(self, query: str, category: str) -> FetchResult:
        cache = self._caches[category]
        headers: dict[str, str] = {}
        if cache.etag:
            headers["If-None-Match"] = cache.etag

        response = await self._request(
            "/search/issues",
            params={
                "q": query,
                "sort": "updated",
                "order": "desc",
                "per_page": SEARCH_PAGE_SIZE,
            },
            headers=headers,
        )
        if response.status_code == 304:
            return FetchResult(prs=list(cache.data), changed=False)
        self._raise_for_status(response, f"Search ({category})")

        prs = parse_search_results(response.json().get("items") or [])
        self._caches[category] = CachedQueryResult(etag=response.headers.get("etag"), data=prs)
        return FetchResult(prs=list(prs), changed=True)

    async def fetch_assigned(self, username: str) -> FetchResult:
        return await self.fetch_category(f"is:pr is:open assignee:{username}", ASSIGNED)

    async def fetch_review_requested(self, username: str) -> FetchResult:
        return await self.fetch_category(
            f"is:pr is:open review-requested:{username}", REVIEW_REQUESTED
        )

    async def test_connection(self, token: str) -> ConnectionResult:
        """Check ``token`` against GET /user without touching this client's state."""

        probe = GitHubClient(
            token, client_factory=self._client_factory, max_rate_limit_retries=0
        )
        try:
            username = await probe.get_authenticated_user()
        except AuthenticationError:
            return ConnectionResult(success=False, message="Invalid token. Please check your PAT.")
        except GitHubAPIError as exc:
            LOGGER.warning("Connection test failed (status=%s): %s", exc.status_code, exc)
            return ConnectionResult(success=False, message=str(exc) or "Connection failed")
        except Exception as exc:
            LOGGER.exception("Connection test failed")
            return ConnectionResult(success=False, message=str(exc) or "Connection failed")
        finally:
            await probe.aclose()
        return ConnectionResult(success=True, message=f"Connected as {username}", username=username)

    async def aclose(self) -> None:
        await self._client.aclose()
