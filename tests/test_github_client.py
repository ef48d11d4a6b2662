from __future__ import annotations

import asyncio
from typing import Callable, Optional

import httpx
import pytest

from ghnotify.adapters.github_client import (
    ASSIGNED,
    REVIEW_REQUESTED,
    GitHubClient,
    parse_search_results,
)
from ghnotify.core.errors import AuthenticationError, GitHubAPIError, RateLimitError


def _item(
    number: int,
    repo: str = "acme/widgets",
    login: Optional[str] = "alice",
    is_pr: bool = True,
) -> dict:
    item = {
        "number": number,
        "title": f"Change {number}",
        "repository_url": f"https://api.github.com/repos/{repo}",
        "user": {"login": login} if login else None,
        "html_url": f"https://github.com/{repo}/issues/{number}",
    }
    if is_pr:
        item["pull_request"] = {"html_url": f"https://github.com/{repo}/pull/{number}"}
    return item


class Recorder:
    """MockTransport handler that replays queued responses and records requests."""

    def __init__(self, responses: list[httpx.Response]) -> None:
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.responses.pop(0)


def _github(handler: Callable[[httpx.Request], httpx.Response], **kwargs) -> GitHubClient:
    def factory() -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url="https://api.github.com",
            transport=httpx.MockTransport(handler),
        )

    return GitHubClient("token-1", client_factory=factory, **kwargs)


def test_parse_search_results_normalizes_items() -> None:
    items = [
        _item(1),
        _item(2, is_pr=False),
        {**_item(3, login=None), "repository_url": "garbage"},
        {**_item(4), "pull_request": {"url": "x"}},
    ]

    prs = parse_search_results(items)

    assert [pr.number for pr in prs] == [1, 3, 4]
    assert prs[0].repo_full_name == "acme/widgets"
    assert prs[0].url == "https://github.com/acme/widgets/pull/1"
    assert prs[1].repo_full_name == "unknown/unknown"
    assert prs[1].author == "unknown"
    # Falls back to the generic item URL when the PR link is missing.
    assert prs[2].url == "https://github.com/acme/widgets/issues/4"


def test_fetch_sends_search_params_and_reuses_cache_on_304() -> None:
    recorder = Recorder(
        [
            httpx.Response(200, json={"items": [_item(1), _item(2)]}, headers={"etag": '"v1"'}),
            httpx.Response(304),
        ]
    )
    github = _github(recorder)

    async def run():
        first = await github.fetch_assigned("alice")
        second = await github.fetch_assigned("alice")
        await github.aclose()
        return first, second

    first, second = asyncio.run(run())

    assert first.changed is True
    assert second.changed is False
    assert second.prs == first.prs

    params = recorder.requests[0].url.params
    assert params["q"] == "is:pr is:open assignee:alice"
    assert params["sort"] == "updated"
    assert params["order"] == "desc"
    assert params["per_page"] == "100"
    assert "if-none-match" not in recorder.requests[0].headers
    assert recorder.requests[1].headers["if-none-match"] == '"v1"'
    assert recorder.requests[0].headers["authorization"] == "Bearer token-1"


def test_caches_are_per_category() -> None:
    recorder = Recorder(
        [
            httpx.Response(200, json={"items": [_item(1)]}, headers={"etag": '"a"'}),
            httpx.Response(200, json={"items": [_item(2)]}, headers={"etag": '"r"'}),
        ]
    )
    github = _github(recorder)

    async def run():
        await github.fetch_assigned("alice")
        await github.fetch_review_requested("alice")
        await github.aclose()

    asyncio.run(run())

    assert github.cache_for(ASSIGNED).etag == '"a"'
    assert github.cache_for(REVIEW_REQUESTED).etag == '"r"'
    assert recorder.requests[1].url.params["q"] == "is:pr is:open review-requested:alice"
    assert "if-none-match" not in recorder.requests[1].headers


def test_new_token_resets_user_and_caches() -> None:
    recorder = Recorder(
        [
            httpx.Response(200, json={"login": "alice"}),
            httpx.Response(200, json={"items": [_item(1)]}, headers={"etag": '"v1"'}),
            httpx.Response(200, json={"login": "bob"}),
            httpx.Response(200, json={"items": []}, headers={"etag": '"v2"'}),
        ]
    )
    github = _github(recorder)

    async def run():
        first_user = await github.get_authenticated_user()
        assert await github.get_authenticated_user() == first_user
        await github.fetch_assigned(first_user)
        github.set_token("token-1")
        assert github.cache_for(ASSIGNED).etag == '"v1"'
        github.set_token("token-2")
        second_user = await github.get_authenticated_user()
        await github.fetch_assigned(second_user)
        await github.aclose()
        return first_user, second_user

    assert asyncio.run(run()) == ("alice", "bob")
    # /user was only called once per token, and the new token fetched without an etag.
    assert [request.url.path for request in recorder.requests].count("/user") == 2
    assert "if-none-match" not in recorder.requests[3].headers
    assert recorder.requests[3].headers["authorization"] == "Bearer token-2"


def test_primary_rate_limit_retries_twice_then_raises() -> None:
    limited = {"x-ratelimit-remaining": "0", "retry-after": "3"}
    recorder = Recorder(
        [
            httpx.Response(403, json={"message": "API rate limit exceeded"}, headers=limited)
            for _ in range(3)
        ]
    )
    sleeps: list[float] = []

    async def fake_sleep(delay: float) -> None:
        sleeps.append(delay)

    github = _github(recorder, sleep=fake_sleep)

    async def run():
        try:
            await github.fetch_assigned("alice")
        finally:
            await github.aclose()

    with pytest.raises(RateLimitError) as excinfo:
        asyncio.run(run())

    assert excinfo.value.is_secondary is False
    assert len(recorder.requests) == 3
    assert sleeps == [3.0, 3.0]


def test_primary_rate_limit_recovers_after_retry() -> None:
    limited = {"x-ratelimit-remaining": "0", "retry-after": "1"}
    recorder = Recorder(
        [
            httpx.Response(429, json={"message": "API rate limit exceeded"}, headers=limited),
            httpx.Response(200, json={"items": [_item(5)]}),
        ]
    )

    async def fake_sleep(delay: float) -> None:
        return None

    github = _github(recorder, sleep=fake_sleep)

    async def run():
        result = await github.fetch_assigned("alice")
        await github.aclose()
        return result

    result = asyncio.run(run())
    assert [pr.number for pr in result.prs] == [5]
    assert github.cache_for(ASSIGNED).etag is None


def test_secondary_rate_limit_never_retries() -> None:
    recorder = Recorder(
        [
            httpx.Response(
                403,
                json={"message": "You have exceeded a secondary rate limit."},
                headers={"x-ratelimit-remaining": "4000", "retry-after": "60"},
            )
        ]
    )
    sleeps: list[float] = []

    async def fake_sleep(delay: float) -> None:
        sleeps.append(delay)

    github = _github(recorder, sleep=fake_sleep)

    async def run():
        try:
            await github.fetch_review_requested("alice")
        finally:
            await github.aclose()

    with pytest.raises(RateLimitError) as excinfo:
        asyncio.run(run())

    assert excinfo.value.is_secondary is True
    assert len(recorder.requests) == 1
    assert sleeps == []


def test_unauthorized_raises_authentication_error() -> None:
    github = _github(Recorder([httpx.Response(401, json={"message": "Bad credentials"})]))

    async def run():
        try:
            await github.get_authenticated_user()
        finally:
            await github.aclose()

    with pytest.raises(AuthenticationError) as excinfo:
        asyncio.run(run())
    assert excinfo.value.status_code == 401


def test_server_error_keeps_previous_cache() -> None:
    recorder = Recorder(
        [
            httpx.Response(200, json={"items": [_item(1)]}, headers={"etag": '"v1"'}),
            httpx.Response(502, json={"message": "Bad gateway"}),
        ]
    )
    github = _github(recorder)

    async def run():
        await github.fetch_assigned("alice")
        try:
            await github.fetch_assigned("alice")
        finally:
            await github.aclose()

    with pytest.raises(GitHubAPIError) as excinfo:
        asyncio.run(run())
    assert excinfo.value.status_code == 502
    assert github.cache_for(ASSIGNED).etag == '"v1"'
    assert [pr.number for pr in github.cache_for(ASSIGNED).data] == [1]


def test_transport_errors_are_wrapped() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("no route to host", request=request)

    github = _github(handler)

    async def run():
        try:
            await github.fetch_assigned("alice")
        finally:
            await github.aclose()

    with pytest.raises(GitHubAPIError) as excinfo:
        asyncio.run(run())
    assert excinfo.value.status_code is None


def test_connection_probe_reports_results_without_raising() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        token = request.headers["authorization"].split()[-1]
        if token == "good":
            return httpx.Response(200, json={"login": "alice"})
        if token == "bad":
            return httpx.Response(401, json={"message": "Bad credentials"})
        return httpx.Response(500, json={"message": "Server exploded"})

    github = _github(handler)

    async def run():
        results = [
            await github.test_connection("good"),
            await github.test_connection("bad"),
            await github.test_connection("flaky"),
        ]
        await github.aclose()
        return results

    good, bad, flaky = asyncio.run(run())

    assert good.success and good.username == "alice"
    assert good.message == "Connected as alice"
    assert not bad.success
    assert bad.message == "Invalid token. Please check your PAT."
    assert not flaky.success
    assert "Server exploded" in flaky.message
