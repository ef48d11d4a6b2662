"""Deduplication and allowlist helpers (core domain)."""

from __future__ import annotations

from typing import Iterable, List

from ghnotify.core.models import PullRequestRecord


def pr_key(pr: PullRequestRecord) -> str:
    return pr.key


def deduplicate_prs(
    assigned: Iterable[PullRequestRecord],
    review_requested: Iterable[PullRequestRecord],
) -> List[PullRequestRecord]:
    """Merge both result lists, keeping the first occurrence of each key.

    Assigned pull requests come first, so they win over a review request for
    the same pull request.
    """

    seen: set[str] = set()
    merged: List[PullRequestRecord] = []
    for pr in [*assigned, *review_requested]:
        key = pr_key(pr)
        if key in seen:
            continue
        seen.add(key)
        merged.append(pr)
    return merged


def normalize_filters(filters: Iterable[str]) -> List[str]:
    """Trim and lowercase allowlist entries, dropping blanks."""

    return [entry.strip().lower() for entry in filters if entry and entry.strip()]


def filter_by_allowlist(
    prs: Iterable[PullRequestRecord], filters: Iterable[str]
) -> List[PullRequestRecord]:
    """Keep pull requests whose repository is covered by the allowlist.

    Matching logic:
    - An empty allowlist passes everything.
    - An entry with a slash matches "owner/repo" exactly.
    - Any other entry matches the owner (organization or user).
    All comparisons are case-insensitive.
    """

    prs = list(prs)
    normalized = normalize_filters(filters)
    if not normalized:
        return prs

    repos = {entry for entry in normalized if "/" in entry}
    owners = {entry for entry in normalized if "/" not in entry}

    kept: List[PullRequestRecord] = []
    for pr in prs:
        full_name = pr.repo_full_name.lower()
        owner = full_name.split("/", 1)[0]
        if full_name in repos or owner in owners:
            kept.append(pr)
    return kept


def find_new_prs(prs: Iterable[PullRequestRecord], seen) -> List[PullRequestRecord]:
    """Return pull requests whose key is not in ``seen`` (anything with is_seen)."""

    return [pr for pr in prs if not seen.is_seen(pr_key(pr))]
