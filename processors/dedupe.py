"""Cross-branch commit deduplication."""
from __future__ import annotations

from typing import Iterable, List, Set

from eodcopilot.models import CommitRecord


def dedupe_commits(commits: Iterable[CommitRecord]) -> List[CommitRecord]:
    """Keep the first record per commit id, preserving input order.

    The same commit is usually reachable from several branches; the branch
    that yielded it first is the one reported.
    """

    seen: Set[str] = set()
    unique: List[CommitRecord] = []
    for commit in commits:
        if commit.id in seen:
            continue
        seen.add(commit.id)
        unique.append(commit)
    return unique


__all__ = ["dedupe_commits"]
