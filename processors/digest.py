"""Build and render the activity digest handed to the summarizer."""
from __future__ import annotations

from typing import Iterable, List

from eodcopilot.models import ActivityDigest, CommitRecord, MergeRequestRecord, TimeWindow

EMPTY_SECTION = "None"


def build_digest(
    window: TimeWindow,
    commits: Iterable[CommitRecord],
    created_mrs: Iterable[MergeRequestRecord],
    reviewed_mrs: Iterable[MergeRequestRecord],
) -> ActivityDigest:
    return ActivityDigest(
        window=window,
        commits=tuple(commits),
        created_mrs=tuple(created_mrs),
        reviewed_mrs=tuple(reviewed_mrs),
    )


def _commit_line(commit: CommitRecord) -> str:
    return f"• {commit.title} ({commit.branch.name}) → {commit.web_url}"


def _created_block(mr: MergeRequestRecord) -> str:
    description = (mr.description or "").strip() or "No description provided"
    return f"• {mr.title}\n  Description: {description}\n  URL: {mr.web_url}"


def _reviewed_line(mr: MergeRequestRecord) -> str:
    return f"• {mr.title} ({mr.web_url})"


def _section(lines: List[str]) -> str:
    return "\n".join(lines) if lines else EMPTY_SECTION


def render_digest(digest: ActivityDigest) -> str:
    """Deterministic plain-text digest; also the fallback EOD message."""

    commit_lines = [_commit_line(commit) for commit in digest.commits]
    created = [_created_block(mr) for mr in digest.created_mrs]
    reviewed = [_reviewed_line(mr) for mr in digest.reviewed_mrs]
    return (
        f"\nCommits ({len(commit_lines)}):\n{_section(commit_lines)}\n"
        f"\nMRs Created:\n{_section(created)}\n"
        f"\nMRs Reviewed:\n{_section(reviewed)}\n"
    )


__all__ = ["EMPTY_SECTION", "build_digest", "render_digest"]
