"""Per-branch commit collection with failure isolation."""
from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Iterable, List, Optional, Sequence

from clients.gitlab_client import GitLabClient
from eodcopilot.errors import RunCancelled, UpstreamFetchFailed, UpstreamNotFound
from eodcopilot.logging_config import get_logger
from eodcopilot.models import MALFORMED_PAYLOAD_ERRORS, BranchRef, BranchResult, CommitRecord, TimeWindow

logger = get_logger(__name__)


def fetch_branch_commits(
    client: GitLabClient,
    branch: BranchRef,
    window: TimeWindow,
    author_filter: str,
    *,
    per_page: int = 100,
) -> BranchResult:
    """Query one branch; never raises for upstream failures."""

    try:
        payload = client.list_commits(
            ref_name=branch.name,
            since=window.since_iso,
            until=window.until_iso,
            author=author_filter,
            per_page=per_page,
        )
        commits = tuple(CommitRecord.from_api(item, branch) for item in payload)
    except UpstreamNotFound as exc:
        logger.debug("Branch vanished before commit query", extra={"branch": branch.name})
        return BranchResult(branch=branch, error=exc.describe(), missing=True)
    except UpstreamFetchFailed as exc:
        logger.warning("Commit fetch failed", extra={"branch": branch.name, "reason": exc.describe()})
        return BranchResult(branch=branch, error=exc.describe())
    except MALFORMED_PAYLOAD_ERRORS as exc:
        reason = f"malformed commit payload: {exc!r}"
        logger.warning("Commit fetch failed", extra={"branch": branch.name, "reason": reason})
        return BranchResult(branch=branch, error=reason)

    if commits:
        logger.info("Collected commits", extra={"branch": branch.name, "count": len(commits)})
    return BranchResult(branch=branch, commits=commits)


def collect_commits(
    client: GitLabClient,
    branches: Sequence[BranchRef],
    window: TimeWindow,
    author_filter: str,
    *,
    per_page: int = 100,
    max_workers: int = 1,
    cancel_event: Optional[threading.Event] = None,
) -> List[BranchResult]:
    """Collect commits for every branch, one isolated query per branch.

    Results come back in ``branches`` order even when queries overlap.
    Setting ``cancel_event`` stops new queries from being started and raises
    :class:`RunCancelled`.
    """

    def _run(branch: BranchRef) -> BranchResult:
        if cancel_event is not None and cancel_event.is_set():
            raise RunCancelled("Commit collection cancelled", context={"branch": branch.name})
        return fetch_branch_commits(client, branch, window, author_filter, per_page=per_page)

    logger.info("Fetching commits", extra={"branches": len(branches), "max_workers": max_workers})
    if max_workers <= 1 or len(branches) <= 1:
        return [_run(branch) for branch in branches]

    with ThreadPoolExecutor(max_workers=max_workers) as ex:
        futures = [ex.submit(_run, branch) for branch in branches]
        try:
            return [future.result() for future in futures]
        except RunCancelled:
            for future in futures:
                future.cancel()
            raise


def flatten(results: Iterable[BranchResult]) -> List[CommitRecord]:
    """Concatenate per-branch commits in branch order."""

    commits: List[CommitRecord] = []
    for result in results:
        commits.extend(result.commits)
    return commits


__all__ = ["collect_commits", "fetch_branch_commits", "flatten"]
