"""Runs the aggregation stages for one window and shapes the debug report."""
from __future__ import annotations

import threading
from typing import Any, Dict, List, Optional

from clients.gitlab_client import GitLabClient
from eodcopilot.config import EodConfig
from eodcopilot.logging_config import get_logger
from eodcopilot.models import ActivityRun, TimeWindow

from .branch_selector import select_branches
from .commit_collector import collect_commits, flatten
from .dedupe import dedupe_commits
from .digest import build_digest
from .merge_requests import fetch_authored, fetch_reviewed

logger = get_logger(__name__)

DEBUG_REPORT_VERSION = "debug-report.v1"


class ActivityProcessor:
    """Collects one user's GitLab activity for a single window."""

    def __init__(
        self,
        *,
        client: GitLabClient,
        config: EodConfig,
        cancel_event: Optional[threading.Event] = None,
    ) -> None:
        self.client = client
        self.config = config
        self.cancel_event = cancel_event

    def process(self, window: TimeWindow) -> ActivityRun:
        gitlab = self.config.gitlab
        logger.info(
            "Collecting activity",
            extra={"since": window.since_iso, "until": window.until_iso, "project_id": gitlab.project_id},
        )

        selection = select_branches(
            self.client,
            window,
            recency_margin=gitlab.recency_margin,
            branches_per_page=gitlab.branches_per_page,
            merge_requests_per_page=gitlab.merge_requests_per_page,
        )
        branch_results = collect_commits(
            self.client,
            selection.branches,
            window,
            gitlab.author_filter,
            per_page=gitlab.commits_per_page,
            max_workers=self.config.max_workers,
            cancel_event=self.cancel_event,
        )
        commits = dedupe_commits(flatten(branch_results))
        logger.info("Commits authored in window", extra={"count": len(commits)})

        created = fetch_authored(
            self.client, gitlab.user_id, window, per_page=gitlab.merge_requests_per_page
        )
        reviewed = fetch_reviewed(
            self.client, gitlab.user_id, window, per_page=gitlab.merge_requests_per_page
        )

        errors: List[str] = list(selection.errors)
        errors.extend(
            f"Commit fetch failed for {result.branch.name}: {result.error}"
            for result in branch_results
            if result.error is not None and not result.missing
        )
        errors.extend(fetch.error for fetch in (created, reviewed) if fetch.error)

        return ActivityRun(
            window=window,
            selection=selection,
            branch_results=branch_results,
            digest=build_digest(window, commits, created.records, reviewed.records),
            created=created,
            reviewed=reviewed,
            errors=errors,
        )


def build_debug_report(run: ActivityRun, config: EodConfig) -> Dict[str, Any]:
    """Shape an :class:`ActivityRun` into the debug JSON contract.

    Every key is present even when the matching fetch failed.
    """

    selection = run.selection
    commits_per_branch = {result.branch.name: result.as_dict() for result in run.branch_results}
    branches_with_commits = [
        {"name": result.branch.name, "count": len(result.commits)}
        for result in run.branch_results
        if result.commits
    ]
    created = [mr.as_dict() for mr in run.created.records]
    reviewed = [
        {"title": mr.title, "author": mr.author, "state": mr.state, "webUrl": mr.web_url}
        for mr in run.reviewed.records
    ]
    updated = [
        {
            "title": mr.title,
            "sourceBranch": mr.source_branch,
            "author": mr.author,
            "updatedAt": mr.as_dict()["updatedAt"],
            "state": mr.state,
            "webUrl": mr.web_url,
        }
        for mr in selection.updated_mrs
    ]

    return {
        "version": DEBUG_REPORT_VERSION,
        "timeWindow": run.window.as_dict(),
        "config": config.describe(),
        "branches": [info.as_dict() for info in selection.branch_infos],
        "branchStats": selection.stats(),
        "branchSelection": selection.as_dict(),
        "commitsPerBranch": commits_per_branch,
        "mrsSummary": {
            "updatedInWindow": updated,
            "createdByUser": created,
            "reviewedByUser": reviewed,
        },
        "summary": {
            "totalBranches": len(selection.branches),
            "branchesWithCommitsLen": len(branches_with_commits),
            "totalCommitsByYou": sum(len(result.commits) for result in run.branch_results),
            "uniqueCommitsByYou": len(run.digest.commits),
            "mrsCreatedByYou": len(created),
            "mrsReviewedByYou": len(reviewed),
            "branchesWithCommits": branches_with_commits,
        },
        "errors": list(run.errors),
    }


__all__ = ["ActivityProcessor", "build_debug_report", "DEBUG_REPORT_VERSION"]
