"""Pick the branches worth scanning for a reporting window."""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional

from clients.gitlab_client import GitLabClient
from eodcopilot.errors import UpstreamFetchFailed
from eodcopilot.logging_config import get_logger
from eodcopilot.models import (
    MALFORMED_PAYLOAD_ERRORS,
    BranchInfo,
    BranchRef,
    BranchSelection,
    MergeRequestRecord,
    TimeWindow,
    parse_gitlab_datetime,
)

from .merge_requests import parse_merge_requests

logger = get_logger(__name__)

DEFAULT_RECENCY_MARGIN = timedelta(days=7)


def is_active(last_commit_at: Optional[datetime], window: TimeWindow, recency_margin: timedelta) -> bool:
    """A branch is active when its tip is strictly newer than ``until - margin``."""

    if last_commit_at is None:
        return False
    return last_commit_at > window.until - recency_margin


def to_branch_info(payload: Dict[str, Any], window: TimeWindow, recency_margin: timedelta) -> BranchInfo:
    commit = payload.get("commit") or {}
    last_commit_at = parse_gitlab_datetime(commit.get("created_at") or commit.get("committed_date"))
    return BranchInfo(
        name=payload.get("name") or "",
        last_commit_at=last_commit_at,
        last_commit_message=commit.get("message"),
        last_commit_author=commit.get("author_name"),
        is_active=is_active(last_commit_at, window, recency_margin),
    )


def merge_branch_names(*groups: Iterable[Optional[str]]) -> List[BranchRef]:
    """Ordered union of branch names, dropping null and empty entries."""

    seen: Dict[str, None] = {}
    for group in groups:
        for name in group:
            if name:
                seen.setdefault(name, None)
    return [BranchRef(name) for name in seen]


def select_branches(
    client: GitLabClient,
    window: TimeWindow,
    *,
    recency_margin: timedelta = DEFAULT_RECENCY_MARGIN,
    branches_per_page: int = 200,
    merge_requests_per_page: int = 100,
) -> BranchSelection:
    """Return active branches plus source branches of MRs touched in-window.

    Either upstream listing may fail; the failing half is treated as empty
    and the failure is reported in ``BranchSelection.errors``. Rows that
    cannot be parsed are skipped and reported the same way.
    """

    errors: List[str] = []

    branch_infos: List[BranchInfo] = []
    try:
        payload = client.list_branches(per_page=branches_per_page)
    except UpstreamFetchFailed as exc:
        message = f"Branch fetch failed: {exc.describe()}"
        errors.append(message)
        logger.error(message, extra={"service": "gitlab"})
    else:
        for item in payload:
            try:
                branch_infos.append(to_branch_info(item, window, recency_margin))
            except MALFORMED_PAYLOAD_ERRORS as exc:
                name = item.get("name") if isinstance(item, dict) else None
                message = f"Branch fetch failed: malformed branch {name!r}: {exc!r}"
                errors.append(message)
                logger.warning(message, extra={"service": "gitlab"})
        logger.info(
            "Listed branches",
            extra={"total": len(branch_infos), "active": sum(1 for info in branch_infos if info.is_active)},
        )

    updated_mrs: List[MergeRequestRecord] = []
    try:
        mr_payload = client.list_project_merge_requests(
            updated_after=window.since_iso,
            updated_before=window.until_iso,
            per_page=merge_requests_per_page,
        )
    except UpstreamFetchFailed as exc:
        message = f"MR fetch failed: {exc.describe()}"
        errors.append(message)
        logger.error(message, extra={"service": "gitlab"})
    else:
        records, problems = parse_merge_requests(mr_payload)
        updated_mrs = list(records)
        for problem in problems:
            message = f"MR fetch failed: {problem}"
            errors.append(message)
            logger.warning(message, extra={"service": "gitlab"})
        logger.info("Listed merge requests updated in window", extra={"count": len(updated_mrs)})

    active = merge_branch_names(info.name for info in branch_infos if info.is_active)
    mr_branches = tuple(mr.source_branch for mr in updated_mrs if mr.source_branch)
    combined = merge_branch_names((ref.name for ref in active), mr_branches)
    logger.info("Branch candidates selected", extra={"count": len(combined)})

    return BranchSelection(
        branches=tuple(combined),
        active=tuple(active),
        mr_branches=mr_branches,
        branch_infos=tuple(branch_infos),
        updated_mrs=tuple(updated_mrs),
        errors=tuple(errors),
    )


__all__ = ["DEFAULT_RECENCY_MARGIN", "is_active", "merge_branch_names", "select_branches", "to_branch_info"]
