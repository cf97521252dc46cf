"""Merge request collectors for authored and reviewed MRs."""
from __future__ import annotations

from typing import Any, Dict, Iterable, List, Tuple

from clients.gitlab_client import GitLabClient
from eodcopilot.errors import UpstreamFetchFailed
from eodcopilot.logging_config import get_logger
from eodcopilot.models import MALFORMED_PAYLOAD_ERRORS, MergeRequestFetch, MergeRequestRecord, TimeWindow

logger = get_logger(__name__)


def parse_merge_requests(
    payload: Iterable[Dict[str, Any]],
) -> Tuple[Tuple[MergeRequestRecord, ...], List[str]]:
    """Convert listing rows, skipping rows that cannot be parsed.

    Returns the parsed records and one problem string per skipped row.
    """

    records: List[MergeRequestRecord] = []
    problems: List[str] = []
    for item in payload:
        try:
            records.append(MergeRequestRecord.from_api(item))
        except MALFORMED_PAYLOAD_ERRORS as exc:
            title = item.get("title") if isinstance(item, dict) else None
            problems.append(f"malformed merge request {title!r}: {exc!r}")
    return tuple(records), problems


def _collect(payload: Iterable[Dict[str, Any]], label: str) -> MergeRequestFetch:
    records, problems = parse_merge_requests(payload)
    if problems:
        message = f"{label} fetch failed: " + "; ".join(problems)
        logger.warning(message, extra={"service": "gitlab", "skipped": len(problems)})
        return MergeRequestFetch(records=records, error=message)
    return MergeRequestFetch(records=records)


def fetch_authored(
    client: GitLabClient, user_id: str, window: TimeWindow, *, per_page: int = 100
) -> MergeRequestFetch:
    """MRs in the configured project authored by ``user_id``."""

    try:
        payload = client.list_project_merge_requests(
            author_id=user_id,
            updated_after=window.since_iso,
            updated_before=window.until_iso,
            per_page=per_page,
        )
    except UpstreamFetchFailed as exc:
        message = f"Created MRs fetch failed: {exc.describe()}"
        logger.error(message, extra={"service": "gitlab"})
        return MergeRequestFetch(error=message)

    fetch = _collect(payload, "Created MRs")
    logger.info("Collected authored merge requests", extra={"count": len(fetch.records)})
    return fetch


def fetch_reviewed(
    client: GitLabClient, user_id: str, window: TimeWindow, *, per_page: int = 100
) -> MergeRequestFetch:
    """MRs anywhere on the instance where ``user_id`` is a reviewer.

    Reviewer assignments cross project boundaries, so this queries the
    instance-wide endpoint rather than the project one.
    """

    try:
        payload = client.list_merge_requests(
            reviewer_id=user_id,
            updated_after=window.since_iso,
            updated_before=window.until_iso,
            per_page=per_page,
        )
    except UpstreamFetchFailed as exc:
        message = f"Reviewed MRs fetch failed: {exc.describe()}"
        logger.error(message, extra={"service": "gitlab"})
        return MergeRequestFetch(error=message)

    fetch = _collect(payload, "Reviewed MRs")
    logger.info("Collected reviewed merge requests", extra={"count": len(fetch.records)})
    return fetch


__all__ = ["fetch_authored", "fetch_reviewed", "parse_merge_requests"]
