"""GitLab REST v4 client for branch, commit and merge request listings."""
from __future__ import annotations

from typing import Any, Dict, List, Optional
from urllib.parse import quote

import requests

from eodcopilot.errors import UpstreamFetchFailed, UpstreamNotFound
from eodcopilot.logging_config import get_logger

from .base import BaseAPIClient

logger = get_logger(__name__)


class GitLabClient(BaseAPIClient):
    """Read-only access to one project plus the instance-wide MR listing.

    Every listing is a single bounded page; callers choose ``per_page``.
    """

    def __init__(
        self,
        *,
        base_url: str,
        token: str,
        project_id: str,
        timeout: float = 30.0,
        retries: bool = False,
        session: requests.Session | None = None,
    ) -> None:
        super().__init__(timeout=timeout, retries=retries, session=session)
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.project_id = str(project_id)

    def _project_url(self, suffix: str) -> str:
        return f"{self.base_url}/projects/{quote(self.project_id, safe='')}/{suffix}"

    def _get_list(self, url: str, params: Dict[str, Any], context: Dict[str, Any]) -> List[Dict[str, Any]]:
        logger_context = {"service": "gitlab", **context}
        try:
            response = self._request_with_retry(
                method="GET",
                url=url,
                logger_context=logger_context,
                params={key: value for key, value in params.items() if value is not None},
                headers={"PRIVATE-TOKEN": self.token},
            )
        except requests.RequestException as exc:
            failure = {**logger_context, "status_code": None, "detail": str(exc)}
            raise UpstreamFetchFailed("GitLab request failed", context=failure) from exc

        if response.status_code >= 400:
            failure = {
                **logger_context,
                "status_code": response.status_code,
                "detail": self._error_detail(response),
                "snippet": response.text[:200],
            }
            if response.status_code == 404:
                raise UpstreamNotFound("GitLab resource not found", context=failure)
            logger.debug("GitLab HTTP error", extra=failure)
            raise UpstreamFetchFailed("GitLab request failed", context=failure)

        try:
            payload = response.json()
        except ValueError as exc:
            failure = {**logger_context, "status_code": response.status_code, "detail": "invalid JSON body"}
            raise UpstreamFetchFailed("GitLab returned a non-JSON body", context=failure) from exc
        if not isinstance(payload, list):
            failure = {
                **logger_context,
                "status_code": response.status_code,
                "detail": f"expected a list, received {type(payload).__name__}",
            }
            raise UpstreamFetchFailed("GitLab returned an unexpected payload", context=failure)
        return payload

    def list_branches(self, *, per_page: int = 200) -> List[Dict[str, Any]]:
        """Return repository branches, each with its ``commit`` summary."""

        return self._get_list(
            self._project_url("repository/branches"),
            {"per_page": per_page},
            {"operation": "list_branches"},
        )

    def list_project_merge_requests(
        self,
        *,
        updated_after: str,
        updated_before: str,
        author_id: Optional[str] = None,
        per_page: int = 100,
    ) -> List[Dict[str, Any]]:
        return self._get_list(
            self._project_url("merge_requests"),
            {
                "author_id": author_id,
                "updated_after": updated_after,
                "updated_before": updated_before,
                "per_page": per_page,
            },
            {"operation": "list_project_merge_requests"},
        )

    def list_merge_requests(
        self,
        *,
        updated_after: str,
        updated_before: str,
        reviewer_id: Optional[str] = None,
        per_page: int = 100,
    ) -> List[Dict[str, Any]]:
        """Instance-wide listing, not limited to the configured project."""

        return self._get_list(
            f"{self.base_url}/merge_requests",
            {
                "reviewer_id": reviewer_id,
                "updated_after": updated_after,
                "updated_before": updated_before,
                "per_page": per_page,
            },
            {"operation": "list_merge_requests"},
        )

    def list_commits(
        self,
        *,
        ref_name: str,
        since: str,
        until: str,
        author: Optional[str],
        per_page: int = 100,
    ) -> List[Dict[str, Any]]:
        return self._get_list(
            self._project_url("repository/commits"),
            {
                "ref_name": ref_name,
                "since": since,
                "until": until,
                "author": author,
                "per_page": per_page,
            },
            {"operation": "list_commits", "branch": ref_name},
        )
