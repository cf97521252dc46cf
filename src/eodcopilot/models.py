"""Typed records exchanged between the aggregation stages."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

IST = timezone(timedelta(hours=5, minutes=30), "IST")

_WEEKDAYS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")

# Raised by the ``from_api`` constructors when an upstream row is malformed.
MALFORMED_PAYLOAD_ERRORS = (KeyError, TypeError, ValueError, AttributeError)


def to_iso_utc(value: datetime) -> str:
    """Render an aware instant as ``YYYY-MM-DDTHH:MM:SS.mmmZ``."""

    stamp = value.astimezone(timezone.utc).isoformat(timespec="milliseconds")
    return stamp.replace("+00:00", "Z")


def format_ist_label(value: datetime) -> str:
    """Human readable IST rendering, e.g. ``Mon, 1 Jan 2024, 12:00 am``.

    Uses fixed tables rather than ``strftime`` so output never depends on
    the host locale. Display only; never compare on it.
    """

    local = value.astimezone(IST)
    hour = local.hour % 12 or 12
    meridiem = "am" if local.hour < 12 else "pm"
    return (
        f"{_WEEKDAYS[local.weekday()]}, {local.day} {_MONTHS[local.month - 1]} {local.year}, "
        f"{hour:02d}:{local.minute:02d} {meridiem}"
    )


def parse_gitlab_datetime(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True)
class TimeWindow:
    """Half-open ``[since, until)`` interval of aware instants."""

    since: datetime
    until: datetime

    def __post_init__(self) -> None:
        if self.since.tzinfo is None or self.until.tzinfo is None:
            raise ValueError("TimeWindow bounds must be timezone-aware")
        if self.since >= self.until:
            raise ValueError("TimeWindow requires since < until")

    @property
    def duration(self) -> timedelta:
        return self.until - self.since

    @property
    def since_iso(self) -> str:
        return to_iso_utc(self.since)

    @property
    def until_iso(self) -> str:
        return to_iso_utc(self.until)

    @property
    def since_label(self) -> str:
        return format_ist_label(self.since)

    @property
    def until_label(self) -> str:
        return format_ist_label(self.until)

    def contains(self, instant: datetime) -> bool:
        return self.since <= instant < self.until

    def as_dict(self) -> Dict[str, str]:
        return {
            "since": self.since_iso,
            "until": self.until_iso,
            "sinceIST": self.since_label,
            "untilIST": self.until_label,
        }


@dataclass(frozen=True)
class BranchRef:
    name: str


@dataclass(frozen=True)
class BranchInfo:
    """Branch list row annotated with its latest commit."""

    name: str
    last_commit_at: Optional[datetime]
    last_commit_message: Optional[str] = None
    last_commit_author: Optional[str] = None
    is_active: bool = False

    def as_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "lastCommitDate": to_iso_utc(self.last_commit_at) if self.last_commit_at else "unknown",
            "lastCommitDateIST": format_ist_label(self.last_commit_at) if self.last_commit_at else "unknown",
            "isActive": self.is_active,
            "lastCommitMessage": self.last_commit_message or "N/A",
            "lastCommitAuthor": self.last_commit_author or "N/A",
        }


@dataclass(frozen=True)
class CommitRecord:
    id: str
    title: str
    author_name: Optional[str]
    author_email: Optional[str]
    created_at: Optional[datetime]
    web_url: str
    branch: BranchRef
    short_id: Optional[str] = None

    @classmethod
    def from_api(cls, payload: Dict[str, Any], branch: BranchRef) -> "CommitRecord":
        return cls(
            id=str(payload["id"]),
            short_id=payload.get("short_id"),
            title=payload.get("title") or "",
            author_name=payload.get("author_name"),
            author_email=payload.get("author_email"),
            created_at=parse_gitlab_datetime(payload.get("created_at")),
            web_url=payload.get("web_url") or "",
            branch=branch,
        )

    def as_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "short_id": self.short_id,
            "title": self.title,
            "author_name": self.author_name,
            "author_email": self.author_email,
            "created_at": to_iso_utc(self.created_at) if self.created_at else None,
            "created_at_IST": format_ist_label(self.created_at) if self.created_at else None,
            "web_url": self.web_url,
        }


@dataclass(frozen=True)
class MergeRequestRecord:
    title: str
    source_branch: Optional[str]
    author: Optional[str]
    description: Optional[str]
    state: Optional[str]
    created_at: Optional[datetime]
    updated_at: Optional[datetime]
    web_url: str

    @classmethod
    def from_api(cls, payload: Dict[str, Any]) -> "MergeRequestRecord":
        return cls(
            title=payload.get("title") or "",
            source_branch=payload.get("source_branch") or None,
            author=(payload.get("author") or {}).get("name"),
            description=payload.get("description"),
            state=payload.get("state"),
            created_at=parse_gitlab_datetime(payload.get("created_at")),
            updated_at=parse_gitlab_datetime(payload.get("updated_at")),
            web_url=payload.get("web_url") or "",
        )

    def as_dict(self, *, description_limit: int = 200) -> Dict[str, Any]:
        description = (self.description or "")[:description_limit] or "No description"
        return {
            "title": self.title,
            "author": self.author,
            "description": description,
            "sourceBranch": self.source_branch,
            "createdAt": to_iso_utc(self.created_at) if self.created_at else None,
            "updatedAt": to_iso_utc(self.updated_at) if self.updated_at else None,
            "state": self.state,
            "webUrl": self.web_url,
        }


@dataclass(frozen=True)
class BranchResult:
    """Outcome of one branch's commit query.

    ``error`` is ``None`` on success. ``missing`` marks a branch that no
    longer exists upstream; it carries an error string but is not a warning.
    """

    branch: BranchRef
    commits: Tuple[CommitRecord, ...] = ()
    error: Optional[str] = None
    missing: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None

    def as_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "count": len(self.commits),
            "commits": [commit.as_dict() for commit in self.commits],
        }
        if self.error is not None:
            payload["error"] = self.error
        return payload


@dataclass(frozen=True)
class BranchSelection:
    branches: Tuple[BranchRef, ...]
    active: Tuple[BranchRef, ...] = ()
    mr_branches: Tuple[str, ...] = ()
    branch_infos: Tuple[BranchInfo, ...] = ()
    updated_mrs: Tuple[MergeRequestRecord, ...] = ()
    errors: Tuple[str, ...] = ()

    def stats(self) -> Dict[str, int]:
        return {"total": len(self.branch_infos), "active": len(self.active)}

    def as_dict(self) -> Dict[str, Any]:
        return {
            "activeBranches": len(self.active),
            "mrBranches": len(self.mr_branches),
            "combinedUnique": len(self.branches),
            "branches": [branch.name for branch in self.branches],
        }


@dataclass(frozen=True)
class MergeRequestFetch:
    records: Tuple[MergeRequestRecord, ...] = ()
    error: Optional[str] = None


@dataclass(frozen=True)
class ActivityDigest:
    window: TimeWindow
    commits: Tuple[CommitRecord, ...] = ()
    created_mrs: Tuple[MergeRequestRecord, ...] = ()
    reviewed_mrs: Tuple[MergeRequestRecord, ...] = ()


@dataclass
class ActivityRun:
    """Everything gathered by one processor run, including partial failures."""

    window: TimeWindow
    selection: BranchSelection
    branch_results: List[BranchResult]
    digest: ActivityDigest
    created: MergeRequestFetch
    reviewed: MergeRequestFetch
    errors: List[str] = field(default_factory=list)


__all__ = [
    "IST",
    "MALFORMED_PAYLOAD_ERRORS",
    "to_iso_utc",
    "format_ist_label",
    "parse_gitlab_datetime",
    "TimeWindow",
    "BranchRef",
    "BranchInfo",
    "CommitRecord",
    "MergeRequestRecord",
    "BranchResult",
    "BranchSelection",
    "MergeRequestFetch",
    "ActivityDigest",
    "ActivityRun",
]
