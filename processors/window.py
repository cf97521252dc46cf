"""Resolve the reporting window for a run."""
from __future__ import annotations

import re
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional

from eodcopilot.errors import InvalidDateFormat
from eodcopilot.models import IST, TimeWindow

WINDOW_LENGTH = timedelta(hours=24)
_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def parse_calendar_date(value: str) -> date:
    """Parse a strict ``YYYY-MM-DD`` calendar date."""

    candidate = value.strip()
    if not _DATE_RE.match(candidate):
        raise InvalidDateFormat(
            f"Invalid date {value!r}; expected YYYY-MM-DD", context={"date": value}
        )
    try:
        return date.fromisoformat(candidate)
    except ValueError as exc:
        raise InvalidDateFormat(
            f"Invalid date {value!r}; not a calendar day", context={"date": value}
        ) from exc


def resolve_window(date_param: Optional[str] = None, *, now: Optional[datetime] = None) -> TimeWindow:
    """Return the ``[since, until)`` window for ``date_param``.

    A calendar day starts at midnight IST and lasts 24 hours. Without a day,
    the window is the 24 hours ending at ``now``. Arithmetic is done on
    aware instants, so the length never depends on wall-clock rules.
    """

    if date_param:
        day = parse_calendar_date(date_param)
        since = datetime.combine(day, time.min, tzinfo=IST)
        return TimeWindow(since=since, until=since + WINDOW_LENGTH)

    until = now or datetime.now(timezone.utc)
    if until.tzinfo is None:
        raise ValueError("now must be timezone-aware")
    until = until.astimezone(timezone.utc)
    return TimeWindow(since=until - WINDOW_LENGTH, until=until)


__all__ = ["WINDOW_LENGTH", "parse_calendar_date", "resolve_window"]
