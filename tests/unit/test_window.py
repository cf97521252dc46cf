from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from eodcopilot.errors import InvalidDateFormat
from eodcopilot.models import TimeWindow, format_ist_label, to_iso_utc
from processors.window import WINDOW_LENGTH, parse_calendar_date, resolve_window


def test_calendar_day_starts_at_ist_midnight() -> None:
    window = resolve_window("2024-01-01")

    assert window.since_iso == "2023-12-31T18:30:00.000Z"
    assert window.until_iso == "2024-01-01T18:30:00.000Z"
    assert window.since_label == "Mon, 1 Jan 2024, 12:00 am"
    assert window.until_label == "Tue, 2 Jan 2024, 12:00 am"


@pytest.mark.parametrize("day", ["2024-02-29", "2024-03-10", "2024-11-03", "2023-12-31"])
def test_calendar_window_is_always_24_hours(day: str) -> None:
    window = resolve_window(day)

    assert window.duration == WINDOW_LENGTH
    assert window.since < window.until


def test_rolling_window_ends_at_now() -> None:
    now = datetime(2024, 5, 6, 12, 0, tzinfo=timezone.utc)

    window = resolve_window(None, now=now)

    assert window.until == now
    assert window.since == now - timedelta(hours=24)


def test_empty_string_means_rolling_window() -> None:
    now = datetime(2024, 5, 6, 12, 0, tzinfo=timezone.utc)

    assert resolve_window("", now=now) == resolve_window(None, now=now)


def test_rolling_window_rejects_naive_now() -> None:
    with pytest.raises(ValueError):
        resolve_window(None, now=datetime(2024, 5, 6, 12, 0))


@pytest.mark.parametrize("value", ["2024/01/01", "01-01-2024", "2024-1-1", "yesterday", "2024-13-01", "2023-02-29"])
def test_invalid_dates_are_rejected(value: str) -> None:
    with pytest.raises(InvalidDateFormat):
        resolve_window(value)


def test_parse_calendar_date_strips_whitespace() -> None:
    assert parse_calendar_date(" 2024-01-01 ").isoformat() == "2024-01-01"


def test_time_window_requires_ordered_aware_bounds() -> None:
    instant = datetime(2024, 1, 1, tzinfo=timezone.utc)

    with pytest.raises(ValueError):
        TimeWindow(since=instant, until=instant)
    with pytest.raises(ValueError):
        TimeWindow(since=datetime(2024, 1, 1), until=datetime(2024, 1, 2))


def test_window_is_half_open(day_window: TimeWindow) -> None:
    assert day_window.contains(day_window.since)
    assert not day_window.contains(day_window.until)


def test_labels_use_twelve_hour_clock() -> None:
    afternoon = datetime(2024, 1, 1, 9, 45, tzinfo=timezone.utc)

    assert format_ist_label(afternoon) == "Mon, 1 Jan 2024, 03:15 pm"
    assert to_iso_utc(afternoon) == "2024-01-01T09:45:00.000Z"
