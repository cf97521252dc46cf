"""Shared pytest fixtures for EOD Copilot tests."""

from __future__ import annotations

import socket
from datetime import datetime, timezone

import pytest

from eodcopilot.models import TimeWindow


@pytest.fixture(autouse=True)
def _disable_network(monkeypatch: pytest.MonkeyPatch) -> None:
    """Prevent network access during the test suite.

    GitLab, Slack, the summarizer and Secrets Manager are all reached over
    HTTP; tests must use fakes, so any real socket raises immediately.
    """

    def _guard(*args: object, **kwargs: object) -> socket.socket:  # type: ignore[override]
        raise RuntimeError("Network access is disabled during tests.")

    monkeypatch.setattr(socket, "socket", _guard)
    monkeypatch.setattr(socket, "create_connection", _guard)


@pytest.fixture(autouse=True)
def _mock_secrets_manager(monkeypatch: pytest.MonkeyPatch) -> None:
    """Stub ``CredentialStore.get_all_from_secret`` so tests never reach AWS."""

    def _no_secrets(self, arn):
        return {}

    monkeypatch.setattr(
        "clients.secrets_manager.CredentialStore.get_all_from_secret",
        _no_secrets,
        raising=True,
    )


@pytest.fixture
def day_window() -> TimeWindow:
    """2024-01-01 as an IST calendar day."""

    return TimeWindow(
        since=datetime(2023, 12, 31, 18, 30, tzinfo=timezone.utc),
        until=datetime(2024, 1, 1, 18, 30, tzinfo=timezone.utc),
    )
