from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import pytest
import requests

from clients.gitlab_client import GitLabClient
from clients.slack_client import SlackClient
from clients.summarizer_client import NO_ACTIVITY_REPLY, SummarizerClient, build_prompt
from eodcopilot.errors import DeliveryFailed, SummarizationUnavailable, UpstreamFetchFailed, UpstreamNotFound
from eodcopilot.models import TimeWindow


class DummyResponse:
    def __init__(
        self,
        status_code: int,
        json_data: Any = None,
        *,
        text: str = "",
        headers: dict[str, str] | None = None,
        reason: str = "",
    ) -> None:
        self.status_code = status_code
        self._json = json_data
        self.text = text
        self.headers = headers or {}
        self.reason = reason

    def json(self) -> Any:
        if self._json is None:
            raise ValueError("No JSON body")
        return self._json

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(response=self)


class FakeSession:
    def __init__(self, responses: list[Any]) -> None:
        self._responses = responses
        self.requests: list[dict[str, Any]] = []

    def request(self, method: str, url: str, **kwargs: Any) -> DummyResponse:
        self.requests.append({"method": method, "url": url, **kwargs})
        if not self._responses:
            raise AssertionError("No more responses configured")
        response = self._responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class ZeroJitter:
    def uniform(self, _: float, __: float) -> float:  # noqa: D401
        return 0.0


@pytest.fixture
def window() -> TimeWindow:
    return TimeWindow(
        since=datetime(2023, 12, 31, 18, 30, tzinfo=timezone.utc),
        until=datetime(2024, 1, 1, 18, 30, tzinfo=timezone.utc),
    )


def _gitlab(session: FakeSession, *, retries: bool = False) -> GitLabClient:
    return GitLabClient(
        base_url="https://gitlab.example.com/api/v4/",
        token="glpat-test",
        project_id="group/app",
        retries=retries,
        session=session,  # type: ignore[arg-type]
    )


def test_gitlab_request_shape() -> None:
    session = FakeSession([DummyResponse(200, [{"id": "abc"}])])
    client = _gitlab(session)

    commits = client.list_commits(
        ref_name="feature-x",
        since="2023-12-31T18:30:00.000Z",
        until="2024-01-01T18:30:00.000Z",
        author="asha@example.com",
    )

    assert commits == [{"id": "abc"}]
    sent = session.requests[0]
    assert sent["method"] == "GET"
    assert sent["url"] == "https://gitlab.example.com/api/v4/projects/group%2Fapp/repository/commits"
    assert sent["headers"] == {"PRIVATE-TOKEN": "glpat-test"}
    assert sent["params"]["ref_name"] == "feature-x"
    assert sent["params"]["author"] == "asha@example.com"
    assert sent["params"]["per_page"] == 100


def test_gitlab_reviewed_listing_is_instance_wide() -> None:
    session = FakeSession([DummyResponse(200, [])])
    client = _gitlab(session)

    client.list_merge_requests(updated_after="a", updated_before="b", reviewer_id="7")

    sent = session.requests[0]
    assert sent["url"] == "https://gitlab.example.com/api/v4/merge_requests"
    assert sent["params"]["reviewer_id"] == "7"


def test_gitlab_drops_unset_params() -> None:
    session = FakeSession([DummyResponse(200, [])])
    client = _gitlab(session)

    client.list_project_merge_requests(updated_after="a", updated_before="b")

    assert "author_id" not in session.requests[0]["params"]


def test_gitlab_404_raises_not_found() -> None:
    session = FakeSession([DummyResponse(404, {"message": "404 Branch Not Found"})])
    client = _gitlab(session)

    with pytest.raises(UpstreamNotFound) as excinfo:
        client.list_commits(ref_name="gone", since="a", until="b", author="asha")

    assert excinfo.value.status_code == 404
    assert excinfo.value.describe() == "404 - 404 Branch Not Found"


def test_gitlab_failure_is_not_retried_by_default() -> None:
    session = FakeSession([DummyResponse(503, None, reason="Service Unavailable"), DummyResponse(200, [])])
    client = _gitlab(session)

    with pytest.raises(UpstreamFetchFailed) as excinfo:
        client.list_branches()

    assert excinfo.value.status_code == 503
    assert "Service Unavailable" in excinfo.value.describe()
    assert len(session.requests) == 1


def test_gitlab_retries_on_rate_limit_when_enabled(
    monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
) -> None:
    responses = [
        DummyResponse(429, None, text="Too many requests", headers={"Retry-After": "1", "RateLimit-Remaining": "0"}),
        DummyResponse(200, [{"name": "main"}]),
    ]
    client = _gitlab(FakeSession(responses), retries=True)
    client._random = ZeroJitter()
    delays: list[float] = []
    monkeypatch.setattr(GitLabClient, "_sleep", lambda self, seconds: delays.append(seconds))

    caplog.set_level("DEBUG")
    branches = client.list_branches()

    assert branches == [{"name": "main"}]
    assert delays and delays[0] >= 1
    retry_logs = [
        record
        for record in caplog.records
        if record.levelname == "WARNING" and record.getMessage() == "Retrying after status"
    ]
    assert retry_logs
    assert getattr(retry_logs[0], "status_code") == 429


def test_gitlab_transport_error_has_no_status() -> None:
    client = _gitlab(FakeSession([requests.ConnectionError("refused")]))

    with pytest.raises(UpstreamFetchFailed) as excinfo:
        client.list_branches()

    assert excinfo.value.status_code is None
    assert excinfo.value.describe().startswith("no response - ")


def test_gitlab_rejects_non_list_payload() -> None:
    client = _gitlab(FakeSession([DummyResponse(200, {"message": "unexpected"})]))

    with pytest.raises(UpstreamFetchFailed, match="unexpected payload"):
        client.list_branches()


def test_summarizer_returns_trimmed_reply(window: TimeWindow) -> None:
    reply = {"choices": [{"message": {"content": "  *EOD UPDATE* (Mon)\n• Shipped login  "}}]}
    session = FakeSession([DummyResponse(200, reply)])
    client = SummarizerClient(
        base_url="https://llm.example.com/v1/",
        model="gpt-test",
        api_key="sk-test",
        session=session,  # type: ignore[arg-type]
    )

    text = client.summarize("\nCommits (0):\nNone\n", window)

    assert text == "*EOD UPDATE* (Mon)\n• Shipped login"
    sent = session.requests[0]
    assert sent["url"] == "https://llm.example.com/v1/chat/completions"
    assert sent["headers"]["Authorization"] == "Bearer sk-test"
    assert sent["json"]["model"] == "gpt-test"
    assert sent["json"]["messages"][0]["role"] == "system"


@pytest.mark.parametrize(
    "response",
    [
        DummyResponse(500, {"error": "overloaded"}),
        DummyResponse(200, {"choices": []}),
        DummyResponse(200, {"choices": [{"message": {"content": "   "}}]}),
        DummyResponse(200, None, text="<html>"),
    ],
)
def test_summarizer_unusable_replies_raise(response: DummyResponse, window: TimeWindow) -> None:
    client = SummarizerClient(
        base_url="https://llm.example.com/v1",
        model="gpt-test",
        api_key="sk-test",
        session=FakeSession([response]),  # type: ignore[arg-type]
    )

    with pytest.raises(SummarizationUnavailable):
        client.summarize("activity", window)


def test_prompt_carries_window_and_no_activity_reply(window: TimeWindow) -> None:
    prompt = build_prompt("\nCommits (0):\nNone\n", window)

    assert "Time window: Mon, 1 Jan 2024, 12:00 am → Tue, 2 Jan 2024, 12:00 am" in prompt
    assert "*EOD UPDATE* (Mon)" in prompt
    assert NO_ACTIVITY_REPLY in prompt


def test_slack_posts_to_user_channel() -> None:
    session = FakeSession([DummyResponse(200, {"ok": True, "ts": "1700000000.000100"})])
    client = SlackClient(bot_token="xoxb-test", session=session)  # type: ignore[arg-type]

    payload = client.post_message(channel="U123", text="hello")

    assert payload["ok"] is True
    sent = session.requests[0]
    assert sent["url"] == "https://slack.com/api/chat.postMessage"
    assert sent["json"] == {"channel": "U123", "text": "hello"}
    assert sent["headers"]["Authorization"] == "Bearer xoxb-test"


def test_slack_ok_false_raises_delivery_failed() -> None:
    session = FakeSession([DummyResponse(200, {"ok": False, "error": "channel_not_found"})])
    client = SlackClient(bot_token="xoxb-test", session=session)  # type: ignore[arg-type]

    with pytest.raises(DeliveryFailed) as excinfo:
        client.post_message(channel="U404", text="hello")

    assert excinfo.value.context["detail"] == "channel_not_found"


def test_retry_switch_comes_from_constructor_not_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EOD_ENABLE_RETRIES", "true")
    session = FakeSession([DummyResponse(502, None, reason="Bad Gateway"), DummyResponse(200, [])])
    client = _gitlab(session)

    with pytest.raises(UpstreamFetchFailed):
        client.list_branches()

    assert len(session.requests) == 1
