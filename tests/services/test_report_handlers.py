from __future__ import annotations

import base64
import json
from typing import Any

import pytest

from eodcopilot.config import ConfigurationError
from eodcopilot.errors import DeliveryFailed
from services.debug_report import handler as debug_handler
from services.eod_report import handler as eod_handler
from services.gateway import requested_date

from tests.helpers_gitlab import make_config


@pytest.fixture(autouse=True)
def _cached_config(monkeypatch: pytest.MonkeyPatch) -> None:
    config = make_config()
    monkeypatch.setattr(debug_handler, "_CONFIG", config)
    monkeypatch.setattr(eod_handler, "_CONFIG", config)


def _body(result: dict[str, Any]) -> dict[str, Any]:
    return json.loads(result["body"])


def test_requested_date_sources() -> None:
    assert requested_date({"httpMethod": "GET", "queryStringParameters": {"date": "2024-01-01"}}) == "2024-01-01"
    assert requested_date({"httpMethod": "GET", "queryStringParameters": None}) is None
    assert requested_date({"httpMethod": "POST", "body": json.dumps({"date": "2024-01-02"})}) == "2024-01-02"
    assert requested_date({"httpMethod": "POST", "body": "{not json"}) is None
    assert requested_date({"httpMethod": "POST", "body": json.dumps({"date": ""})}) is None
    encoded = base64.b64encode(json.dumps({"date": "2024-01-03"}).encode("utf-8")).decode("ascii")
    assert requested_date({"httpMethod": "POST", "body": encoded, "isBase64Encoded": True}) == "2024-01-03"


def test_debug_handler_returns_report(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[Any] = []

    def fake_run_debug(config, date_param):
        calls.append(date_param)
        return {"version": "debug-report.v1", "errors": []}

    monkeypatch.setattr(debug_handler, "run_debug", fake_run_debug)

    result = debug_handler.handler({"httpMethod": "GET", "queryStringParameters": {"date": "2024-01-01"}}, None)

    assert result["statusCode"] == 200
    assert result["headers"]["Content-Type"] == "application/json"
    assert _body(result)["version"] == "debug-report.v1"
    assert calls == ["2024-01-01"]


@pytest.mark.parametrize("module", [debug_handler, eod_handler])
def test_unsupported_method_is_rejected(module) -> None:
    result = module.handler({"httpMethod": "DELETE"}, None)

    assert result["statusCode"] == 405


@pytest.mark.parametrize("module", [debug_handler, eod_handler])
def test_invalid_date_returns_400(module) -> None:
    result = module.handler({"httpMethod": "GET", "queryStringParameters": {"date": "01/01/2024"}}, None)

    assert result["statusCode"] == 400
    body = _body(result)
    assert body["ok"] is False
    assert "YYYY-MM-DD" in body["error"]


def test_eod_handler_post_reports_window(monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_run_eod(config, date_param):
        assert date_param == "2024-01-01"
        return {"ok": True, "message": "EOD sent for window A → B"}

    monkeypatch.setattr(eod_handler, "run_eod", fake_run_eod)

    result = eod_handler.handler({"httpMethod": "POST", "body": json.dumps({"date": "2024-01-01"})}, None)

    assert result["statusCode"] == 200
    assert _body(result) == {"ok": True, "message": "EOD sent for window A → B"}


def test_eod_handler_delivery_failure_returns_500(monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_run_eod(config, date_param):
        raise DeliveryFailed("Slack rejected the message")

    monkeypatch.setattr(eod_handler, "run_eod", fake_run_eod)

    result = eod_handler.handler({"httpMethod": "GET"}, None)

    assert result["statusCode"] == 500
    assert _body(result) == {"ok": False, "error": "Slack rejected the message"}


@pytest.mark.parametrize("module", [debug_handler, eod_handler])
def test_invalid_date_wins_over_config_failure(monkeypatch: pytest.MonkeyPatch, module) -> None:
    def broken_config():
        raise ConfigurationError("Missing required configuration values: gitlab.token")

    monkeypatch.setattr(module, "_config", broken_config)

    bad = module.handler({"httpMethod": "GET", "queryStringParameters": {"date": "2024/01/01"}}, None)
    rolling = module.handler({"httpMethod": "GET"}, None)

    assert bad["statusCode"] == 400
    assert rolling["statusCode"] == 500
