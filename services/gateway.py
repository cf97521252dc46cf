"""API Gateway event helpers shared by the report handlers."""
from __future__ import annotations

import base64
import json
from typing import Any, Dict, Optional


def response(status: int, body: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "statusCode": status,
        "headers": {"Content-Type": "application/json"},
        "body": json.dumps(body, ensure_ascii=False),
    }


def _parse_body(event: Dict[str, Any]) -> Dict[str, Any]:
    raw_body = event.get("body") or ""
    if event.get("isBase64Encoded"):
        raw_body = base64.b64decode(raw_body)
    if isinstance(raw_body, bytes):
        raw_body = raw_body.decode("utf-8")
    if not raw_body:
        return {}
    try:
        data = json.loads(raw_body)
    except json.JSONDecodeError:
        return {}
    return data if isinstance(data, dict) else {}


def requested_date(event: Dict[str, Any]) -> Optional[str]:
    """``date`` from the query string (GET) or JSON body (POST).

    A missing or unreadable POST body means "no date", i.e. the rolling
    window, rather than an error.
    """

    method = (event.get("httpMethod") or "GET").upper()
    if method == "POST":
        value = _parse_body(event).get("date")
    else:
        value = (event.get("queryStringParameters") or {}).get("date")
    if value is None or value == "":
        return None
    return str(value)


__all__ = ["response", "requested_date"]
