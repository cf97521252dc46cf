"""Lambda handler that builds the EOD summary and posts it to Slack."""
from __future__ import annotations

from typing import Any, Dict, Optional

from eodcopilot.config import EodConfig, load_eod_config
from eodcopilot.errors import InvalidDateFormat
from eodcopilot.logging_config import configure_logging, get_logger
from main import run_eod
from processors.window import parse_calendar_date

from ..gateway import requested_date, response

configure_logging()
LOGGER = get_logger(__name__)

_CONFIG: Optional[EodConfig] = None


def _config() -> EodConfig:
    global _CONFIG
    if _CONFIG is None:
        _CONFIG = load_eod_config()
    return _CONFIG


def handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """GET ``?date=YYYY-MM-DD`` or POST ``{"date": "YYYY-MM-DD"}``."""

    method = (event.get("httpMethod") or "GET").upper()
    if method not in {"GET", "POST"}:
        return response(405, {"message": "Method Not Allowed"})

    date_param = requested_date(event)
    try:
        if date_param:
            parse_calendar_date(date_param)
        result = run_eod(_config(), date_param)
    except InvalidDateFormat as exc:
        LOGGER.warning("Rejected EOD request", extra={"error": str(exc)})
        return response(400, {"ok": False, "error": str(exc)})
    except Exception as exc:
        LOGGER.exception("EOD %s error", method)
        return response(500, {"ok": False, "error": str(exc)})
    return response(200, {"ok": True, "message": result["message"]})


__all__ = ["handler"]
