"""Slack Web API client for delivering the EOD message."""
from __future__ import annotations

from typing import Any, Dict

import requests

from eodcopilot.errors import DeliveryFailed
from eodcopilot.logging_config import get_logger

from .base import BaseAPIClient

logger = get_logger(__name__)


class SlackClient(BaseAPIClient):
    def __init__(
        self,
        *,
        bot_token: str,
        api_url: str = "https://slack.com/api",
        timeout: float = 30.0,
        retries: bool = False,
        session: requests.Session | None = None,
    ) -> None:
        super().__init__(timeout=timeout, retries=retries, session=session)
        self.api_url = api_url.rstrip("/")
        self.bot_token = bot_token

    def post_message(self, *, channel: str, text: str) -> Dict[str, Any]:
        """Post ``text`` to a channel or user id via ``chat.postMessage``.

        Slack reports most failures as HTTP 200 with ``ok: false``; both that
        and transport errors raise :class:`DeliveryFailed`.
        """

        context: Dict[str, Any] = {"service": "slack", "channel": channel}
        try:
            response = self._request_with_retry(
                method="POST",
                url=f"{self.api_url}/chat.postMessage",
                logger_context=context,
                json={"channel": channel, "text": text},
                headers={"Authorization": f"Bearer {self.bot_token}"},
            )
        except requests.RequestException as exc:
            raise DeliveryFailed("Slack request failed", context={**context, "detail": str(exc)}) from exc

        if response.status_code >= 400:
            raise DeliveryFailed(
                "Slack returned an HTTP error",
                context={**context, "status_code": response.status_code, "detail": self._error_detail(response)},
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise DeliveryFailed("Slack returned a non-JSON body", context=context) from exc
        if not isinstance(payload, dict) or not payload.get("ok"):
            detail = payload.get("error") if isinstance(payload, dict) else None
            raise DeliveryFailed("Slack rejected the message", context={**context, "detail": detail or "unknown"})

        logger.info("Slack message delivered", extra={"channel": channel, "ts": payload.get("ts")})
        return payload


__all__ = ["SlackClient"]
