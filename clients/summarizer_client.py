"""OpenAI-compatible chat completion client used to write the EOD prose."""
from __future__ import annotations

from typing import Any, Dict, List

import requests

from eodcopilot.errors import SummarizationUnavailable
from eodcopilot.logging_config import get_logger
from eodcopilot.models import TimeWindow

from .base import BaseAPIClient

logger = get_logger(__name__)

SYSTEM_PROMPT = "You are a concise assistant generating daily developer EOD summaries."
NO_ACTIVITY_REPLY = "*EOD UPDATE*\nNo activity on GitLab today."


def build_prompt(activity: str, window: TimeWindow) -> str:
    """Instruction contract around the rendered digest."""

    day_label = window.since_label.split(",")[0]
    return f"""Summarize the following GitLab activity into a concise EOD update for a Slack message.
Time window: {window.since_label} → {window.until_label}
Raw activity:
{activity}

Instructions:
1. Keep it short (3-6 bullets), action-oriented, and professional
2. No vague updates - be specific about what was done
3. Group related work together under main topics
4. Use nested bullet points (with proper indentation using spaces) for subtopics

IMPORTANT - Follow this exact format:

*EOD UPDATE* ({day_label})
• Main accomplishment or feature area
  ◦ Specific detail or subtask
  ◦ Another specific detail
• Another main accomplishment
  ◦ Specific detail

If there's no activity, respond with exactly:
{NO_ACTIVITY_REPLY}

Use bullet point characters:
- Main points: • (bullet)
- Sub-points: ◦ (white bullet) with 2 spaces indentation
"""


class SummarizerClient(BaseAPIClient):
    def __init__(
        self,
        *,
        base_url: str,
        model: str,
        api_key: str,
        timeout: float = 30.0,
        retries: bool = False,
        session: requests.Session | None = None,
    ) -> None:
        super().__init__(timeout=timeout, retries=retries, session=session)
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.api_key = api_key

    def _messages(self, activity: str, window: TimeWindow) -> List[Dict[str, str]]:
        return [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": build_prompt(activity, window)},
        ]

    def summarize(self, activity: str, window: TimeWindow) -> str:
        """Return the model's EOD text; raise when there is nothing usable."""

        context: Dict[str, Any] = {"service": "summarizer", "model": self.model}
        try:
            response = self._request_with_retry(
                method="POST",
                url=f"{self.base_url}/chat/completions",
                logger_context=context,
                json={"model": self.model, "messages": self._messages(activity, window)},
                headers={"Authorization": f"Bearer {self.api_key}"},
            )
        except requests.RequestException as exc:
            raise SummarizationUnavailable("Summarizer request failed", context={**context, "detail": str(exc)}) from exc

        if response.status_code >= 400:
            raise SummarizationUnavailable(
                "Summarizer returned an error",
                context={**context, "status_code": response.status_code, "detail": self._error_detail(response)},
            )
        try:
            payload = response.json()
            content = payload["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise SummarizationUnavailable("Summarizer response was malformed", context=context) from exc

        text = content.strip() if isinstance(content, str) else ""
        if not text:
            raise SummarizationUnavailable("Summarizer returned an empty reply", context=context)
        return text


__all__ = ["SummarizerClient", "build_prompt", "SYSTEM_PROMPT", "NO_ACTIVITY_REPLY"]
