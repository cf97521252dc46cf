"""Shared HTTP plumbing for the GitLab, model and Slack clients."""
from __future__ import annotations

import random
import time
from typing import Any, Dict

import requests

from eodcopilot.logging_config import get_logger, parse_retry_after

logger = get_logger(__name__)


class BaseAPIClient:
    """Base API client with request logging and opt-in retries.

    A failed request is reported once by default. Passing ``retries=True``
    turns on exponential backoff for 429/5xx and connection errors.
    """

    _MAX_ATTEMPTS = 5
    _BASE_DELAY = 1.0

    def __init__(
        self, *, timeout: float = 30.0, retries: bool = False, session: requests.Session | None = None
    ) -> None:
        self.timeout = timeout
        self.session = session or requests.Session()
        self._random = random.Random()
        self._retries_enabled = retries

    def _sleep(self, seconds: float) -> None:
        time.sleep(seconds)

    @staticmethod
    def _is_retryable_status(status: int) -> bool:
        return status == 429 or 500 <= status < 600

    @staticmethod
    def _is_retryable_exception(exc: requests.RequestException) -> bool:
        if isinstance(exc, (requests.Timeout, requests.ConnectionError)):
            return True
        response = getattr(exc, "response", None)
        return response is not None and BaseAPIClient._is_retryable_status(response.status_code)

    def _compute_delay(self, attempt: int, response: requests.Response | None) -> float:
        backoff = self._BASE_DELAY * (2 ** (attempt - 1))
        delay = backoff + self._random.uniform(0, backoff)
        if response is not None:
            retry_after = parse_retry_after(response.headers.get("Retry-After", ""))
            if retry_after is not None:
                delay = max(delay, retry_after)
        return delay

    def _request_with_retry(
        self,
        *,
        method: str,
        url: str,
        logger_context: Dict[str, Any],
        **kwargs: Any,
    ) -> requests.Response:
        max_attempts = self._MAX_ATTEMPTS if self._retries_enabled else 1
        kwargs.setdefault("timeout", self.timeout)
        attempt = 1
        while True:
            context = dict(logger_context)
            context.update({"method": method, "url": url, "attempt": attempt})
            logger.debug("HTTP request", extra=context)
            start = time.perf_counter()
            try:
                response = self.session.request(method=method, url=url, **kwargs)
            except requests.RequestException as exc:
                context.update(
                    {"elapsed_ms": round((time.perf_counter() - start) * 1000, 2), "error": str(exc)}
                )
                if attempt >= max_attempts or not self._is_retryable_exception(exc):
                    logger.debug("HTTP request failed", extra=context)
                    raise
                delay = self._compute_delay(attempt, getattr(exc, "response", None))
                context["retry_in_s"] = round(delay, 2)
                logger.warning("Retrying after exception", extra=context)
                self._sleep(delay)
                attempt += 1
                continue

            context.update(
                {
                    "status_code": response.status_code,
                    "elapsed_ms": round((time.perf_counter() - start) * 1000, 2),
                }
            )
            rate_headers = {k: v for k, v in response.headers.items() if k.lower().startswith("ratelimit")}
            if rate_headers:
                context["rate_limit"] = rate_headers
            logger.debug("HTTP response", extra=context)

            if self._is_retryable_status(response.status_code) and attempt < max_attempts:
                delay = self._compute_delay(attempt, response)
                context["retry_in_s"] = round(delay, 2)
                logger.warning("Retrying after status", extra=context)
                self._sleep(delay)
                attempt += 1
                continue

            return response

    @staticmethod
    def _error_detail(response: requests.Response) -> str:
        """Best-effort ``message`` field from a JSON error body."""

        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            for key in ("message", "error", "error_description"):
                value = body.get(key)
                if value:
                    return value if isinstance(value, str) else str(value)
        return response.reason or f"HTTP {response.status_code}"
