"""Application specific exception hierarchy."""
from __future__ import annotations

from typing import Any


class EodCopilotError(RuntimeError):
    """Base exception that carries structured context."""

    def __init__(self, message: str, *, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.context = context or {}


class InvalidDateFormat(EodCopilotError):
    """Raised when a requested calendar day is not a ``YYYY-MM-DD`` date."""


class UpstreamFetchFailed(EodCopilotError):
    """Raised when a GitLab request fails for any reason."""

    @property
    def status_code(self) -> int | None:
        return self.context.get("status_code")

    def describe(self) -> str:
        """Return a ``<status> - <message>`` string for report error lists."""

        detail = self.context.get("detail") or str(self)
        status = self.status_code if self.status_code is not None else "no response"
        return f"{status} - {detail}"


class UpstreamNotFound(UpstreamFetchFailed):
    """Raised when GitLab answers 404, e.g. for a branch deleted mid-run."""


class SummarizationUnavailable(EodCopilotError):
    """Raised when the text-generation service fails or returns nothing."""


class DeliveryFailed(EodCopilotError):
    """Raised when the chat notification could not be delivered."""


class RunCancelled(EodCopilotError):
    """Raised when a run is cancelled before all collectors finished."""


__all__ = [
    "EodCopilotError",
    "InvalidDateFormat",
    "UpstreamFetchFailed",
    "UpstreamNotFound",
    "SummarizationUnavailable",
    "DeliveryFailed",
    "RunCancelled",
]
