"""Orchestration for the debug report and the Slack EOD message."""
from __future__ import annotations

import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv

from clients.gitlab_client import GitLabClient
from clients.slack_client import SlackClient
from clients.summarizer_client import SummarizerClient
from eodcopilot.config import ConfigurationError, EodConfig
from eodcopilot.errors import SummarizationUnavailable
from eodcopilot.logging_config import get_logger
from eodcopilot.models import TimeWindow
from processors.activity_processor import ActivityProcessor, build_debug_report
from processors.digest import render_digest
from processors.window import resolve_window

BASE_DIR = Path(__file__).resolve().parent

logger = get_logger(__name__)


def load_local_dotenv() -> bool:
    """Load ``.env`` beside this file when present; real env vars win."""

    env_path = BASE_DIR / ".env"
    if not env_path.is_file():
        return False
    return load_dotenv(dotenv_path=env_path, override=False)


def build_gitlab_client(config: EodConfig) -> GitLabClient:
    gitlab = config.gitlab
    return GitLabClient(
        base_url=gitlab.api_url,
        token=gitlab.token,
        project_id=gitlab.project_id,
        timeout=config.timeout_seconds,
        retries=config.retries_enabled,
    )


def build_summarizer_client(config: EodConfig) -> Optional[SummarizerClient]:
    settings = config.summarizer
    if not settings.enabled:
        logger.info("Summarizer not configured; EOD will use the raw digest")
        return None
    return SummarizerClient(
        base_url=settings.base_url,
        model=settings.model,
        api_key=settings.api_key,
        timeout=config.timeout_seconds,
        retries=config.retries_enabled,
    )


def build_slack_client(config: EodConfig) -> SlackClient:
    if not config.slack.bot_token:
        raise ConfigurationError("slack.bot_token is required to deliver the EOD message.")
    return SlackClient(
        bot_token=config.slack.bot_token,
        api_url=config.slack.api_url,
        timeout=config.timeout_seconds,
        retries=config.retries_enabled,
    )


def summarize_or_fallback(
    summarizer: Optional[SummarizerClient], activity: str, window: TimeWindow
) -> tuple[str, bool]:
    """Return ``(text, used_fallback)``; any summarizer failure yields the digest."""

    if summarizer is None:
        return activity, True
    try:
        return summarizer.summarize(activity, window), False
    except SummarizationUnavailable as exc:
        logger.warning("Summary failed, using raw activity", extra={"reason": str(exc), **exc.context})
        return activity, True


def run_debug(
    config: EodConfig,
    date_param: Optional[str] = None,
    *,
    client: Optional[GitLabClient] = None,
    now: Optional[datetime] = None,
    cancel_event: Optional[threading.Event] = None,
) -> Dict[str, Any]:
    """Collect activity and return the structured debug report."""

    window = resolve_window(date_param, now=now)
    processor = ActivityProcessor(
        client=client or build_gitlab_client(config), config=config, cancel_event=cancel_event
    )
    run = processor.process(window)
    report = build_debug_report(run, config)
    summary = report["summary"]
    logger.info(
        "Debug report ready",
        extra={
            "branches_checked": summary["totalBranches"],
            "branches_with_commits": summary["branchesWithCommitsLen"],
            "commits": summary["totalCommitsByYou"],
            "mrs_created": summary["mrsCreatedByYou"],
            "mrs_reviewed": summary["mrsReviewedByYou"],
            "errors": len(report["errors"]),
        },
    )
    return report


def run_eod(
    config: EodConfig,
    date_param: Optional[str] = None,
    *,
    client: Optional[GitLabClient] = None,
    summarizer: Optional[SummarizerClient] = None,
    slack: Optional[SlackClient] = None,
    dry_run: bool = False,
    now: Optional[datetime] = None,
    cancel_event: Optional[threading.Event] = None,
) -> Dict[str, Any]:
    """Collect, summarize and deliver the EOD message.

    Delivery failures propagate as :class:`DeliveryFailed`. With ``dry_run``
    the message is returned instead of posted.
    """

    window = resolve_window(date_param, now=now)
    logger.info(
        "Generating EOD",
        extra={
            "since_label": window.since_label,
            "until_label": window.until_label,
            "since": window.since_iso,
            "until": window.until_iso,
        },
    )
    processor = ActivityProcessor(
        client=client or build_gitlab_client(config), config=config, cancel_event=cancel_event
    )
    run = processor.process(window)
    activity = render_digest(run.digest)

    if summarizer is None:
        summarizer = build_summarizer_client(config)
    message, used_fallback = summarize_or_fallback(summarizer, activity, window)
    label = f"{window.since_label} → {window.until_label}"

    result: Dict[str, Any] = {
        "ok": True,
        "window": run.window.as_dict(),
        "commits": len(run.digest.commits),
        "summarized": not used_fallback,
        "errors": list(run.errors),
    }
    if dry_run:
        logger.info("Dry run; skipping Slack delivery")
        result.update({"message": f"EOD generated for window {label}", "text": message})
        return result

    if not config.slack.user_id:
        raise ConfigurationError("slack.user_id is required to deliver the EOD message.")
    slack = slack or build_slack_client(config)
    slack.post_message(channel=config.slack.user_id, text=message)
    result["message"] = f"EOD sent for window {label}"
    return result


__all__ = [
    "build_gitlab_client",
    "build_slack_client",
    "build_summarizer_client",
    "load_local_dotenv",
    "run_debug",
    "run_eod",
    "summarize_or_fallback",
]
