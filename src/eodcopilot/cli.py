"""Command line interface: ``eod debug`` and ``eod send``."""
from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Iterable, Optional

from exporters.json_exporter import JSONExporter
from main import load_local_dotenv, run_debug, run_eod

from .config import ConfigurationError, load_eod_config
from .errors import EodCopilotError
from .logging_config import configure_logging, get_logger

LOGGER = get_logger(__name__)


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--date",
        help="IST calendar day to report on (YYYY-MM-DD); defaults to the last 24 hours",
    )
    parser.add_argument(
        "--config",
        help="Path to a YAML or JSON settings file layered over config/defaults.yml",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="eod", description="GitLab end-of-day activity digest")
    subparsers = parser.add_subparsers(dest="command", required=True)

    debug = subparsers.add_parser("debug", help="Print the structured activity report as JSON")
    _add_common_arguments(debug)
    debug.add_argument("--output", help="Optional path to also write the JSON report to")

    send = subparsers.add_parser("send", help="Summarize activity and post it to Slack")
    _add_common_arguments(send)
    send.add_argument(
        "--dry-run",
        action="store_true",
        help="Generate the message but print it instead of posting to Slack",
    )
    return parser


def parse_args(argv: Optional[Iterable[str]] = None) -> argparse.Namespace:
    return build_parser().parse_args(argv)


def _write_report(report: dict, output: str) -> Path:
    target = Path(output)
    return JSONExporter(target.parent).export(report, target.name)


def main(argv: Optional[Iterable[str]] = None) -> int:
    load_local_dotenv()
    args = parse_args(argv)
    configure_logging(args.log_level)
    LOGGER.debug("Parsed arguments", extra={"command": args.command, "date": args.date})

    try:
        config = load_eod_config(args.config)
        if args.command == "debug":
            report = run_debug(config, args.date)
            if args.output:
                path = _write_report(report, args.output)
                LOGGER.info("Debug report written", extra={"path": str(path)})
            print(json.dumps(report, indent=2, ensure_ascii=False))
        else:
            result = run_eod(config, args.date, dry_run=args.dry_run)
            if args.dry_run:
                print(result["text"])
            print(json.dumps({key: value for key, value in result.items() if key != "text"}, indent=2, ensure_ascii=False))
    except (ConfigurationError, EodCopilotError) as exc:
        LOGGER.error("EOD command failed", extra={"error": str(exc), **getattr(exc, "context", {})})
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    sys.exit(main())
