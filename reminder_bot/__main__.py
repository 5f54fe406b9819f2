"""Command line entry point: ``python -m reminder_bot serve|parse``."""

from __future__ import annotations

import argparse
import sys
from datetime import datetime, timezone

from reminder_bot.config import get_settings
from reminder_bot.domain.models import ParseFailure
from reminder_bot.logging_setup import setup_logging
from reminder_bot.services.intake import REPROMPT, format_confirmation
from reminder_bot.services.parser import parse_reminder


def _parse_now(raw: str | None) -> datetime:
    if raw is None:
        return datetime.now(timezone.utc)
    value = datetime.fromisoformat(raw)
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def _cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "reminder_bot.main:create_app",
        factory=True,
        host=args.host or settings.host,
        port=args.port or settings.port,
        log_config=None,
    )
    return 0


def _cmd_parse(args: argparse.Namespace) -> int:
    settings = get_settings()
    now = _parse_now(args.now).astimezone(settings.tz)
    outcome = parse_reminder(args.text, now, fallback=settings.dateparser_fallback)
    if isinstance(outcome, ParseFailure):
        print(REPROMPT)
        return 1
    print(f"task:    {outcome.task_text}")
    print(f"instant: {outcome.target_instant.isoformat()}")
    print(format_confirmation(outcome.task_text, outcome.target_instant, settings.tz))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="reminder_bot", description="Chat reminder service")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="run the HTTP service and dispatcher")
    serve.add_argument("--host", default=None)
    serve.add_argument("--port", type=int, default=None)
    serve.set_defaults(func=_cmd_serve)

    parse = sub.add_parser("parse", help="show how a message would be understood")
    parse.add_argument("text")
    parse.add_argument("--now", default=None, help="reference instant, ISO 8601")
    parse.set_defaults(func=_cmd_parse)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_file)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
