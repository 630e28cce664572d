"""
Command-line entry point.

Usage:
    nlcal parse "schedule lunch with Sara tomorrow at 12pm"
    nlcal parse "move my 3pm to friday" --now 2026-03-02T10:00
    nlcal run "cancel my 3pm" --events calendar.json

Output:
    JSON on stdout (the parsed command, or the execution result plus the
    calendar after execution). Logs go to stderr.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from datetime import datetime

from nlcal.config_models import load_config
from nlcal.engine import SchedulingEngine
from nlcal.gateway.memory import InMemoryGateway
from nlcal.logging_config import setup_logging
from nlcal.models import ParseContext


def _context(args: argparse.Namespace, timezone: str | None) -> ParseContext:
    now = datetime.fromisoformat(args.now) if args.now else None
    return ParseContext(now=now, timezone=args.timezone or timezone)


async def _run(args: argparse.Namespace) -> dict:
    config = load_config(args.config)
    if args.interpreter:
        config.interpreter.enabled = True

    gateway = InMemoryGateway.from_json(args.events) if args.events else InMemoryGateway()
    engine = SchedulingEngine(gateway, config)
    context = _context(args, config.timezone)

    if args.command == "parse":
        command = await engine.parser.parse_with_interpreter(args.text, context)
        return command.to_dict()

    result = await engine.handle(args.text, context)
    output = result.to_dict()
    output["calendar"] = [e.to_dict() for e in gateway.events]
    return output


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="nlcal",
        description="Natural-language scheduling commands",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Show how a request is understood
  nlcal parse "set up a 1:1 with Priya next tuesday at 3"

  # Execute against a calendar seeded from JSON
  nlcal run "move my standup to 10am" --events calendar.json --now 2026-03-02T08:00
        """,
    )
    parser.add_argument("--config", help="Path to scheduling YAML (default: args/scheduling.yaml)")
    parser.add_argument("--log-level", default=None, help="Log level (default: $NLCAL_LOG_LEVEL or WARNING)")

    sub = parser.add_subparsers(dest="command", required=True)
    for name, help_text in (
        ("parse", "Parse text into a command"),
        ("run", "Parse and execute against an in-memory calendar"),
    ):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("text", help="Request text")
        cmd.add_argument("--now", help="Reference time (ISO format)")
        cmd.add_argument("--timezone", help="IANA timezone for the reference time")
        cmd.add_argument("--interpreter", action="store_true", help="Also consult the language model")
        if name == "run":
            cmd.add_argument("--events", help="JSON file with existing events")
        else:
            cmd.set_defaults(events=None)

    args = parser.parse_args(argv)
    # stdout carries the JSON; keep stderr quiet unless asked
    setup_logging(level=args.log_level, default_level="WARNING")

    result = asyncio.run(_run(args))
    print(json.dumps(result, indent=2, default=str))

    if args.command == "run" and not result.get("success"):
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
