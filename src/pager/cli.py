"""Pager command-line entry point.

Usage::

    pager run --config pager.json
    pager run --config pager.json --notifier command --log-level debug
    pager calendars work --config pager.json

Commands:
    run         Poll every configured account and notify until interrupted
                (SIGINT/SIGTERM), then save tokens back to the config file.
    calendars   Print the calendar ids visible to one profile, one per line,
                for filling in the profile's ``calendars`` list.

Both commands accept the configuration options of ``PagerConfig``
(``--config``, ``--log-level``, ``--mail-interval``,
``--calendar-interval``, ``--notifier``, ``--notify-command``). Environment
variables prefixed with ``PAGER_`` are also supported. Without ``--config``
the per-user file (``$XDG_CONFIG_HOME/pager/config.json``, or
``$APPDATA/Pager/config.json`` on Windows) is read when it exists.

Exit codes:
    0   Success.
    1   The calendar list could not be fetched.
    2   The configuration is missing or invalid.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Sequence

from src.pager.config import PagerConfig, load_config, validate_config
from src.pager.errors import ConfigurationError, FetchError
from src.pager.service import PagerService

EXIT_OK = 0
EXIT_FETCH_ERROR = 1
EXIT_CONFIG_ERROR = 2


def build_parser() -> argparse.ArgumentParser:
    """Create the parser for the ``pager`` command and its subcommands."""
    options = PagerConfig.create_argument_parser(add_help=False)
    parser = argparse.ArgumentParser(
        prog="pager",
        description="Desktop notifications for new mail and calendar reminders",
    )
    commands = parser.add_subparsers(dest="command", required=True)
    commands.add_parser(
        "run",
        parents=[options],
        help="Poll accounts and notify until interrupted",
    )
    calendars = commands.add_parser(
        "calendars",
        parents=[options],
        help="List the calendar ids of one profile",
    )
    calendars.add_argument("profile", help="Account profile name")
    return parser


def _configure_logging(config: PagerConfig) -> None:
    logging.basicConfig(
        level=getattr(logging, config.log_level),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


async def _list_calendars(service: PagerService, profile: str) -> int:
    for calendar_id in await service.list_calendars(profile):
        print(calendar_id)
    return EXIT_OK


def main(argv: Sequence[str] | None = None) -> int:
    """Parse arguments, load configuration and run the chosen command.

    Args:
        argv: Command-line arguments; defaults to ``sys.argv[1:]``.

    Returns:
        The process exit code.
    """
    if argv is None:
        argv = sys.argv[1:]
    parsed = build_parser().parse_args(argv)

    try:
        config = load_config(argv)
    except ConfigurationError as exc:
        print(f"pager: {exc}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    _configure_logging(config)
    logger = logging.getLogger(__name__)
    for warning in validate_config(config):
        logger.warning(warning)

    service = PagerService(config)
    try:
        if parsed.command == "calendars":
            return asyncio.run(_list_calendars(service, parsed.profile))
        asyncio.run(service.run())
    except ConfigurationError as exc:
        logger.error("%s", exc)
        return EXIT_CONFIG_ERROR
    except FetchError as exc:
        logger.error("%s", exc)
        return EXIT_FETCH_ERROR
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
