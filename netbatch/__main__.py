"""
netbatch CLI entry point.

Usage:
    netbatch                       Run with config/config.yml (if present)
    netbatch --config <path>       Use a custom config file
    netbatch --log-level DEBUG     Override the configured log level
"""

from __future__ import annotations

import argparse
import asyncio
import os
import sys
from pathlib import Path
from typing import Optional, Sequence

from pydantic import ValidationError

from netbatch import __version__
from netbatch.config import load_settings
from netbatch.main import run_app
from netbatch.services.command_cache import CommandFileError
from netbatch.services.roster import RosterError
from netbatch.utils.logging import get_logger, setup_logging

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_CANCELLED = 130


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="netbatch",
        description="Run CLI command files against a fleet of network devices",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "--config",
        type=Path,
        metavar="PATH",
        default=os.environ.get("NETBATCH_CONFIG_FILE"),
        help="Path to the YAML config file (default: config/config.yml)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Override log level",
    )
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = create_parser().parse_args(argv)

    try:
        cfg = load_settings(Path(args.config) if args.config else None)
    except (OSError, ValueError, ValidationError) as exc:
        setup_logging()
        get_logger(__name__).error("config.load_failed", error=str(exc))
        return EXIT_FATAL

    setup_logging(
        level=args.log_level or cfg.logger.level,
        json_format=cfg.logger.json_format,
        log_file=cfg.logger.log_file,
    )
    log = get_logger(__name__)
    log.info("run.starting", version=__version__)

    try:
        outcome = asyncio.run(run_app(cfg))
    except (RosterError, CommandFileError, OSError) as exc:
        log.error("run.startup_failed", error=str(exc))
        return EXIT_FATAL

    print(outcome.summary)
    return EXIT_CANCELLED if outcome.cancelled else EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
