"""Command-line interface for clio-radio."""

from __future__ import annotations

import argparse
import dataclasses
import logging
import shutil
import sys
import threading
from types import TracebackType
from typing import Iterable, Optional, Tuple

from clio_radio.config import AppConfig, load_config
from clio_radio.logging_setup import init_logging

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Build and return the CLI argument parser."""
    parser = argparse.ArgumentParser(prog="clio", description="clio - terminal radio")
    parser.add_argument(
        "query",
        nargs="?",
        default=None,
        help="Station name to search for on start (or tag:<name>)",
    )
    parser.add_argument(
        "--limit",
        type=int,
        default=None,
        help="Maximum number of search results",
    )
    parser.add_argument(
        "--mpv",
        dest="mpv_path",
        default=None,
        help="Path to the mpv executable",
    )
    parser.add_argument(
        "--server",
        dest="api_base_url",
        default=None,
        help="radio-browser API base url (skips server discovery)",
    )
    return parser


def apply_overrides(config: AppConfig, args: argparse.Namespace) -> AppConfig:
    """Return ``config`` with command-line values taking precedence."""
    changes: dict[str, object] = {}
    if args.limit is not None:
        changes["search_limit"] = max(1, min(500, args.limit))
    if args.mpv_path:
        changes["mpv_path"] = args.mpv_path
    if args.api_base_url:
        changes["api_base_url"] = args.api_base_url
    return dataclasses.replace(config, **changes) if changes else config


def _install_exception_hooks() -> None:
    def excepthook(
        exc_type: type[BaseException],
        exc: BaseException,
        tb: Optional[TracebackType],
    ) -> None:
        logger.critical("Uncaught exception", exc_info=(exc_type, exc, tb))

    sys.excepthook = excepthook

    def thread_hook(args: threading.ExceptHookArgs) -> None:
        exc_value = args.exc_value or RuntimeError("unknown")
        exc_info: Tuple[type[BaseException], BaseException, Optional[TracebackType]] = (
            args.exc_type,
            exc_value,
            args.exc_traceback,
        )
        thread_name = args.thread.name if args.thread else "thread"
        logger.critical("Thread exception in %s", thread_name, exc_info=exc_info)

    threading.excepthook = thread_hook


def _run_tui(config: AppConfig, query: Optional[str]) -> int:
    try:
        from clio_radio.tui import run_tui
    except (ImportError, RuntimeError) as exc:
        print(str(exc), file=sys.stderr)
        return 1
    return run_tui(config, initial_query=query)


def main(argv: Optional[Iterable[str]] = None) -> int:
    """Entry point for the CLI."""
    init_logging()
    logger.info("App start")
    _install_exception_hooks()

    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    config = apply_overrides(load_config(), args)

    if shutil.which(config.mpv_path) is None:
        print(f"mpv not found: {config.mpv_path}", file=sys.stderr)
        return 1

    exit_code = _run_tui(config, args.query)
    logger.info("App exit code=%s", exit_code)
    return exit_code


if __name__ == "__main__":
    raise SystemExit(main())
