#!/usr/bin/env python3
"""
MediaWatch CLI - Thin entrypoint for operator commands.

Commands:
- run: Start the watcher and keep it running until interrupted
- sweep: Run a single sweep and print its outcome
- status: Show marker, queue depth and ledger size
- reset-marker: Forget the marker so the next sweep re-reads the whole index

Exit Codes:
===========
- 0: Success
- 1: Configuration error
- 2: Sweep failure
- 4: System error (database unavailable, permissions, etc.)
"""

import argparse
import json
import logging
import sys
import time
from pathlib import Path
from typing import NoReturn

from .config import DEFAULT_CONFIG_PATH, WatcherConfig, load_config
from .main import MediaWatch
from .persistence import PersistenceError
from .watcher import ConfigError, SweepStatus

logger = logging.getLogger("mediawatch")


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    # Silence noisy libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def _load(args: argparse.Namespace) -> WatcherConfig:
    try:
        config = load_config(args.config)
    except ConfigError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(1)

    overrides = {}
    if getattr(args, "poll_seconds", None) is not None:
        overrides["poll_seconds"] = args.poll_seconds
    if getattr(args, "log_level", None):
        overrides["log_level"] = args.log_level.upper()
    if overrides:
        config = config.model_copy(update=overrides)

    _setup_logging(config.log_level)
    return config


def _open(config: WatcherConfig) -> MediaWatch:
    try:
        return MediaWatch(config)
    except PersistenceError as e:
        print(f"ERROR: Cannot open state database: {e}", file=sys.stderr)
        sys.exit(4)


def cmd_run(args: argparse.Namespace) -> NoReturn:
    """Start the watcher; serve the monitor API if a port is configured."""
    config = _load(args)
    mediawatch = _open(config)
    mediawatch.start()

    try:
        if config.monitor_port:
            import uvicorn
            from .monitoring import create_app

            uvicorn.run(
                create_app(mediawatch),
                host=config.monitor_host,
                port=config.monitor_port,
                log_level="warning",
            )
        else:
            while True:
                time.sleep(1)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
    finally:
        mediawatch.stop()

    sys.exit(0)


def cmd_sweep(args: argparse.Namespace) -> NoReturn:
    """Run one sweep synchronously, then drain the capture queue unless told not to."""
    config = _load(args)
    mediawatch = _open(config)

    result = mediawatch.sweep_once()
    if result.kicked and not args.no_capture:
        mediawatch.capture.join(timeout=args.capture_timeout)

    print(json.dumps(result.model_dump(mode="json"), indent=2))
    sys.exit(0 if result.status is SweepStatus.COMPLETED else 2)


def cmd_status(args: argparse.Namespace) -> NoReturn:
    config = _load(args)
    mediawatch = _open(config)
    try:
        status = mediawatch.status()
    except PersistenceError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(4)
    print(json.dumps(status, indent=2))
    sys.exit(0)


def cmd_reset_marker(args: argparse.Namespace) -> NoReturn:
    config = _load(args)
    mediawatch = _open(config)
    try:
        mediawatch.settings.reset_marker()
    except PersistenceError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(4)
    print("Marker reset. The next sweep reads the whole media index.")
    sys.exit(0)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mediawatch",
        description="MediaWatch - dispatch newly added media exactly once",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s run                          # Watch using ~/.mediawatch/config.json
  %(prog)s --config ./mw.json run --poll-seconds 10
  %(prog)s sweep                        # Single sweep, print result
  %(prog)s status
        """,
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=DEFAULT_CONFIG_PATH,
        help=f"Path to JSON config (default: {DEFAULT_CONFIG_PATH})",
    )
    parser.add_argument(
        "--log-level",
        choices=["debug", "info", "warning", "error"],
        help="Override configured log level",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Run the watcher until interrupted")
    run_parser.add_argument(
        "--poll-seconds",
        type=float,
        metavar="N",
        help="Sweep at least every N seconds (overrides config)",
    )
    run_parser.set_defaults(func=cmd_run)

    sweep_parser = subparsers.add_parser("sweep", help="Run a single sweep")
    sweep_parser.add_argument(
        "--no-capture",
        action="store_true",
        help="Queue items but do not wait for the capture worker",
    )
    sweep_parser.add_argument(
        "--capture-timeout",
        type=float,
        default=300.0,
        metavar="N",
        help="Seconds to wait for the capture worker (default: 300)",
    )
    sweep_parser.set_defaults(func=cmd_sweep)

    status_parser = subparsers.add_parser("status", help="Show watcher state")
    status_parser.set_defaults(func=cmd_status)

    reset_parser = subparsers.add_parser("reset-marker", help="Forget the feed marker")
    reset_parser.set_defaults(func=cmd_reset_marker)

    return parser


def main(argv=None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    args.func(args)


if __name__ == "__main__":
    main()
