"""Command-line entry point for stdvis tools."""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import Optional, Sequence

from cli import calibrate, sample
from configs.settings import DEFAULT_CONFIG_PATH, load_config
from exceptions import StdVisError
from log_config.logger import configure_logging, get_logger

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="stdvis",
        description="Camera calibration and sampling tools",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Calibrate from checkerboard photos (10x7 squares, 25mm)
  stdvis calibrate -s 25 -r 7 -c 10 -o camera.json board_*.png

  # Capture an exposure sweep with the simulated backend
  stdvis sample params.json samples/
        """,
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=DEFAULT_CONFIG_PATH,
        help="Application config YAML (default: bundled default.yaml)",
    )
    parser.add_argument("--log-level", default=None, help="Override the configured console log level")
    parser.add_argument("--log-dir", type=Path, default=None, help="Write rotating log files to this directory")

    subparsers = parser.add_subparsers(dest="command", required=True)
    calibrate.add_parser(subparsers)
    sample.add_parser(subparsers)
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        app_config = load_config(args.config)
    except StdVisError as e:
        configure_logging(args.log_level or "INFO", args.log_dir)
        logger.error(f"Failed to load configuration: {e}")
        return 1

    log_dir = args.log_dir if args.log_dir is not None else app_config.logging.log_dir
    configure_logging(args.log_level or app_config.logging.level, log_dir)

    try:
        return args.handler(args, app_config)
    except (StdVisError, OSError) as e:
        logger.error(f"{args.command} failed: {e}")
        return 1
