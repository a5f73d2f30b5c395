#!/usr/bin/env python3
"""
Position Tracker Service - CLI Entry Point
==========================================

Polls Hyperliquid for every tracked wallet and sends Telegram notifications
when positions change. Users manage their wallets through bot commands.

Usage:
    # Start tracker
    python scripts/run_tracker.py

    # Dry run (notifications logged, nothing sent to Telegram)
    python scripts/run_tracker.py --dry-run

    # Poll loop only, no bot commands
    python scripts/run_tracker.py --no-commands
"""

import argparse
import asyncio
import logging
import sys
from datetime import datetime
from pathlib import Path

# Add src/ to path so the script runs from a checkout
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root / "src"))

from position_tracker.config import LOG_LEVELS, config
from position_tracker.service import TrackerService


def setup_logging(log_level: str = config.log_level, log_file: str = config.log_file):
    """Configure logging for the tracker service."""
    log_path = Path(log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    # Create date-stamped log file (e.g., logs/tracker_2026-01-18.log)
    date_str = datetime.now().strftime("%Y-%m-%d")
    dated_log_file = log_path.parent / f"{log_path.stem}_{date_str}{log_path.suffix}"

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    # File handler (date-stamped)
    file_handler = logging.FileHandler(dated_log_file)
    file_handler.setFormatter(formatter)
    root_logger.addHandler(file_handler)

    # Console handler
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # Reduce noise from HTTP libraries
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("requests").setLevel(logging.WARNING)
    logging.getLogger("aiohttp").setLevel(logging.WARNING)

    root_logger.info(f"Logging to: {dated_log_file}")


def main():
    parser = argparse.ArgumentParser(
        description='Hyperliquid Position Tracker',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/run_tracker.py                # Start tracker
  python scripts/run_tracker.py --dry-run      # Log notifications only
  python scripts/run_tracker.py --poll 30      # Poll every 30 seconds
  python scripts/run_tracker.py --no-commands  # Disable bot commands
        """
    )

    parser.add_argument(
        '--poll',
        type=float,
        default=config.poll_interval_sec,
        help=f'Poll interval in seconds (default: {config.poll_interval_sec:g})'
    )

    parser.add_argument(
        '--dry-run',
        action='store_true',
        help='Log notifications instead of sending them to Telegram'
    )

    parser.add_argument(
        '--no-commands',
        action='store_true',
        help='Do not listen for Telegram bot commands'
    )

    parser.add_argument(
        '--log-level',
        choices=LOG_LEVELS,
        default=config.log_level,
        help=f'Log level (default: {config.log_level})'
    )

    args = parser.parse_args()

    setup_logging(args.log_level)
    logger = logging.getLogger(__name__)

    try:
        service = TrackerService(
            poll_interval=args.poll,
            dry_run=args.dry_run,
            enable_commands=not args.no_commands,
        )
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)

    try:
        asyncio.run(service.run())
    except KeyboardInterrupt:
        logger.info("Interrupted by user")


if __name__ == '__main__':
    main()
