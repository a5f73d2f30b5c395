"""
Tracker Service
===============

Wires the position tracker together and runs it:

- Wallet registry and position store (one SQLite file)
- Hyperliquid client (snapshots)
- Telegram client (notifications and commands)
- State store rehydrated from disk before the first poll
- Position monitor and command listener as sibling asyncio tasks

SIGINT/SIGTERM stop both loops; the in-flight wallet finishes first.
"""

import asyncio
import logging
import signal
from pathlib import Path

from .alerts.telegram import TelegramClient
from .api.hyperliquid import HyperliquidClient
from .bot import CommandHandler, CommandListener
from .config import config
from .core import ChangeDetector, PositionMonitor, PositionStateStore
from .db import PositionDB, WalletDB
from .errors import PersistenceError

logger = logging.getLogger(__name__)


class TrackerService:
    """Position tracker service."""

    def __init__(
        self,
        poll_interval: float = None,
        dry_run: bool = False,
        enable_commands: bool = True,
        db_path: Path = None,
        telegram: TelegramClient = None,
        client: HyperliquidClient = None,
    ):
        """
        Initialize the service.

        Args:
            poll_interval: Seconds between poll cycles
            dry_run: If True, log notifications instead of sending them
            enable_commands: Run the Telegram command listener
            db_path: SQLite file (defaults to config.database_path)
            telegram: Pre-built Telegram client
            client: Pre-built Hyperliquid client
        """
        self.poll_interval = poll_interval if poll_interval is not None else config.poll_interval_sec
        self.dry_run = dry_run
        self.enable_commands = enable_commands

        db_path = db_path or config.database_path
        self.wallet_db = WalletDB(db_path)
        self.position_db = PositionDB(db_path)

        self.client = client or HyperliquidClient()
        self.telegram = telegram or TelegramClient.from_env(dry_run=dry_run)

        self.store = PositionStateStore()
        self.detector = ChangeDetector(self.store, self.position_db)
        self.monitor = PositionMonitor(
            self.wallet_db,
            self.client,
            self.detector,
            self.telegram,
            poll_interval=self.poll_interval,
        )
        self.listener = CommandListener(
            self.telegram,
            CommandHandler(self.wallet_db, self.client),
        )

    def _rehydrate(self) -> int:
        """Load persisted positions into the state store."""
        try:
            positions = self.position_db.load_positions()
        except PersistenceError as e:
            # Starting empty reports live positions as opened once
            logger.error(f"Failed to load persisted positions, starting empty: {e}")
            return 0
        return self.store.load(positions)

    def _install_signal_handlers(self):
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self._handle_shutdown)
            except NotImplementedError:
                # Not supported on this platform (Windows)
                logger.debug(f"Signal handler for {sig.name} not installed")

    def _handle_shutdown(self):
        """Handle shutdown signals gracefully."""
        logger.info("Shutdown signal received, stopping tracker...")
        self.stop()

    def stop(self):
        self.monitor.stop()
        self.listener.stop()

    async def run(self):
        """Run until stopped."""
        logger.info("=" * 60)
        logger.info("POSITION TRACKER STARTING")
        logger.info("=" * 60)
        logger.info(f"Poll interval: {self.poll_interval}s")
        logger.info(f"Commands: {'enabled' if self.enable_commands else 'disabled'}")
        logger.info(f"Dry run: {self.dry_run}")

        self._install_signal_handlers()
        self._rehydrate()

        try:
            tasks = [self.monitor.run()]
            if self.enable_commands:
                tasks.append(self.listener.run())
            await asyncio.gather(*tasks)
        finally:
            await self.client.close()
            self.telegram.close()
            logger.info("POSITION TRACKER STOPPED")
