"""
Position Monitor
================

Poll loop that drives change detection for every tracked wallet.

Each cycle:
1. Load tracked wallets and group subscribers by address
2. Forget remembered state for addresses nobody tracks any more
3. For each distinct address: fetch snapshot -> detect changes
4. Fan out each change to every subscriber of that address

The loop is self-pacing: a new cycle never starts before the previous one
has finished.
"""

import asyncio
import logging
import time
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from ..alerts.formatter import format_change, format_wallet_display
from ..config import config
from ..errors import DeliveryError, PersistenceError, ProviderError
from ..models import PositionChange
from .detector import ChangeDetector

logger = logging.getLogger(__name__)

# (user_id, note)
Subscriber = Tuple[int, Optional[str]]


@dataclass
class CycleStats:
    """Counters for one poll cycle."""
    wallets: int = 0
    fetch_failures: int = 0
    changes: int = 0
    delivered: int = 0
    delivery_failures: int = 0
    forgotten: int = 0
    duration: float = 0.0
    errors: List[str] = field(default_factory=list)


def group_subscribers(tracked) -> Dict[str, List[Subscriber]]:
    """Map each wallet address to the (user_id, note) pairs tracking it."""
    grouped: Dict[str, List[Subscriber]] = defaultdict(list)
    for wallet in tracked:
        grouped[wallet.wallet_address].append((wallet.user_id, wallet.note))
    return dict(grouped)


class PositionMonitor:
    """
    Fixed-cadence poll loop over all tracked wallets.

    Collaborators:
        wallet_db: anything with list_tracked()
        client: anything with async fetch_snapshot(address)
        detector: ChangeDetector (owns the state store)
        sender: anything with blocking send_message(chat_id, text)
    """

    def __init__(
        self,
        wallet_db,
        client,
        detector: ChangeDetector,
        sender,
        poll_interval: float = None,
        max_concurrent_requests: int = None,
    ):
        self.wallet_db = wallet_db
        self.client = client
        self.detector = detector
        self.store = detector.store
        self.sender = sender
        self.poll_interval = poll_interval if poll_interval is not None else config.poll_interval_sec
        self.max_concurrent_requests = max(
            1, max_concurrent_requests or config.max_concurrent_requests
        )

        self._stop_event: Optional[asyncio.Event] = None
        self.cycles_run = 0

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def _get_stop_event(self) -> asyncio.Event:
        if self._stop_event is None:
            self._stop_event = asyncio.Event()
        return self._stop_event

    @property
    def stopping(self) -> bool:
        return self._stop_event is not None and self._stop_event.is_set()

    def stop(self):
        """Ask the loop to exit after the current wallet."""
        self._get_stop_event().set()

    async def run(self):
        """Run cycles until stop() is called."""
        stop_event = self._get_stop_event()
        logger.info(
            f"Position monitor started (interval: {self.poll_interval}s, "
            f"concurrency: {self.max_concurrent_requests})"
        )

        while not stop_event.is_set():
            loop_start = time.monotonic()
            try:
                await self.run_cycle()
            except Exception:
                # Keep polling whatever happened in this cycle
                logger.exception("Poll cycle failed")

            elapsed = time.monotonic() - loop_start
            sleep_time = max(0.0, self.poll_interval - elapsed)
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=sleep_time)
            except asyncio.TimeoutError:
                pass

        logger.info("Position monitor stopped")

    # -------------------------------------------------------------------------
    # Cycle
    # -------------------------------------------------------------------------

    async def run_cycle(self) -> CycleStats:
        """
        Run one sweep over all tracked wallets.

        Returns:
            CycleStats for the sweep
        """
        stats = CycleStats()
        cycle_start = time.monotonic()

        try:
            tracked = self.wallet_db.list_tracked()
        except PersistenceError as e:
            logger.error(f"Failed to load tracked wallets, skipping cycle: {e}")
            stats.errors.append(str(e))
            return stats

        subscribers = group_subscribers(tracked)
        stats.wallets = len(subscribers)
        stats.forgotten = await self._forget_untracked(subscribers)

        semaphore = asyncio.Semaphore(self.max_concurrent_requests)

        async def _bounded(address: str, subs: List[Subscriber]):
            async with semaphore:
                if self.stopping:
                    return
                await self._process_wallet(address, subs, stats)

        await asyncio.gather(*(
            _bounded(address, subs) for address, subs in subscribers.items()
        ))

        self.cycles_run += 1
        stats.duration = time.monotonic() - cycle_start
        logger.debug(
            f"Cycle {self.cycles_run}: {stats.wallets} wallets, {stats.changes} changes, "
            f"{stats.delivered} delivered, {stats.fetch_failures} fetch failures, "
            f"{stats.delivery_failures} delivery failures ({stats.duration:.2f}s)"
        )
        return stats

    async def _forget_untracked(self, subscribers: Dict[str, List[Subscriber]]) -> int:
        """Drop remembered positions of wallets no user tracks."""
        forgotten = 0
        for address in self.store.untracked(subscribers):
            async with self.store.lock(address):
                dropped = self.store.forget(address)
                if self.detector.position_db is not None:
                    try:
                        self.detector.position_db.delete_wallet_positions(address)
                    except PersistenceError as e:
                        logger.error(f"Failed to delete positions for untracked wallet {address}: {e}")
            if dropped:
                logger.info(f"Forgot {len(dropped)} positions for untracked wallet {address}")
            forgotten += 1
        return forgotten

    async def _process_wallet(self, address: str, subs: List[Subscriber], stats: CycleStats):
        """Fetch, detect and notify for one wallet. Never raises."""
        try:
            snapshot = await self.client.fetch_snapshot(address)
        except ProviderError as e:
            logger.warning(f"Failed to fetch positions for {address}: {e}")
            stats.fetch_failures += 1
            return
        except Exception as e:
            logger.exception(f"Unexpected error fetching {address}")
            stats.fetch_failures += 1
            stats.errors.append(f"{address}: {type(e).__name__}")
            return

        try:
            changes = await self.detector.detect(address, snapshot)
        except Exception as e:
            logger.exception(f"Change detection failed for {address}")
            stats.errors.append(f"{address}: {type(e).__name__}")
            return

        stats.changes += len(changes)
        for change in changes:
            await self._notify(address, change, subs, stats)

    async def _notify(
        self,
        address: str,
        change: PositionChange,
        subs: List[Subscriber],
        stats: CycleStats,
    ):
        """Deliver one change to every subscriber of the wallet."""
        for user_id, note in subs:
            message = format_change(change, format_wallet_display(address, note))
            try:
                await asyncio.to_thread(self.sender.send_message, user_id, message)
            except DeliveryError as e:
                logger.error(f"Failed to notify user {user_id} for wallet {address}: {e}")
                stats.delivery_failures += 1
                continue
            except Exception:
                logger.exception(f"Unexpected error notifying user {user_id} for wallet {address}")
                stats.delivery_failures += 1
                continue
            logger.info(f"Sent {change.kind} notification to user {user_id} for wallet {address}")
            stats.delivered += 1
