"""
Position State Store

In-memory map of wallet -> coin -> CachedPosition. Performs no I/O; the
detector persists what it changes.
"""

import asyncio
import logging
from typing import Dict, Iterable, List

from ..models import CachedPosition

logger = logging.getLogger(__name__)


class PositionStateStore:
    """
    Last-known positions per wallet, with one asyncio.Lock per wallet.

    Callers must hold lock(wallet) while reading or mutating get(wallet);
    that makes detection passes for one wallet strictly sequential while
    different wallets proceed independently.
    """

    def __init__(self):
        self._positions: Dict[str, Dict[str, CachedPosition]] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    def lock(self, wallet_address: str) -> asyncio.Lock:
        """Exclusive-access primitive for one wallet."""
        lock = self._locks.get(wallet_address)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[wallet_address] = lock
        return lock

    def get(self, wallet_address: str) -> Dict[str, CachedPosition]:
        """The wallet's coin -> CachedPosition mapping (created empty)."""
        return self._positions.setdefault(wallet_address, {})

    def load(self, positions: Dict[str, Dict[str, CachedPosition]]) -> int:
        """
        Bulk-initialize from persisted positions.

        Must run before the first detection pass.

        Returns:
            Number of positions loaded
        """
        self._positions = {
            wallet: dict(coins) for wallet, coins in positions.items()
        }
        total = sum(len(coins) for coins in self._positions.values())
        logger.info(f"State store loaded with {total} positions across {len(self._positions)} wallets")
        return total

    def forget(self, wallet_address: str) -> Dict[str, CachedPosition]:
        """Drop a wallet's state and its lock. Returns what was dropped."""
        self._locks.pop(wallet_address, None)
        return self._positions.pop(wallet_address, {})

    def wallets(self) -> List[str]:
        return list(self._positions)

    def untracked(self, tracked: Iterable[str]) -> List[str]:
        """Wallets with remembered state that are not in tracked."""
        tracked = set(tracked)
        return [w for w in self._positions if w not in tracked]

    def __len__(self) -> int:
        return sum(len(coins) for coins in self._positions.values())
