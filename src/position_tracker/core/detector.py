"""
Change Detector

Compares a fresh position snapshot against the remembered state of a wallet
and classifies what happened in between:

1. Filter the snapshot to open positions (size parses to non-zero)
2. Disappearance pass: remembered coins missing from the snapshot are
   Closed, or Liquidated when the loss ate most of the margin
3. Presence pass: new coins are Opened; remembered coins are Increased,
   Decreased, MarginAdded or MarginRemoved
4. Re-arm the remembered state with the snapshot and persist the
   instruments that actually changed

Liquidation and realized PnL on partial closes are estimates. The provider
does not report either, so they are inferred from the last remembered
unrealized PnL and margin.
"""

import logging
from typing import Dict, List, Optional, Sequence

from ..config import config
from ..db.position_db import PositionDB
from ..errors import PersistenceError
from ..models import (
    CachedPosition,
    Closed,
    Decreased,
    Increased,
    Liquidated,
    MarginAdded,
    MarginRemoved,
    Opened,
    Position,
    PositionChange,
)
from .state import PositionStateStore

logger = logging.getLogger(__name__)


class ChangeDetector:
    """
    Classifies position transitions for one wallet at a time.

    The detector is the only writer of the state store. Each pass holds the
    wallet's lock for the whole compare-and-rearm step, including the paired
    persistence writes, so memory and the database are never left half
    updated by a shutdown.
    """

    def __init__(
        self,
        store: PositionStateStore,
        position_db: Optional[PositionDB] = None,
        size_tolerance: float = None,
        margin_tolerance: float = None,
        liquidation_loss_ratio: float = None,
    ):
        """
        Initialize the detector.

        Args:
            store: State store holding the remembered positions
            position_db: Durable copy of the state (None disables persistence)
            size_tolerance: Size deltas at or below this are ignored
            margin_tolerance: Margin deltas at or below this are ignored
            liquidation_loss_ratio: |pnl| / margin above this on a vanished
                position is reported as a liquidation
        """
        self.store = store
        self.position_db = position_db
        self.size_tolerance = size_tolerance if size_tolerance is not None else config.size_tolerance
        self.margin_tolerance = margin_tolerance if margin_tolerance is not None else config.margin_tolerance
        self.liquidation_loss_ratio = (
            liquidation_loss_ratio if liquidation_loss_ratio is not None
            else config.liquidation_loss_ratio
        )

    async def detect(self, wallet_address: str, snapshot: Sequence[Position]) -> List[PositionChange]:
        """
        Run one detection pass for a wallet.

        Args:
            wallet_address: Wallet the snapshot belongs to
            snapshot: Raw positions from the provider (zero sizes allowed)

        Returns:
            Changes in order: closures first, then opens and updates
        """
        async with self.store.lock(wallet_address):
            return self.detect_locked(wallet_address, snapshot)

    def detect_locked(self, wallet_address: str, snapshot: Sequence[Position]) -> List[PositionChange]:
        """Detection pass body. Caller must hold store.lock(wallet_address)."""
        cached = self.store.get(wallet_address)
        changes: List[PositionChange] = []

        current: Dict[str, Position] = {p.coin: p for p in snapshot if p.is_open}

        # Closed / liquidated positions
        for coin in [c for c in cached if c not in current]:
            old = cached.pop(coin)
            changes.append(self._classify_disappearance(coin, old))
            self._persist_delete(wallet_address, coin)

        # New or updated positions
        for coin, position in current.items():
            new = CachedPosition.from_position(position)
            old = cached.get(coin)

            if old is None:
                changes.append(Opened(
                    coin=coin,
                    size=abs(new.size),
                    entry_price=new.entry_price,
                    leverage=new.leverage,
                    position_value=position.notional,
                    is_long=new.is_long,
                ))
            else:
                change = self._classify_update(coin, old, new)
                if change is not None:
                    changes.append(change)

            cached[coin] = new
            if new != old:
                self._persist_upsert(wallet_address, coin, new)

        if changes:
            logger.debug(
                f"{wallet_address}: {len(changes)} change(s) "
                f"({', '.join(c.kind for c in changes)})"
            )
        return changes

    # -------------------------------------------------------------------------
    # Classification
    # -------------------------------------------------------------------------

    def _classify_disappearance(self, coin: str, old: CachedPosition) -> PositionChange:
        """Closed, unless the last seen loss nearly wiped out the margin."""
        was_long = old.size >= 0
        margin = old.margin_used
        pnl = old.unrealized_pnl

        is_liquidated = (
            margin > 0
            and pnl < 0
            and abs(pnl) / margin > self.liquidation_loss_ratio
            and abs(old.size) > 0
        )

        if is_liquidated:
            return Liquidated(
                coin=coin,
                lost_margin=margin,
                was_long=was_long,
                leverage=old.leverage,
            )

        return Closed(
            coin=coin,
            realized_pnl=pnl,
            entry_price=old.entry_price,
            was_long=was_long,
            leverage=old.leverage,
        )

    def _classify_update(
        self,
        coin: str,
        old: CachedPosition,
        new: CachedPosition,
    ) -> Optional[PositionChange]:
        """Size change beats margin change; None when nothing meaningful moved."""
        old_size = abs(old.size)
        new_size = abs(new.size)

        if abs(new_size - old_size) > self.size_tolerance:
            if new_size > old_size:
                return Increased(
                    coin=coin,
                    old_size=old_size,
                    new_size=new_size,
                    entry_price=new.entry_price,
                    leverage=new.leverage,
                    is_long=new.is_long,
                )

            # Proportional share of the last unrealized PnL
            closed_ratio = (old_size - new_size) / old_size if old_size > 0 else 0.0
            return Decreased(
                coin=coin,
                old_size=old_size,
                new_size=new_size,
                entry_price=new.entry_price,
                realized_pnl=old.unrealized_pnl * closed_ratio,
                leverage=new.leverage,
                is_long=new.is_long,
            )

        if abs(new.margin_used - old.margin_used) > self.margin_tolerance:
            change_cls = MarginAdded if new.margin_used > old.margin_used else MarginRemoved
            return change_cls(
                coin=coin,
                old_margin=old.margin_used,
                new_margin=new.margin_used,
                leverage=new.leverage,
                is_long=new.is_long,
            )

        return None

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    def _persist_upsert(self, wallet_address: str, coin: str, position: CachedPosition):
        if self.position_db is None:
            return
        try:
            self.position_db.upsert_position(wallet_address, coin, position)
        except PersistenceError as e:
            logger.error(f"Failed to persist {coin} for {wallet_address}: {e}")

    def _persist_delete(self, wallet_address: str, coin: str):
        if self.position_db is None:
            return
        try:
            self.position_db.delete_position(wallet_address, coin)
        except PersistenceError as e:
            logger.error(f"Failed to delete {coin} for {wallet_address}: {e}")
