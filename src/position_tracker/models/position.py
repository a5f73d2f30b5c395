"""
Position Models
===============

Dataclasses for position data from the Hyperliquid clearinghouseState
endpoint and for the remembered per-wallet position state.
"""

import math
from dataclasses import dataclass
from typing import Any, Optional


def parse_float(value: Any) -> float:
    """
    Parse a provider numeric field leniently.

    Hyperliquid sends numbers as strings. Anything missing, malformed or
    non-finite degrades to 0.0 instead of raising.
    """
    if value is None:
        return 0.0
    try:
        result = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(result):
        return 0.0
    return result


def _parse_leverage(raw: Any) -> Optional[int]:
    """Extract the integer leverage from a {"type", "value"} object."""
    if isinstance(raw, dict):
        raw = raw.get("value")
    if raw is None or isinstance(raw, bool):
        return None
    try:
        return int(float(raw))
    except (TypeError, ValueError, OverflowError):
        return None


@dataclass
class Position:
    """
    A single asset position as returned by the provider.

    Numeric fields are kept as the raw strings received; the typed
    properties parse them on access with parse_float.
    """
    coin: str
    szi: str
    position_value: str = "0"
    unrealized_pnl: str = "0"
    margin_used: str = "0"
    entry_px: Optional[str] = None
    liquidation_px: Optional[str] = None
    leverage: Optional[int] = None
    leverage_type: Optional[str] = None

    @classmethod
    def from_api(cls, data: dict) -> "Position":
        """Build from the "position" object of an assetPositions entry."""
        leverage_info = data.get("leverage")
        leverage_type = None
        if isinstance(leverage_info, dict):
            leverage_type = leverage_info.get("type")

        return cls(
            coin=str(data.get("coin", "")),
            szi=data.get("szi", "0"),
            position_value=data.get("positionValue", "0"),
            unrealized_pnl=data.get("unrealizedPnl", "0"),
            margin_used=data.get("marginUsed", "0"),
            entry_px=data.get("entryPx"),
            liquidation_px=data.get("liquidationPx"),
            leverage=_parse_leverage(leverage_info),
            leverage_type=leverage_type,
        )

    @property
    def size(self) -> float:
        """Signed size; negative for shorts."""
        return parse_float(self.szi)

    @property
    def is_open(self) -> bool:
        return self.size != 0.0

    @property
    def is_long(self) -> bool:
        return self.size > 0

    @property
    def entry_price(self) -> float:
        return parse_float(self.entry_px)

    @property
    def notional(self) -> float:
        return parse_float(self.position_value)

    @property
    def pnl(self) -> float:
        return parse_float(self.unrealized_pnl)

    @property
    def margin(self) -> float:
        return parse_float(self.margin_used)

    @property
    def leverage_value(self) -> int:
        """Leverage multiplier, 1 when the provider omits it."""
        return self.leverage if self.leverage is not None else 1

    @property
    def liquidation_price(self) -> Optional[float]:
        """Liquidation price, None when the provider has none to report."""
        price = parse_float(self.liquidation_px)
        return price if price > 0 else None

    @property
    def is_isolated(self) -> bool:
        return self.leverage_type == "isolated"


@dataclass
class CachedPosition:
    """Last observed state of one instrument for one wallet."""
    size: float
    entry_price: float
    unrealized_pnl: float
    leverage: int
    margin_used: float = 0.0

    @classmethod
    def from_position(cls, position: Position) -> "CachedPosition":
        return cls(
            size=position.size,
            entry_price=position.entry_price,
            unrealized_pnl=position.pnl,
            leverage=position.leverage_value,
            margin_used=position.margin,
        )

    @property
    def is_long(self) -> bool:
        return self.size > 0


@dataclass
class TrackedWallet:
    """A wallet a user subscribed to."""
    id: int
    user_id: int
    wallet_address: str
    note: Optional[str] = None
