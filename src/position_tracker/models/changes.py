"""
Position Change Events
======================

One frozen dataclass per kind of change the detector can report. Sizes are
absolute; direction is carried by is_long / was_long.
"""

from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True)
class Opened:
    coin: str
    size: float
    entry_price: float
    leverage: int
    position_value: float
    is_long: bool

    kind = "opened"


@dataclass(frozen=True)
class Closed:
    coin: str
    realized_pnl: float
    entry_price: float
    was_long: bool
    leverage: int

    kind = "closed"


@dataclass(frozen=True)
class Increased:
    coin: str
    old_size: float
    new_size: float
    entry_price: float
    leverage: int
    is_long: bool

    kind = "increased"


@dataclass(frozen=True)
class Decreased:
    """Partial close. realized_pnl is a proportional estimate."""
    coin: str
    old_size: float
    new_size: float
    entry_price: float
    realized_pnl: float
    leverage: int
    is_long: bool

    kind = "decreased"


@dataclass(frozen=True)
class MarginAdded:
    coin: str
    old_margin: float
    new_margin: float
    leverage: int
    is_long: bool

    kind = "margin_added"


@dataclass(frozen=True)
class MarginRemoved:
    coin: str
    old_margin: float
    new_margin: float
    leverage: int
    is_long: bool

    kind = "margin_removed"


@dataclass(frozen=True)
class Liquidated:
    """Heuristic: the position vanished after losing most of its margin."""
    coin: str
    lost_margin: float
    was_long: bool
    leverage: int

    kind = "liquidated"


PositionChange = Union[
    Opened,
    Closed,
    Increased,
    Decreased,
    MarginAdded,
    MarginRemoved,
    Liquidated,
]
