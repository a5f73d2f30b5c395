"""
Shared Data Models
==================

This package contains dataclasses used across the project.
"""

from .position import Position, CachedPosition, TrackedWallet, parse_float
from .changes import (
    PositionChange,
    Opened,
    Closed,
    Increased,
    Decreased,
    MarginAdded,
    MarginRemoved,
    Liquidated,
)

__all__ = [
    "Position",
    "CachedPosition",
    "TrackedWallet",
    "parse_float",
    "PositionChange",
    "Opened",
    "Closed",
    "Increased",
    "Decreased",
    "MarginAdded",
    "MarginRemoved",
    "Liquidated",
]
