"""
Core Package
============

Position state, change detection and the poll loop.
"""

from .state import PositionStateStore
from .detector import ChangeDetector
from .monitor import PositionMonitor, CycleStats, group_subscribers

__all__ = [
    "PositionStateStore",
    "ChangeDetector",
    "PositionMonitor",
    "CycleStats",
    "group_subscribers",
]
