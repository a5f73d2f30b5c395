"""
Error Types
===========

Every failure the tracker reports derives from TrackerError. None of them is
fatal to the poll loop: each is logged and the affected wallet, write or
recipient is skipped.
"""


class TrackerError(Exception):
    """Base class for tracker errors."""


class ProviderError(TrackerError):
    """Snapshot fetch failed (timeout, network error, non-2xx, bad body)."""

    def __init__(self, message: str, status: int = None):
        super().__init__(message)
        self.status = status


class PersistenceError(TrackerError):
    """A position or wallet write to SQLite failed."""


class DeliveryError(TrackerError):
    """A Telegram message could not be delivered."""

    def __init__(self, message: str, status: int = None):
        super().__init__(message)
        self.status = status
