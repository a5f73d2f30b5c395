"""
Alerts Package
==============

Notification rendering and Telegram delivery.
"""

from .formatter import (
    format_change,
    format_positions_summary,
    format_wallet_display,
)
from .telegram import TelegramClient, TelegramConfig

__all__ = [
    "format_change",
    "format_positions_summary",
    "format_wallet_display",
    "TelegramClient",
    "TelegramConfig",
]
