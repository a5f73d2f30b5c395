"""
Hyperliquid Position Tracker
============================

Polls Hyperliquid for tracked wallets and notifies Telegram subscribers when
positions are opened, closed, resized, re-margined or liquidated.
"""

__version__ = "0.3.0"
