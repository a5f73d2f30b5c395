"""
API Package
===========

External API client for Hyperliquid.
"""

from .hyperliquid import HyperliquidClient

__all__ = ["HyperliquidClient"]
