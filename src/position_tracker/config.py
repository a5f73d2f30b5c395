"""
Configuration for the Hyperliquid Position Tracker

All settings in one place for easy tuning. Values can be overridden through
environment variables (or a .env file in the project root).
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

_project_root = Path(__file__).resolve().parent.parent.parent
_env_path = _project_root / ".env"
if _env_path.exists():
    load_dotenv(_env_path)


def _env_float(name: str, default: float) -> float:
    """Read a float from the environment, falling back to default on bad input."""
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Invalid value for {name}: {raw!r}, using {default}")
        return default


def _env_int(name: str, default: int) -> int:
    """Read an int from the environment, falling back to default on bad input."""
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Invalid value for {name}: {raw!r}, using {default}")
        return default


LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


def _env_log_level(name: str, default: str = "INFO") -> str:
    """Read a log level name from the environment, falling back to default if unknown."""
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    level = raw.strip().upper()
    if level not in LOG_LEVELS:
        logger.warning(f"Invalid value for {name}: {raw!r}, using {default}")
        return default
    return level


# =============================================================================
# Configuration
# =============================================================================

@dataclass
class Config:
    """All configuration settings."""

    # -------------------------------------------------------------------------
    # API Settings
    # -------------------------------------------------------------------------
    hyperliquid_url: str = field(
        default_factory=lambda: os.environ.get(
            "HYPERLIQUID_API_URL", "https://api.hyperliquid.xyz/info"
        )
    )

    # Hard upper bound for a single snapshot request (seconds)
    request_timeout_sec: float = field(
        default_factory=lambda: _env_float("REQUEST_TIMEOUT_SECONDS", 30.0)
    )

    # Wallet fetches in flight at once; 1 keeps the sweep strictly sequential
    max_concurrent_requests: int = field(
        default_factory=lambda: max(1, _env_int("MAX_CONCURRENT_REQUESTS", 1))
    )

    # -------------------------------------------------------------------------
    # Polling
    # -------------------------------------------------------------------------
    poll_interval_sec: float = field(
        default_factory=lambda: _env_float("POLL_INTERVAL_SECONDS", 10.0)
    )

    # -------------------------------------------------------------------------
    # Change Detection Thresholds
    # -------------------------------------------------------------------------
    # Size deltas at or below this are dust and ignored
    size_tolerance: float = 0.0001

    # Margin deltas at or below this (USD) are ignored
    margin_tolerance: float = 0.01

    # A disappeared position whose loss ate more than this share of its
    # margin is reported as liquidated instead of closed
    liquidation_loss_ratio: float = 0.9

    # -------------------------------------------------------------------------
    # Wallet Registry
    # -------------------------------------------------------------------------
    max_wallets_per_user: int = field(
        default_factory=lambda: _env_int("MAX_WALLETS_PER_USER", 10)
    )

    # -------------------------------------------------------------------------
    # Telegram
    # -------------------------------------------------------------------------
    telegram_api_url: str = "https://api.telegram.org"
    min_message_interval_sec: float = 0.05
    max_message_length: int = 4000
    command_poll_timeout_sec: int = 30

    # -------------------------------------------------------------------------
    # Paths
    # -------------------------------------------------------------------------
    data_dir: Path = field(default_factory=lambda: _project_root / "data")

    log_level: str = field(default_factory=lambda: _env_log_level("LOG_LEVEL"))
    log_file: str = field(
        default_factory=lambda: os.environ.get(
            "LOG_FILE", str(_project_root / "logs" / "tracker.log")
        )
    )

    @property
    def database_path(self) -> Path:
        override = os.environ.get("DATABASE_PATH")
        if override:
            return Path(override)
        return self.data_dir / "tracker.db"

    @property
    def telegram_bot_token(self) -> Optional[str]:
        return os.environ.get("TELEGRAM_BOT_TOKEN")


# Global config instance
config = Config()
