"""
Shared fixtures and in-memory fakes for the tracker tests.
"""

from pathlib import Path
from typing import Dict, List, Optional

import pytest

from position_tracker.errors import DeliveryError, ProviderError
from position_tracker.models import Position, TrackedWallet

WALLET_A = "0x" + "a" * 40
WALLET_B = "0x" + "b" * 40


def make_position(
    coin: str,
    szi,
    entry_px="100",
    position_value=None,
    unrealized_pnl="0",
    margin_used="0",
    leverage: Optional[int] = 5,
) -> Position:
    """Position as the provider would send it (numbers as strings)."""
    if position_value is None:
        try:
            position_value = str(abs(float(szi)) * float(entry_px))
        except (TypeError, ValueError):
            position_value = "0"
    return Position(
        coin=coin,
        szi=str(szi),
        position_value=position_value,
        unrealized_pnl=str(unrealized_pnl),
        margin_used=str(margin_used),
        entry_px=entry_px,
        leverage=leverage,
    )


class FakeClient:
    """Snapshot source: address -> list of positions, or an exception to raise."""

    def __init__(self, snapshots: Dict[str, object] = None):
        self.snapshots = snapshots or {}
        self.calls: List[str] = []

    async def fetch_snapshot(self, address: str) -> List[Position]:
        self.calls.append(address)
        result = self.snapshots.get(address, [])
        if isinstance(result, Exception):
            raise result
        return list(result)

    async def close(self):
        pass


class FakeSender:
    """Records messages; raises DeliveryError for chat ids in fail_for."""

    def __init__(self, fail_for=()):
        self.fail_for = set(fail_for)
        self.sent: List[tuple] = []

    def send_message(self, chat_id, text, reply_to_message_id=None):
        if chat_id in self.fail_for:
            raise DeliveryError(f"chat {chat_id} blocked the bot", status=403)
        self.sent.append((chat_id, text))
        return len(self.sent)


class FakeWalletSource:
    """Minimal list_tracked() provider."""

    def __init__(self, wallets: List[TrackedWallet] = None, error: Exception = None):
        self.wallets = wallets or []
        self.error = error

    def list_tracked(self) -> List[TrackedWallet]:
        if self.error is not None:
            raise self.error
        return list(self.wallets)


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    """Temporary SQLite file shared by the wallet and position stores."""
    return tmp_path / "data" / "tracker.db"


@pytest.fixture
def provider_error():
    return ProviderError("API error 502: bad gateway", status=502)
