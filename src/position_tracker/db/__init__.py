from .wallet_db import (
    WalletDB,
    AddWalletResult,
    is_valid_address,
    is_reserved_note,
)
from .position_db import PositionDB

__all__ = [
    "WalletDB",
    "AddWalletResult",
    "PositionDB",
    "is_valid_address",
    "is_reserved_note",
]
