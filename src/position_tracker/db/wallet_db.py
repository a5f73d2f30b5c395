"""
Wallet Database

Registry of which users track which wallet addresses. The poll loop only
reads it (list_tracked); the Telegram commands and the management script
write it.
"""

import logging
import re
import sqlite3
from enum import Enum
from typing import List, Optional

from ..models import TrackedWallet
from .base import SQLiteStore

logger = logging.getLogger(__name__)

_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")

# Notes that would be ambiguous with list indexes
RESERVED_NOTE_RANGE = range(1, 11)


def is_valid_address(address: str) -> bool:
    """Whether address looks like an EVM address (0x + 40 hex chars)."""
    return bool(_ADDRESS_RE.match(address or ""))


def is_reserved_note(note: str) -> bool:
    """Notes "1".."10" are reserved for wallet indexing."""
    try:
        return int(note) in RESERVED_NOTE_RANGE
    except (TypeError, ValueError):
        return False


class AddWalletResult(Enum):
    ADDED = "added"
    UPDATED = "updated"          # already tracked, note changed
    UNCHANGED = "unchanged"      # already tracked with the same note


class WalletDB(SQLiteStore):
    """
    SQLite table of (user, wallet, note) subscriptions.

    Addresses are stored lower-case so the same wallet typed with different
    casing is one subscription.
    """

    def _init_schema(self, conn: sqlite3.Connection):
        conn.execute("""
            CREATE TABLE IF NOT EXISTS tracked_wallets (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id INTEGER NOT NULL,
                wallet_address TEXT NOT NULL,
                note TEXT,
                created_at TEXT DEFAULT CURRENT_TIMESTAMP,
                UNIQUE(user_id, wallet_address)
            )
        """)
        conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_tracked_wallets_address
            ON tracked_wallets(wallet_address)
        """)

    @staticmethod
    def _row_to_wallet(row: sqlite3.Row) -> TrackedWallet:
        return TrackedWallet(
            id=row["id"],
            user_id=row["user_id"],
            wallet_address=row["wallet_address"],
            note=row["note"],
        )

    def _fetch_wallets(self, query: str, params: tuple = ()) -> List[TrackedWallet]:
        def _do_fetch():
            with self._get_connection() as conn:
                return conn.execute(query, params).fetchall()

        return [self._row_to_wallet(r) for r in self._execute_with_retry(_do_fetch)]

    # -------------------------------------------------------------------------
    # Add / Remove
    # -------------------------------------------------------------------------

    def add_wallet(
        self,
        user_id: int,
        wallet_address: str,
        note: Optional[str] = None,
    ) -> AddWalletResult:
        """
        Track a wallet for a user, or update its note if already tracked.

        Args:
            user_id: Telegram user id
            wallet_address: Wallet address (0x...)
            note: Optional label shown in notifications

        Returns:
            AddWalletResult describing what happened
        """
        address = wallet_address.lower()
        note = note.strip() if note and note.strip() else None

        def _do_add():
            with self._get_connection() as conn:
                existing = conn.execute(
                    "SELECT note FROM tracked_wallets WHERE user_id = ? AND wallet_address = ?",
                    (user_id, address),
                ).fetchone()

                if existing is None:
                    conn.execute(
                        "INSERT INTO tracked_wallets (user_id, wallet_address, note) VALUES (?, ?, ?)",
                        (user_id, address, note),
                    )
                    return AddWalletResult.ADDED

                if existing["note"] == note:
                    return AddWalletResult.UNCHANGED

                conn.execute(
                    "UPDATE tracked_wallets SET note = ? WHERE user_id = ? AND wallet_address = ?",
                    (note, user_id, address),
                )
                return AddWalletResult.UPDATED

        return self._execute_with_retry(_do_add)

    def remove_wallet(self, user_id: int, wallet_address: str) -> bool:
        """
        Stop tracking a wallet for a user.

        Returns:
            True if the wallet was tracked and is now removed
        """
        address = wallet_address.lower()

        def _do_remove():
            with self._get_connection() as conn:
                cursor = conn.execute(
                    "DELETE FROM tracked_wallets WHERE user_id = ? AND wallet_address = ?",
                    (user_id, address),
                )
                return cursor.rowcount > 0

        return self._execute_with_retry(_do_remove)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def list_tracked(self) -> List[TrackedWallet]:
        """Every subscription of every user."""
        return self._fetch_wallets(
            "SELECT id, user_id, wallet_address, note FROM tracked_wallets ORDER BY id"
        )

    def get_user_wallets(self, user_id: int) -> List[TrackedWallet]:
        """A user's wallets in the order they were added."""
        return self._fetch_wallets(
            "SELECT id, user_id, wallet_address, note FROM tracked_wallets "
            "WHERE user_id = ? ORDER BY id",
            (user_id,),
        )

    def get_user_wallet_count(self, user_id: int) -> int:
        def _do_count():
            with self._get_connection() as conn:
                return conn.execute(
                    "SELECT COUNT(*) FROM tracked_wallets WHERE user_id = ?",
                    (user_id,),
                ).fetchone()[0]

        return self._execute_with_retry(_do_count)

    def is_tracking(self, user_id: int, wallet_address: str) -> bool:
        def _do_check():
            with self._get_connection() as conn:
                return conn.execute(
                    "SELECT 1 FROM tracked_wallets WHERE user_id = ? AND wallet_address = ?",
                    (user_id, wallet_address.lower()),
                ).fetchone() is not None

        return self._execute_with_retry(_do_check)

    def get_wallet_by_index(self, user_id: int, index: int) -> Optional[TrackedWallet]:
        """The index-th (1-based) wallet of a user's list."""
        if index < 1:
            return None
        wallets = self._fetch_wallets(
            "SELECT id, user_id, wallet_address, note FROM tracked_wallets "
            "WHERE user_id = ? ORDER BY id LIMIT 1 OFFSET ?",
            (user_id, index - 1),
        )
        return wallets[0] if wallets else None

    def get_wallet_by_note(self, user_id: int, note: str) -> Optional[TrackedWallet]:
        """Case-insensitive lookup by note."""
        wallets = self._fetch_wallets(
            "SELECT id, user_id, wallet_address, note FROM tracked_wallets "
            "WHERE user_id = ? AND note IS NOT NULL AND LOWER(note) = LOWER(?) "
            "ORDER BY id LIMIT 1",
            (user_id, note.strip()),
        )
        return wallets[0] if wallets else None

    def note_exists_for_user(
        self,
        user_id: int,
        note: str,
        exclude_address: Optional[str] = None,
    ) -> bool:
        """Whether another of the user's wallets already uses this note."""
        wallet = self.get_wallet_by_note(user_id, note)
        if wallet is None:
            return False
        if exclude_address and wallet.wallet_address == exclude_address.lower():
            return False
        return True

    def get_wallet_note(self, wallet_address: str, user_id: Optional[int] = None) -> Optional[str]:
        """Note attached to an address (by the given user, if any)."""
        query = (
            "SELECT id, user_id, wallet_address, note FROM tracked_wallets "
            "WHERE wallet_address = ? AND note IS NOT NULL"
        )
        params: tuple = (wallet_address.lower(),)
        if user_id is not None:
            query += " AND user_id = ?"
            params += (user_id,)
        wallets = self._fetch_wallets(query + " ORDER BY id LIMIT 1", params)
        return wallets[0].note if wallets else None
