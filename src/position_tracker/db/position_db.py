"""
Position Database

Durable copy of the detector's remembered positions, so a restart does not
report every live position as newly opened.
"""

import logging
import sqlite3
from datetime import datetime, timezone
from typing import Dict

from ..models import CachedPosition
from .base import SQLiteStore

logger = logging.getLogger(__name__)


class PositionDB(SQLiteStore):
    """
    SQLite table of last-known positions, keyed by (wallet_address, coin).

    All write failures surface as PersistenceError.
    """

    def _init_schema(self, conn: sqlite3.Connection):
        conn.execute("""
            CREATE TABLE IF NOT EXISTS active_positions (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                wallet_address TEXT NOT NULL,
                coin TEXT NOT NULL,
                size REAL NOT NULL,
                entry_px REAL NOT NULL,
                unrealized_pnl REAL NOT NULL,
                leverage INTEGER NOT NULL,
                margin_used REAL NOT NULL DEFAULT 0,
                updated_at TEXT NOT NULL,
                UNIQUE(wallet_address, coin)
            )
        """)
        conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_active_positions_wallet
            ON active_positions(wallet_address)
        """)

    # -------------------------------------------------------------------------
    # Startup Rehydration
    # -------------------------------------------------------------------------

    def load_positions(self) -> Dict[str, Dict[str, CachedPosition]]:
        """
        Load every stored position, grouped by wallet then coin.

        Returns:
            Mapping of wallet address -> coin -> CachedPosition
        """
        def _do_load():
            with self._get_connection() as conn:
                return conn.execute("""
                    SELECT wallet_address, coin, size, entry_px, unrealized_pnl,
                           leverage, margin_used
                    FROM active_positions
                """).fetchall()

        rows = self._execute_with_retry(_do_load)

        positions: Dict[str, Dict[str, CachedPosition]] = {}
        for row in rows:
            positions.setdefault(row["wallet_address"], {})[row["coin"]] = CachedPosition(
                size=row["size"],
                entry_price=row["entry_px"],
                unrealized_pnl=row["unrealized_pnl"],
                leverage=row["leverage"],
                margin_used=row["margin_used"],
            )

        logger.info(
            f"Loaded {len(rows)} positions for {len(positions)} wallets from database"
        )
        return positions

    # -------------------------------------------------------------------------
    # Position CRUD
    # -------------------------------------------------------------------------

    def upsert_position(self, wallet_address: str, coin: str, position: CachedPosition):
        """Insert or replace the stored state of one instrument."""
        now = datetime.now(timezone.utc).isoformat()

        def _do_upsert():
            with self._get_connection() as conn:
                conn.execute("""
                    INSERT INTO active_positions
                        (wallet_address, coin, size, entry_px, unrealized_pnl,
                         leverage, margin_used, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(wallet_address, coin) DO UPDATE SET
                        size = excluded.size,
                        entry_px = excluded.entry_px,
                        unrealized_pnl = excluded.unrealized_pnl,
                        leverage = excluded.leverage,
                        margin_used = excluded.margin_used,
                        updated_at = excluded.updated_at
                """, (
                    wallet_address, coin, position.size, position.entry_price,
                    position.unrealized_pnl, position.leverage,
                    position.margin_used, now,
                ))

        self._execute_with_retry(_do_upsert)

    def delete_position(self, wallet_address: str, coin: str) -> bool:
        """
        Delete the stored state of one instrument.

        Returns:
            True if a row was removed
        """
        def _do_delete():
            with self._get_connection() as conn:
                cursor = conn.execute(
                    "DELETE FROM active_positions WHERE wallet_address = ? AND coin = ?",
                    (wallet_address, coin),
                )
                return cursor.rowcount > 0

        return self._execute_with_retry(_do_delete)

    def delete_wallet_positions(self, wallet_address: str) -> int:
        """Delete every stored position of a wallet. Returns rows removed."""
        def _do_delete():
            with self._get_connection() as conn:
                cursor = conn.execute(
                    "DELETE FROM active_positions WHERE wallet_address = ?",
                    (wallet_address,),
                )
                return cursor.rowcount

        return self._execute_with_retry(_do_delete)

    def count(self) -> int:
        """Number of stored positions."""
        def _do_count():
            with self._get_connection() as conn:
                return conn.execute("SELECT COUNT(*) FROM active_positions").fetchone()[0]

        return self._execute_with_retry(_do_count)
