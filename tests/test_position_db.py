"""
Tests for the SQLite position store and its rehydration into the state store.
"""

import sqlite3

import pytest

from conftest import WALLET_A, WALLET_B, make_position
from position_tracker.core import ChangeDetector, PositionStateStore
from position_tracker.db import PositionDB
from position_tracker.errors import PersistenceError
from position_tracker.models import CachedPosition, Closed, Increased


@pytest.fixture
def position_db(db_path):
    return PositionDB(db_path)


class TestPositionDB:

    def test_fresh_database_is_empty(self, position_db):
        assert position_db.load_positions() == {}
        assert position_db.count() == 0

    def test_upsert_then_load(self, position_db):
        btc = CachedPosition(size=-0.5, entry_price=64000.0, unrealized_pnl=-12.5, leverage=10, margin_used=3200.0)
        position_db.upsert_position(WALLET_A, "BTC", btc)
        position_db.upsert_position(WALLET_B, "ETH", CachedPosition(2.0, 3000.0, 40.0, 3))

        loaded = position_db.load_positions()

        assert loaded[WALLET_A] == {"BTC": btc}
        assert loaded[WALLET_B]["ETH"].size == 2.0
        assert loaded[WALLET_B]["ETH"].margin_used == 0.0

    def test_upsert_overwrites_existing_row(self, position_db):
        position_db.upsert_position(WALLET_A, "BTC", CachedPosition(1.0, 50000.0, 0.0, 5))
        position_db.upsert_position(WALLET_A, "BTC", CachedPosition(2.0, 51000.0, 300.0, 5))

        assert position_db.count() == 1
        assert position_db.load_positions()[WALLET_A]["BTC"].size == 2.0

    def test_delete_position(self, position_db):
        position_db.upsert_position(WALLET_A, "BTC", CachedPosition(1.0, 50000.0, 0.0, 5))

        assert position_db.delete_position(WALLET_A, "BTC") is True
        assert position_db.delete_position(WALLET_A, "BTC") is False
        assert position_db.load_positions() == {}

    def test_delete_wallet_positions(self, position_db):
        position_db.upsert_position(WALLET_A, "BTC", CachedPosition(1.0, 50000.0, 0.0, 5))
        position_db.upsert_position(WALLET_A, "ETH", CachedPosition(1.0, 3000.0, 0.0, 5))
        position_db.upsert_position(WALLET_B, "ETH", CachedPosition(1.0, 3000.0, 0.0, 5))

        assert position_db.delete_wallet_positions(WALLET_A) == 2
        assert list(position_db.load_positions()) == [WALLET_B]

    def test_sqlite_errors_become_persistence_errors(self, position_db):
        with position_db._get_connection() as conn:
            conn.execute("DROP TABLE active_positions")

        with pytest.raises(PersistenceError):
            position_db.upsert_position(WALLET_A, "BTC", CachedPosition(1.0, 1.0, 0.0, 1))

    def test_schema_has_margin_column(self, position_db, db_path):
        conn = sqlite3.connect(str(db_path))
        try:
            columns = {row[1] for row in conn.execute("PRAGMA table_info(active_positions)")}
        finally:
            conn.close()
        assert {"wallet_address", "coin", "size", "entry_px", "unrealized_pnl",
                "leverage", "margin_used", "updated_at"} <= columns


class TestRestartRehydration:

    def test_restart_does_not_reopen_live_positions(self, db_path):
        snapshot = [make_position("BTC", "1.0", margin_used="100")]

        first_store = PositionStateStore()
        ChangeDetector(first_store, PositionDB(db_path)).detect_locked(WALLET_A, snapshot)

        # New process: rehydrate before the first pass
        second_store = PositionStateStore()
        position_db = PositionDB(db_path)
        assert second_store.load(position_db.load_positions()) == 1
        detector = ChangeDetector(second_store, position_db)

        assert detector.detect_locked(WALLET_A, snapshot) == []

    def test_changes_after_restart_compare_against_stored_state(self, db_path):
        first_store = PositionStateStore()
        ChangeDetector(first_store, PositionDB(db_path)).detect_locked(
            WALLET_A, [make_position("SOL", "10"), make_position("ETH", "1")]
        )

        second_store = PositionStateStore()
        position_db = PositionDB(db_path)
        second_store.load(position_db.load_positions())
        changes = ChangeDetector(second_store, position_db).detect_locked(
            WALLET_A, [make_position("SOL", "15")]
        )

        assert sorted(type(c).__name__ for c in changes) == ["Closed", "Increased"]
        assert {c.coin for c in changes if isinstance(c, Closed)} == {"ETH"}
        assert [c.new_size for c in changes if isinstance(c, Increased)] == [15.0]
        assert set(position_db.load_positions()[WALLET_A]) == {"SOL"}
