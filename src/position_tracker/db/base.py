"""
SQLite Base

Shared connection handling for the tracker's SQLite stores. Both the wallet
registry and the position cache live in the same database file.
"""

import logging
import sqlite3
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, TypeVar

from ..config import config
from ..errors import PersistenceError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Database connection settings
DB_TIMEOUT = 10.0  # seconds
DB_RETRIES = 3
DB_RETRY_BACKOFF = 0.5  # seconds


class SQLiteStore:
    """Base class: owns the db path, schema bootstrap and connections."""

    def __init__(self, db_path: Path = None):
        self.db_path = Path(db_path) if db_path else config.database_path
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error(f"Failed to create database directory: {e}")
            raise
        with self._get_connection() as conn:
            conn.execute("PRAGMA journal_mode=WAL")
            self._init_schema(conn)

    def _init_schema(self, conn: sqlite3.Connection):
        raise NotImplementedError

    @contextmanager
    def _get_connection(self):
        """Get a database connection with proper cleanup."""
        conn = sqlite3.connect(str(self.db_path), timeout=DB_TIMEOUT)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _execute_with_retry(
        self,
        operation: Callable[[], T],
        retries: int = DB_RETRIES,
        backoff: float = DB_RETRY_BACKOFF,
    ) -> T:
        """
        Execute a database operation with retry logic for locked database.

        Args:
            operation: Callable that performs the database operation
            retries: Number of retry attempts
            backoff: Initial backoff time in seconds (doubles each retry)

        Returns:
            Result of the operation

        Raises:
            PersistenceError: If all retries fail or a non-lock error occurs
        """
        for attempt in range(retries):
            try:
                return operation()
            except sqlite3.OperationalError as e:
                if "locked" in str(e).lower() and attempt < retries - 1:
                    wait_time = backoff * (2 ** attempt)
                    logger.warning(
                        f"Database locked, retrying in {wait_time:.1f}s "
                        f"({attempt + 1}/{retries})"
                    )
                    time.sleep(wait_time)
                    continue
                raise PersistenceError(f"Database error: {e}") from e
            except sqlite3.Error as e:
                raise PersistenceError(f"Database error: {e}") from e
        raise PersistenceError("Database operation failed after retries")
