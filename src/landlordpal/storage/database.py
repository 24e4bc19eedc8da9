"""SQLite connection management.

Concurrency model:
- One connection per store, WAL journal
- Autocommit connection; every write goes through an explicit
  BEGIN IMMEDIATE / COMMIT so a batch is atomic
- Automatic retry with exponential backoff for lock contention
"""

import shutil
import sqlite3
import threading
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterable, List, Optional
import logging

from ..constants import (
    DATABASE_BUSY_TIMEOUT_MS,
    DATABASE_LOCK_TIMEOUT,
    DB_MAX_RETRIES,
    DB_RETRY_BASE_DELAY,
    DB_RETRY_MAX_DELAY,
    STATEMENT_CACHE_SIZE,
)
from ..exceptions import StorageError

logger = logging.getLogger(__name__)


def _describe(sql: str, words: int = 3) -> str:
    """Leading words of a statement for log lines (``INSERT INTO tenants``), never its values."""
    return " ".join(sql.split()[:words])


class Database:
    """
    SQLite database manager.

    The connection is opened with ``isolation_level=None`` so the sqlite3
    module never opens implicit transactions; :meth:`transaction` owns
    transaction boundaries. Compiled statements are kept in the driver's
    statement cache (``cached_statements``), which is what lets the record
    layer reuse one upsert and one delete statement per table.
    """

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = threading.RLock()

    def _create_connection(self) -> sqlite3.Connection:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(
            str(self.db_path),
            check_same_thread=False,
            isolation_level=None,
            timeout=DATABASE_LOCK_TIMEOUT,
            cached_statements=STATEMENT_CACHE_SIZE,
        )
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode = WAL")
        conn.execute(f"PRAGMA busy_timeout = {DATABASE_BUSY_TIMEOUT_MS}")
        conn.execute("PRAGMA synchronous = NORMAL")  # Faster with WAL
        return conn

    def connect(self) -> None:
        """Open the connection. Foreign keys stay off until :meth:`set_foreign_keys`."""
        with self._lock:
            if self._conn is not None:
                return
            try:
                self._conn = self._create_connection()
            except sqlite3.Error as e:
                raise StorageError(
                    f"Cannot open database {self.db_path}: {e}", operation="connect"
                ) from e
            logger.debug(f"Opened database {self.db_path.name}")

    @property
    def is_connected(self) -> bool:
        return self._conn is not None

    @property
    def conn(self) -> sqlite3.Connection:
        """Get database connection."""
        with self._lock:
            if self._conn is None:
                raise StorageError("Database not connected", operation="connect")
            return self._conn

    def close(self) -> None:
        """Close database connection. Safe to call twice."""
        with self._lock:
            if self._conn:
                self._conn.close()
                self._conn = None

    def set_foreign_keys(self, enabled: bool) -> None:
        """
        Toggle FK enforcement.

        SQLite ignores this pragma inside a transaction, so callers must
        switch it before ``transaction()``, never inside.
        """
        if self.conn.in_transaction:
            raise StorageError(
                "Cannot change foreign_keys inside a transaction", operation="pragma"
            )
        self.conn.execute(f"PRAGMA foreign_keys = {'ON' if enabled else 'OFF'}")

    def foreign_keys_enabled(self) -> bool:
        row = self.fetchone("PRAGMA foreign_keys")
        return bool(row[0]) if row else False

    def _execute_with_retry(self, sql: str, func):
        """
        Run *func*, backing off while another connection holds the write lock.

        The desktop app and the maintenance CLI may open the same file, so a
        short-lived SQLITE_BUSY is expected; anything else propagates at once.
        """
        delay = DB_RETRY_BASE_DELAY
        for attempt in range(1, DB_MAX_RETRIES + 1):
            try:
                return func()
            except sqlite3.OperationalError as e:
                reason = str(e).lower()
                if "locked" not in reason and "busy" not in reason:
                    raise
                if attempt == DB_MAX_RETRIES:
                    raise sqlite3.OperationalError(
                        f"{_describe(sql)} still blocked after {DB_MAX_RETRIES} attempts: {e}"
                    ) from e
                logger.warning(
                    f"{self.db_path.name} busy during {_describe(sql)}, "
                    f"attempt {attempt}/{DB_MAX_RETRIES}, waiting {delay:.2f}s"
                )
                time.sleep(delay)
                delay = min(delay * 2, DB_RETRY_MAX_DELAY)

    @contextmanager
    def transaction(self):
        """
        Context manager for atomic write transactions.

        Uses IMMEDIATE mode to take the SQLite write lock up front. Nested
        use joins the outer transaction. Any exception rolls back and is
        re-raised unchanged.
        """
        with self._lock:
            in_transaction = self.conn.in_transaction

            if not in_transaction:
                self._execute_with_retry(
                    "BEGIN IMMEDIATE", lambda: self.conn.execute("BEGIN IMMEDIATE")
                )

            try:
                yield self.conn
                if not in_transaction:
                    self._execute_with_retry("COMMIT", lambda: self.conn.execute("COMMIT"))
            except BaseException:
                if not in_transaction:
                    try:
                        self.conn.execute("ROLLBACK")
                    except sqlite3.Error as rollback_error:
                        logger.error(f"Rollback failed: {rollback_error}")
                raise

    def execute(self, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        """Execute SQL with parameters (with retry logic)."""
        with self._lock:
            return self._execute_with_retry(sql, lambda: self.conn.execute(sql, params))

    def executemany(self, sql: str, params_list: Iterable[tuple]) -> sqlite3.Cursor:
        """Execute SQL for multiple parameter sets (with retry logic)."""
        with self._lock:
            return self._execute_with_retry(sql, lambda: self.conn.executemany(sql, params_list))

    def fetchone(self, sql: str, params: tuple = ()) -> Optional[sqlite3.Row]:
        with self._lock:
            return self._execute_with_retry(sql, lambda: self.conn.execute(sql, params).fetchone())

    def fetchall(self, sql: str, params: tuple = ()) -> List[sqlite3.Row]:
        with self._lock:
            return self._execute_with_retry(sql, lambda: self.conn.execute(sql, params).fetchall())

    def table_exists(self, table: str) -> bool:
        row = self.fetchone(
            "SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = ?", (table,)
        )
        return row is not None

    def table_columns(self, table: str) -> List[str]:
        """Column names of an existing table, in declaration order."""
        return [row["name"] for row in self.fetchall(f"PRAGMA table_info({table})")]

    def foreign_key_count(self, table: str) -> int:
        return len(self.fetchall(f"PRAGMA foreign_key_list({table})"))

    def checkpoint(self) -> None:
        """
        Force WAL checkpoint.

        Transfers data from WAL to main database file. Called before a file
        level backup so the copy is complete.
        """
        with self._lock:
            if not self.conn.in_transaction:
                self.conn.execute("PRAGMA wal_checkpoint(PASSIVE)")

    def backup_to(self, target: Path) -> Path:
        """
        Write a consistent copy of the database to *target*.

        Uses the online backup API; falls back to a plain file copy if the
        driver refuses (e.g. target on an odd filesystem).
        """
        target = Path(target)
        target.parent.mkdir(parents=True, exist_ok=True)
        try:
            dest = sqlite3.connect(str(target))
            try:
                with self._lock:
                    self.conn.backup(dest)
            finally:
                dest.close()
        except sqlite3.Error as e:
            logger.warning(f"Online backup failed ({e}), copying database file instead")
            self.checkpoint()
            shutil.copy2(self.db_path, target)
        return target
