"""Schema versioning and upgrade steps.

The schema version is a single integer in the ``metadata`` table. A missing
row means version 0, which is where every brand-new database starts, so
every step below must also be a no-op on tables that were just created
with the current DDL.

Adding a version: write ``_step_N``, register it in ``MigrationEngine.steps``
and bump ``CURRENT_SCHEMA_VERSION``.
"""

import sqlite3
import time
from pathlib import Path
from typing import Callable, Dict, List, Optional
import logging

from ..constants import (
    BACKUP_GLOB,
    BACKUP_PREFIX,
    CURRENT_SCHEMA_VERSION,
    DEFAULT_BACKUP_RETENTION,
    SCHEMA_VERSION_KEY,
)
from ..crypto.codec import FieldCodec, is_envelope
from ..exceptions import MigrationError
from ..types import MigrationResult
from .database import Database
from .schema import CATALOG, METADATA_DDL, TableSpec, get_table

logger = logging.getLogger(__name__)

# Columns added after the first release, per table
ADDED_COLUMNS: Dict[str, List[tuple]] = {
    "properties": [
        ("propertyType", "TEXT"),
        ("sqft", "INTEGER"),
        ("amenities", "TEXT"),
        ("insuranceProvider", "TEXT"),
        ("insurancePolicyNumber", "TEXT"),
        ("insuranceExpiry", "TEXT"),
    ],
    "maintenance_requests": [
        ("scheduledDate", "TEXT"),
        ("recurrence", "TEXT"),
    ],
    "tenants": [
        ("leaseHistory", "TEXT"),
    ],
}

# Tables that did not exist in the first release
ADDED_TABLES = ("communication_logs", "documents", "email_templates")


def backup_filename(version: int, millis: Optional[int] = None) -> str:
    if millis is None:
        millis = int(time.time() * 1000)
    return f"{BACKUP_PREFIX}-v{version}-{millis}.db"


def add_column(db: Database, table: str, column: str, sql_type: str) -> bool:
    """
    ALTER TABLE ADD COLUMN, tolerating a column that already exists.

    Returns:
        True if the column was added, False if it was already there.
    """
    try:
        db.execute(f"ALTER TABLE {table} ADD COLUMN {column} {sql_type}")
        return True
    except sqlite3.OperationalError as e:
        if "duplicate column name" in str(e).lower():
            return False
        raise


def rebuild_table(db: Database, spec: TableSpec) -> int:
    """
    Recreate *spec.table* with the current DDL and copy its rows across.

    SQLite cannot add constraints to an existing table, so the table is
    created under a temporary name, shared columns are copied, the old
    table is dropped and the new one renamed into place. Must run inside a
    transaction with foreign keys off.

    Returns:
        Number of rows copied.
    """
    temp = f"{spec.table}__rebuild"
    existing = set(db.table_columns(spec.table))
    shared = [name for name in spec.column_names if name in existing]
    cols = ", ".join(shared)

    db.execute(f"DROP TABLE IF EXISTS {temp}")
    db.execute(spec.create_sql(temp))
    cursor = db.execute(f"INSERT INTO {temp} ({cols}) SELECT {cols} FROM {spec.table}")
    db.execute(f"DROP TABLE {spec.table}")
    db.execute(f"ALTER TABLE {temp} RENAME TO {spec.table}")
    return cursor.rowcount


class MigrationEngine:
    """
    Brings a database up to ``CURRENT_SCHEMA_VERSION``.

    ``run()`` never raises for a failed step: the transaction is rolled
    back, the stored version stays where it was, and the failure comes back
    on the result so the application can still start on the old schema.
    """

    def __init__(
        self,
        db: Database,
        codec: FieldCodec,
        backup_dir: Path,
        target_version: int = CURRENT_SCHEMA_VERSION,
    ):
        self.db = db
        self.codec = codec
        self.backup_dir = Path(backup_dir)
        self.target_version = target_version
        self.steps: Dict[int, Callable[[], None]] = {
            1: self._step_1_add_columns,
            2: self._step_2_add_tables,
            3: self._step_3_add_foreign_keys,
            4: self._step_4_encrypt_pii,
            5: self._step_5_add_indexes,
        }

    # --- version bookkeeping ---

    def get_version(self) -> int:
        self.db.execute(METADATA_DDL)
        row = self.db.fetchone(
            "SELECT value FROM metadata WHERE key = ?", (SCHEMA_VERSION_KEY,)
        )
        if row is None:
            return 0
        try:
            return int(row["value"])
        except (TypeError, ValueError):
            logger.warning(f"Unreadable schema version {row['value']!r}, treating as 0")
            return 0

    def set_version(self, version: int) -> None:
        self.db.execute(
            """
            INSERT INTO metadata (key, value) VALUES (?, ?)
            ON CONFLICT(key) DO UPDATE SET value = excluded.value
            """,
            (SCHEMA_VERSION_KEY, str(version)),
        )

    def pending(self, from_version: int) -> List[int]:
        return [n for n in sorted(self.steps) if from_version < n <= self.target_version]

    # --- run ---

    def run(self, backup: bool = True) -> MigrationResult:
        """
        Apply every step above the stored version, in order, atomically.

        Args:
            backup: Write a copy of the database before touching it
        """
        current = self.get_version()
        result = MigrationResult(from_version=current, to_version=current)

        if current >= self.target_version:
            logger.debug(f"Schema is current (v{current})")
            return result

        steps = self.pending(current)
        if backup:
            result.backup_path = self.backup(current)

        logger.info(f"Migrating schema v{current} -> v{self.target_version}")
        step = None
        try:
            with self.db.transaction():
                for step in steps:
                    logger.info(f"Applying migration step {step}")
                    self.steps[step]()
                self.set_version(self.target_version)
        except Exception as e:
            error = MigrationError(
                f"Migration failed: {e}", from_version=current, step=step
            )
            logger.error(
                f"{error.message}. Schema left at v{current}"
                + (f", backup at {result.backup_path.name}" if result.backup_path else "")
            )
            result.error = error.message
            return result

        result.applied = steps
        result.to_version = self.target_version
        logger.info(f"Schema migrated to v{self.target_version}")
        return result

    def backup(self, version: int) -> Optional[Path]:
        """Best-effort copy of the database before migrating. None on failure."""
        target = self.backup_dir / backup_filename(version)
        try:
            self.db.backup_to(target)
        except OSError as e:
            logger.error(f"Pre-migration backup failed: {e}")
            return None
        logger.info(f"Wrote pre-migration backup {target.name}")
        return target

    def prune_backups(self, keep: int = DEFAULT_BACKUP_RETENTION) -> List[Path]:
        """
        Delete all but the *keep* newest backups, by modification time.

        Returns:
            The paths that were removed.
        """
        removed: List[Path] = []
        try:
            backups = sorted(
                self.backup_dir.glob(BACKUP_GLOB),
                key=lambda p: p.stat().st_mtime,
                reverse=True,
            )
        except OSError as e:
            logger.warning(f"Could not list backups for pruning: {e}")
            return removed

        for path in backups[keep:]:
            try:
                path.unlink()
                removed.append(path)
            except OSError as e:
                logger.warning(f"Could not remove old backup {path.name}: {e}")
        if removed:
            logger.info(f"Pruned {len(removed)} old backup(s)")
        return removed

    # --- steps ---

    def _step_1_add_columns(self) -> None:
        for table, columns in ADDED_COLUMNS.items():
            if not self.db.table_exists(table):
                continue
            for column, sql_type in columns:
                if add_column(self.db, table, column, sql_type):
                    logger.debug(f"Added column {table}.{column}")

    def _step_2_add_tables(self) -> None:
        for table in ADDED_TABLES:
            self.db.execute(get_table(table).create_sql())

    def _step_3_add_foreign_keys(self) -> None:
        # Parents first: deleting an orphaned unit can orphan its tenants
        for spec in CATALOG:
            if not spec.foreign_keys or not self.db.table_exists(spec.table):
                continue
            if self.db.foreign_key_count(spec.table) > 0:
                continue
            self._clean_orphans(spec)
            copied = rebuild_table(self.db, spec)
            logger.info(f"Rebuilt {spec.table} with foreign keys ({copied} rows)")

    def _clean_orphans(self, spec: TableSpec) -> None:
        for fk in spec.foreign_keys:
            orphan = (
                f"{fk.column} IS NOT NULL AND "
                f"{fk.column} NOT IN (SELECT id FROM {fk.parent})"
            )
            if fk.cascades:
                cursor = self.db.execute(f"DELETE FROM {spec.table} WHERE {orphan}")
                verb = "Deleted"
            else:
                cursor = self.db.execute(
                    f"UPDATE {spec.table} SET {fk.column} = NULL WHERE {orphan}"
                )
                verb = "Cleared"
            if cursor.rowcount:
                logger.warning(
                    f"{verb} {cursor.rowcount} orphaned {spec.table} row(s) "
                    f"with missing {fk.parent} ({fk.column})"
                )

    def _step_4_encrypt_pii(self) -> None:
        if not self.codec.has_key:
            logger.warning("No encryption key loaded, leaving contact fields as plaintext")
            return

        for spec in CATALOG:
            if not spec.pii_columns or not self.db.table_exists(spec.table):
                continue
            cols = ", ".join(spec.pii_columns)
            rows = self.db.fetchall(f"SELECT id, {cols} FROM {spec.table}")
            updated = 0
            for row in rows:
                changes = {}
                for column in spec.pii_columns:
                    value = row[column]
                    if value in (None, "") or is_envelope(value):
                        continue
                    changes[column] = self.codec.encrypt(value)
                if not changes:
                    continue
                assignments = ", ".join(f"{c} = ?" for c in changes)
                self.db.execute(
                    f"UPDATE {spec.table} SET {assignments} WHERE id = ?",
                    (*changes.values(), row["id"]),
                )
                updated += 1
            if updated:
                logger.info(f"Encrypted contact fields on {updated} {spec.table} row(s)")

    def _step_5_add_indexes(self) -> None:
        for spec in CATALOG:
            if not self.db.table_exists(spec.table):
                continue
            for sql in spec.index_sql():
                self.db.execute(sql)
