"""
Record-level reads and writes.

Three entry points, each a single transaction:

- ``load_all``: every table, deserialized, keyed by logical name
- ``replace_all``: wipe and reload every table from a full snapshot,
  refusing to overwrite data with an empty snapshot
- ``execute_batch``: a list of small mutations (upsert, delete,
  deleteWhere, clearField); malformed operations are skipped, valid ones
  commit together
"""

import sqlite3
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union
import logging

from ..crypto.codec import FieldCodec
from ..exceptions import StorageError
from ..logging_config import sanitize_for_logging
from ..types import BatchResult, ReplaceResult, SkippedOperation
from .database import Database
from .schema import CATALOG, TableSpec, get_table
from .statements import StatementCache, TableStatements

logger = logging.getLogger(__name__)


def utc_now_iso() -> str:
    """Current UTC time as ``2024-01-31T12:00:00.000Z``, the format records carry."""
    return (
        datetime.now(timezone.utc)
        .isoformat(timespec="milliseconds")
        .replace("+00:00", "Z")
    )


# =============================================================================
# BATCH OPERATIONS
# =============================================================================


@dataclass
class Upsert:
    table: str
    data: Union[Mapping[str, Any], Sequence[Mapping[str, Any]]]
    kind = "upsert"


@dataclass
class Delete:
    table: str
    ids: Union[str, Sequence[str]]
    kind = "delete"


@dataclass
class DeleteWhere:
    table: str
    column: str
    value: Any
    kind = "deleteWhere"


@dataclass
class ClearField:
    table: str
    field: str
    where_column: str
    where_value: Any
    kind = "clearField"


Operation = Union[Upsert, Delete, DeleteWhere, ClearField]


class InvalidOperation(ValueError):
    """An operation that cannot be applied. Caught per-operation, never escapes a batch."""


def operation_from_dict(op: Mapping[str, Any]) -> Operation:
    """
    Build an operation from its wire form, e.g.
    ``{"type": "delete", "table": "tenants", "id": "t1"}``.

    Raises:
        InvalidOperation: Unknown ``type`` or a required key is missing
    """
    if not isinstance(op, Mapping):
        raise InvalidOperation(f"operation must be an object, got {type(op).__name__}")
    kind = op.get("type")
    try:
        if kind == "upsert":
            return Upsert(op["table"], op["data"])
        if kind == "delete":
            return Delete(op["table"], op["id"])
        if kind == "deleteWhere":
            return DeleteWhere(op["table"], op["column"], op["value"])
        if kind == "clearField":
            return ClearField(op["table"], op["field"], op["whereColumn"], op["whereValue"])
    except KeyError as e:
        raise InvalidOperation(f"{kind} operation missing {e.args[0]!r}") from None
    raise InvalidOperation(f"unknown operation type {sanitize_for_logging(kind)}")


def _as_list(value: Any) -> List[Any]:
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


# =============================================================================
# RECORD STORE
# =============================================================================


class RecordStore:
    """Serializes records through the catalog and runs them against the database."""

    def __init__(self, db: Database, codec: FieldCodec, statements: StatementCache):
        self.db = db
        self.codec = codec
        self.statements = statements

    # --- reads ---

    def load_all(self) -> Dict[str, List[Dict[str, Any]]]:
        """Every record of every table, keyed by logical table name."""
        state: Dict[str, List[Dict[str, Any]]] = {}
        for spec in CATALOG:
            stmts = self.statements.get(spec.key)
            try:
                rows = self.db.fetchall(stmts.select_all)
            except sqlite3.OperationalError as e:
                logger.warning(f"Could not load {spec.table}: {e}")
                state[spec.key] = []
                continue
            state[spec.key] = [spec.deserialize(row, self.codec) for row in rows]

        logger.info(
            "Loaded " + ", ".join(f"{len(v)} {k}" for k, v in state.items())
        )
        return state

    def count(self, table: str) -> int:
        stmts = self.statements.get(table)
        if stmts is None:
            return 0
        try:
            return self.db.fetchone(stmts.count)[0]
        except sqlite3.OperationalError:
            return 0

    def count_all(self) -> Dict[str, int]:
        return {spec.key: self.count(spec.key) for spec in CATALOG}

    # --- full replace ---

    def replace_all(self, snapshot: Mapping[str, Any]) -> ReplaceResult:
        """
        Replace every table with the contents of *snapshot*.

        An empty snapshot over a non-empty database is refused and nothing
        is written. Foreign keys are off for the duration so the order of
        rows within the snapshot does not matter.

        Raises:
            StorageError: The database rejected a row; nothing was changed
        """
        if not isinstance(snapshot, Mapping):
            snapshot = {}
        collections, unknown = self._collect_snapshot(snapshot)
        if unknown:
            logger.warning(f"replace_all: ignoring unknown collections {unknown}")

        incoming = sum(len(records) for records in collections.values())
        existing = sum(self.count_all().values())

        if incoming == 0 and existing > 0:
            reason = f"refusing to replace {existing} existing records with an empty snapshot"
            logger.warning(f"replace_all: {reason}")
            return ReplaceResult(incoming=0, existing=existing, refused=True, reason=reason)

        # The pragma is a no-op inside a transaction, so toggle it outside
        fk_was_on = self.db.foreign_keys_enabled()
        self.db.set_foreign_keys(False)
        try:
            with self.db.transaction():
                for spec in reversed(CATALOG):
                    self.db.execute(self.statements.get(spec.key).delete_all)
                for spec in CATALOG:
                    records = collections.get(spec.key)
                    if records:
                        self._upsert_records(self.statements.get(spec.key), records)
        except (sqlite3.Error, InvalidOperation) as e:
            logger.error(f"replace_all rolled back: {e}")
            raise StorageError(f"Replace failed: {e}", operation="replace_all") from e
        finally:
            if fk_was_on:
                self.db.set_foreign_keys(True)

        logger.info(f"Replaced {existing} records with {incoming}")
        return ReplaceResult(incoming=incoming, existing=existing)

    @staticmethod
    def _collect_snapshot(snapshot: Mapping[str, Any]):
        """
        Group snapshot lists by logical key.

        Collections may be keyed by logical name (``maintenanceRequests``)
        or SQL table name (``maintenance_requests``); both spellings of one
        collection are merged. Non-list values count as empty.

        Returns:
            (records by logical key, unrecognized keys)
        """
        collections: Dict[str, List[Any]] = {}
        unknown = []
        for name, records in snapshot.items():
            spec = get_table(name)
            if spec is None:
                unknown.append(name)
                continue
            if isinstance(records, list):
                collections.setdefault(spec.key, []).extend(records)
        return collections, unknown

    def _upsert_records(self, stmts: TableStatements, records: Iterable[Any]) -> int:
        rows = []
        for record in records:
            if not isinstance(record, Mapping) or not isinstance(record.get("id"), str):
                raise InvalidOperation(f"{stmts.spec.key} record without a string id")
            try:
                rows.append(stmts.spec.serialize(record, self.codec))
            except (TypeError, ValueError) as e:
                raise InvalidOperation(f"{stmts.spec.key} record {record['id']!r}: {e}") from e
        if not rows:
            return 0
        return self.db.executemany(stmts.upsert, rows).rowcount

    # --- batches ---

    def execute_batch(self, operations: Iterable[Any]) -> BatchResult:
        """
        Apply *operations* in order inside one transaction.

        Operations may be dataclasses (``Upsert`` etc.) or their dict wire
        form. Anything malformed is skipped and reported on the result.

        Raises:
            StorageError: The database rejected an operation; the whole
                batch was rolled back
        """
        result = BatchResult()
        try:
            with self.db.transaction():
                for index, raw in enumerate(operations):
                    op = None
                    try:
                        op = operation_from_dict(raw) if isinstance(raw, Mapping) else raw
                        result.rows_affected += self._apply(op)
                        result.applied += 1
                    except InvalidOperation as e:
                        skipped = SkippedOperation(
                            index=index,
                            kind=_raw_kind(raw),
                            table=_raw_table(raw),
                            reason=str(e),
                        )
                        result.skipped.append(skipped)
                        logger.warning(
                            f"Skipping batch operation {index} ({skipped.kind}): {e}"
                        )
        except sqlite3.Error as e:
            logger.error(f"Batch rolled back: {e}")
            raise StorageError(f"Batch failed: {e}", operation="execute_batch") from e

        if result.applied or result.skipped:
            logger.debug(
                f"Batch applied {result.applied} operation(s), "
                f"{result.rows_affected} row(s), skipped {len(result.skipped)}"
            )
        return result

    def _apply(self, op: Any) -> int:
        if not isinstance(op, (Upsert, Delete, DeleteWhere, ClearField)):
            raise InvalidOperation(f"unsupported operation {type(op).__name__}")

        stmts = self.statements.get(op.table)
        if stmts is None:
            raise InvalidOperation(f"unknown table {sanitize_for_logging(op.table)}")
        spec = stmts.spec

        if isinstance(op, Upsert):
            return self._upsert_records(stmts, _as_list(op.data))

        if isinstance(op, Delete):
            ids = [(i,) for i in _as_list(op.ids)]
            if not ids:
                return 0
            return self.db.executemany(stmts.delete, ids).rowcount

        if isinstance(op, DeleteWhere):
            self._require_column(spec, op.column)
            cursor = self.db.execute(
                f"DELETE FROM {spec.table} WHERE {op.column} = ?", (op.value,)
            )
            return cursor.rowcount

        self._require_column(spec, op.field)
        self._require_column(spec, op.where_column)
        if spec.column(op.field).required:
            raise InvalidOperation(f"{spec.key}.{op.field} is required and cannot be cleared")
        assignments = f"{op.field} = NULL"
        params: tuple = (op.where_value,)
        if spec.has_updated_at:
            assignments += ", updatedAt = ?"
            params = (utc_now_iso(), op.where_value)
        cursor = self.db.execute(
            f"UPDATE {spec.table} SET {assignments} WHERE {op.where_column} = ?", params
        )
        return cursor.rowcount

    @staticmethod
    def _require_column(spec: TableSpec, column: Any) -> None:
        if not isinstance(column, str) or not spec.has_column(column):
            raise InvalidOperation(
                f"unknown column {sanitize_for_logging(column)} on {spec.key}"
            )


def _raw_kind(raw: Any) -> str:
    if isinstance(raw, Mapping):
        return str(raw.get("type"))
    return getattr(raw, "kind", type(raw).__name__)


def _raw_table(raw: Any) -> Optional[str]:
    table = raw.get("table") if isinstance(raw, Mapping) else getattr(raw, "table", None)
    return table if isinstance(table, str) else None
