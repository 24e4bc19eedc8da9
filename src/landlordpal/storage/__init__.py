"""Storage layer: SQLite connection, schema, migrations and record access."""

from .attachments import AttachmentStore
from .database import Database
from .migrations import MigrationEngine, rebuild_table
from .records import ClearField, Delete, DeleteWhere, RecordStore, Upsert, operation_from_dict
from .schema import CATALOG, TableSpec, get_table
from .statements import StatementCache

__all__ = [
    "AttachmentStore",
    "CATALOG",
    "ClearField",
    "Database",
    "Delete",
    "DeleteWhere",
    "MigrationEngine",
    "RecordStore",
    "StatementCache",
    "TableSpec",
    "Upsert",
    "get_table",
    "operation_from_dict",
    "rebuild_table",
]
