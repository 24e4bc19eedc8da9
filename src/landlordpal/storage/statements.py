"""Per-table SQL built once from the schema catalog."""

from dataclasses import dataclass
from typing import Dict, Optional

from .schema import CATALOG, TableSpec, get_table


@dataclass(frozen=True)
class TableStatements:
    """The fixed statements the record layer runs against one table."""
    spec: TableSpec
    upsert: str
    delete: str
    select_all: str
    count: str
    delete_all: str


def build_statements(spec: TableSpec) -> TableStatements:
    cols = spec.column_names
    placeholders = ", ".join("?" for _ in cols)
    # ON CONFLICT DO UPDATE keeps the row in place; INSERT OR REPLACE would
    # delete it first and fire ON DELETE CASCADE on its children.
    updates = ", ".join(f"{c} = excluded.{c}" for c in cols if c != "id")
    upsert = (
        f"INSERT INTO {spec.table} ({', '.join(cols)}) VALUES ({placeholders}) "
        f"ON CONFLICT(id) DO UPDATE SET {updates}"
    )
    return TableStatements(
        spec=spec,
        upsert=upsert,
        delete=f"DELETE FROM {spec.table} WHERE id = ?",
        select_all=f"SELECT * FROM {spec.table}",
        count=f"SELECT COUNT(*) FROM {spec.table}",
        delete_all=f"DELETE FROM {spec.table}",
    )


class StatementCache:
    """
    SQL text for every table, keyed by logical key and SQL name.

    The text is fixed per table, so sqlite3's own compiled-statement cache
    (sized by ``STATEMENT_CACHE_SIZE``) hands back the same prepared
    statement on every call.
    """

    def __init__(self):
        self._by_name: Dict[str, TableStatements] = {}
        for spec in CATALOG:
            statements = build_statements(spec)
            self._by_name[spec.key] = statements
            self._by_name[spec.table] = statements

    def get(self, table: str) -> Optional[TableStatements]:
        spec = get_table(table)
        if spec is None:
            return None
        return self._by_name[spec.key]
