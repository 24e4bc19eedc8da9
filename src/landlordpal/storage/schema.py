"""
Static description of every table the store owns.

Each TableSpec carries:
- the logical key the UI uses (``maintenanceRequests``) and the SQL table
  name (``maintenance_requests``)
- the ordered column list, which drives both CREATE TABLE and the cached
  upsert statement
- a DDL template with the constraints of the current schema version
- a serializer (record dict -> row tuple) and deserializer (row -> dict)

Records are plain dicts keyed by camelCase field names; SQL columns use
the same names. Serializers and deserializers are pure: the only
collaborator they take is the FieldCodec for PII columns.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from ..crypto.codec import FieldCodec
from ..types import FieldResult, FieldStatus

logger = logging.getLogger(__name__)

TEXT = "text"
INT = "int"
REAL = "real"
BOOL = "bool"
JSON = "json"
PII = "pii"


@dataclass(frozen=True)
class Column:
    name: str
    kind: str = TEXT
    required: bool = False


def decode_json(value: Any) -> FieldResult:
    """Decode a JSON text column. Unparseable text degrades to ABSENT."""
    if value is None or value == "":
        return FieldResult(None, FieldStatus.ABSENT)
    try:
        return FieldResult(json.loads(value), FieldStatus.PARSED)
    except (TypeError, ValueError):
        return FieldResult(None, FieldStatus.ABSENT)


def _encode_value(column: Column, value: Any, codec: FieldCodec) -> Any:
    if value is None:
        return None
    if column.kind == BOOL:
        return 1 if value else 0
    if column.kind == JSON:
        return json.dumps(value)
    if column.kind == PII:
        return codec.encrypt(value)
    # INT binds as-is; INTEGER affinity stores integral values as integers
    return value


@dataclass(frozen=True)
class ForeignKey:
    """A child column and what happens to it when the parent row goes away."""
    column: str
    parent: str
    on_delete: str = "CASCADE"  # or "SET NULL"

    @property
    def cascades(self) -> bool:
        return self.on_delete == "CASCADE"


@dataclass(frozen=True)
class TableSpec:
    key: str
    table: str
    columns: Tuple[Column, ...]
    ddl: str  # column/constraint body, formatted into CREATE TABLE
    foreign_keys: Tuple[ForeignKey, ...] = ()
    # Extra lookup indexes beyond the FK columns, as column tuples
    indexes: Tuple[Tuple[str, ...], ...] = ()

    def index_sql(self) -> List[str]:
        """CREATE INDEX statements for FK columns and declared lookups."""
        wanted = [(fk.column,) for fk in self.foreign_keys] + list(self.indexes)
        return [
            f"CREATE INDEX IF NOT EXISTS idx_{self.table}_{'_'.join(cols)} "
            f"ON {self.table}({', '.join(cols)})"
            for cols in wanted
        ]

    @property
    def column_names(self) -> Tuple[str, ...]:
        return tuple(c.name for c in self.columns)

    @property
    def has_updated_at(self) -> bool:
        return self.has_column("updatedAt")

    @property
    def pii_columns(self) -> Tuple[str, ...]:
        return tuple(c.name for c in self.columns if c.kind == PII)

    def has_column(self, name: str) -> bool:
        return name in self.column_names

    def column(self, name: str) -> Optional[Column]:
        for c in self.columns:
            if c.name == name:
                return c
        return None

    def create_sql(self, name: Optional[str] = None) -> str:
        """CREATE TABLE statement, optionally under another name (table rebuilds)."""
        return f"CREATE TABLE IF NOT EXISTS {name or self.table} ({self.ddl})"

    def serialize(self, record: Mapping[str, Any], codec: FieldCodec) -> Tuple[Any, ...]:
        """Flatten a record into a row tuple in column order."""
        return tuple(_encode_value(c, record.get(c.name), codec) for c in self.columns)

    def deserialize(self, row: Mapping[str, Any], codec: FieldCodec) -> Dict[str, Any]:
        """
        Rebuild a record from a row.

        NULL and blank optional values are omitted so callers never have to
        tell "" from missing. Required columns are always present.
        """
        keys = row.keys()
        record: Dict[str, Any] = {}
        for c in self.columns:
            if c.name not in keys:
                continue
            value = row[c.name]

            if c.kind == JSON:
                result = decode_json(value)
                if result.status is FieldStatus.PARSED:
                    record[c.name] = result.value
                elif value not in (None, ""):
                    logger.debug(f"Dropping unparseable JSON in {self.table}.{c.name}")
                continue
            if c.kind == PII:
                value = codec.decrypt(value)
            elif c.kind == BOOL and value is not None:
                value = bool(value)

            if not c.required and (value is None or value == ""):
                continue
            record[c.name] = value
        return record


def _cols(*specs: Any) -> Tuple[Column, ...]:
    """Build columns from (name, kind, required) tuples or bare names."""
    out: List[Column] = []
    for spec in specs:
        if isinstance(spec, str):
            out.append(Column(spec))
        else:
            out.append(Column(*spec))
    return tuple(out)


R = True  # required

PROPERTIES = TableSpec(
    key="properties",
    table="properties",
    columns=_cols(
        ("id", TEXT, R), ("name", TEXT, R), ("address", TEXT, R), ("city", TEXT, R),
        ("state", TEXT, R), ("zip", TEXT, R), "propertyType", ("sqft", INT),
        ("amenities", JSON), ("purchasePrice", REAL), "purchaseDate",
        "insuranceProvider", "insurancePolicyNumber", "insuranceExpiry", "notes",
        ("createdAt", TEXT, R), ("updatedAt", TEXT, R),
    ),
    ddl="""
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        address TEXT NOT NULL,
        city TEXT NOT NULL,
        state TEXT NOT NULL,
        zip TEXT NOT NULL,
        propertyType TEXT,
        sqft INTEGER,
        amenities TEXT,
        purchasePrice REAL,
        purchaseDate TEXT,
        insuranceProvider TEXT,
        insurancePolicyNumber TEXT,
        insuranceExpiry TEXT,
        notes TEXT,
        createdAt TEXT NOT NULL,
        updatedAt TEXT NOT NULL
    """,
)

UNITS = TableSpec(
    key="units",
    table="units",
    columns=_cols(
        ("id", TEXT, R), ("propertyId", TEXT, R), ("name", TEXT, R),
        ("bedrooms", INT, R), ("bathrooms", REAL, R), ("sqft", INT),
        ("monthlyRent", REAL, R), ("deposit", REAL), ("available", BOOL, R), "notes",
        ("createdAt", TEXT, R), ("updatedAt", TEXT, R),
    ),
    ddl="""
        id TEXT PRIMARY KEY,
        propertyId TEXT NOT NULL REFERENCES properties(id) ON DELETE CASCADE,
        name TEXT NOT NULL,
        bedrooms INTEGER NOT NULL DEFAULT 0,
        bathrooms REAL NOT NULL DEFAULT 0,
        sqft INTEGER,
        monthlyRent REAL NOT NULL DEFAULT 0,
        deposit REAL,
        available INTEGER NOT NULL DEFAULT 1,
        notes TEXT,
        createdAt TEXT NOT NULL,
        updatedAt TEXT NOT NULL
    """,
    foreign_keys=(ForeignKey("propertyId", "properties"),),
)

TENANTS = TableSpec(
    key="tenants",
    table="tenants",
    columns=_cols(
        ("id", TEXT, R), ("unitId", TEXT, R), ("propertyId", TEXT, R), ("name", TEXT, R),
        ("email", PII), ("phone", PII), ("leaseStart", TEXT, R), ("leaseEnd", TEXT, R),
        ("monthlyRent", REAL, R), ("deposit", REAL), ("depositReturned", REAL),
        "depositDeductions", ("gracePeriodDays", INT), ("lateFeeAmount", REAL),
        "moveInDate", "moveOutDate", "moveInNotes", "moveOutNotes", "notes",
        ("rentHistory", JSON), ("leaseHistory", JSON),
        ("createdAt", TEXT, R), ("updatedAt", TEXT, R),
    ),
    ddl="""
        id TEXT PRIMARY KEY,
        unitId TEXT NOT NULL REFERENCES units(id) ON DELETE CASCADE,
        propertyId TEXT NOT NULL REFERENCES properties(id) ON DELETE CASCADE,
        name TEXT NOT NULL,
        email TEXT,
        phone TEXT,
        leaseStart TEXT NOT NULL,
        leaseEnd TEXT NOT NULL,
        monthlyRent REAL NOT NULL DEFAULT 0,
        deposit REAL,
        depositReturned REAL,
        depositDeductions TEXT,
        gracePeriodDays INTEGER,
        lateFeeAmount REAL,
        moveInDate TEXT,
        moveOutDate TEXT,
        moveInNotes TEXT,
        moveOutNotes TEXT,
        notes TEXT,
        rentHistory TEXT,
        leaseHistory TEXT,
        createdAt TEXT NOT NULL,
        updatedAt TEXT NOT NULL
    """,
    foreign_keys=(
        ForeignKey("unitId", "units"),
        ForeignKey("propertyId", "properties"),
    ),
)

VENDORS = TableSpec(
    key="vendors",
    table="vendors",
    columns=_cols(
        ("id", TEXT, R), ("name", TEXT, R), ("phone", PII), ("email", PII),
        "specialty", "notes", ("createdAt", TEXT, R), ("updatedAt", TEXT, R),
    ),
    ddl="""
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        phone TEXT,
        email TEXT,
        specialty TEXT,
        notes TEXT,
        createdAt TEXT NOT NULL,
        updatedAt TEXT NOT NULL
    """,
)

EXPENSES = TableSpec(
    key="expenses",
    table="expenses",
    columns=_cols(
        ("id", TEXT, R), ("propertyId", TEXT, R), "unitId", ("category", TEXT, R),
        ("amount", REAL, R), ("date", TEXT, R), ("description", TEXT, R),
        ("recurring", BOOL), "vendorId", ("createdAt", TEXT, R), ("updatedAt", TEXT, R),
    ),
    ddl="""
        id TEXT PRIMARY KEY,
        propertyId TEXT NOT NULL REFERENCES properties(id) ON DELETE CASCADE,
        unitId TEXT REFERENCES units(id) ON DELETE SET NULL,
        category TEXT NOT NULL,
        amount REAL NOT NULL DEFAULT 0,
        date TEXT NOT NULL,
        description TEXT NOT NULL,
        recurring INTEGER,
        vendorId TEXT REFERENCES vendors(id) ON DELETE SET NULL,
        createdAt TEXT NOT NULL,
        updatedAt TEXT NOT NULL
    """,
    foreign_keys=(
        ForeignKey("propertyId", "properties"),
        ForeignKey("unitId", "units", "SET NULL"),
        ForeignKey("vendorId", "vendors", "SET NULL"),
    ),
)

PAYMENTS = TableSpec(
    key="payments",
    table="payments",
    columns=_cols(
        ("id", TEXT, R), ("tenantId", TEXT, R), ("unitId", TEXT, R), ("propertyId", TEXT, R),
        ("amount", REAL, R), ("date", TEXT, R), ("periodStart", TEXT, R),
        ("periodEnd", TEXT, R), "method", "notes", ("lateFee", REAL),
        ("createdAt", TEXT, R), ("updatedAt", TEXT, R),
    ),
    ddl="""
        id TEXT PRIMARY KEY,
        tenantId TEXT NOT NULL REFERENCES tenants(id) ON DELETE CASCADE,
        unitId TEXT NOT NULL REFERENCES units(id) ON DELETE CASCADE,
        propertyId TEXT NOT NULL REFERENCES properties(id) ON DELETE CASCADE,
        amount REAL NOT NULL DEFAULT 0,
        date TEXT NOT NULL,
        periodStart TEXT NOT NULL,
        periodEnd TEXT NOT NULL,
        method TEXT,
        notes TEXT,
        lateFee REAL,
        createdAt TEXT NOT NULL,
        updatedAt TEXT NOT NULL
    """,
    foreign_keys=(
        ForeignKey("tenantId", "tenants"),
        ForeignKey("unitId", "units"),
        ForeignKey("propertyId", "properties"),
    ),
)

MAINTENANCE_REQUESTS = TableSpec(
    key="maintenanceRequests",
    table="maintenance_requests",
    columns=_cols(
        ("id", TEXT, R), ("propertyId", TEXT, R), "unitId", "tenantId",
        ("title", TEXT, R), ("description", TEXT, R), ("priority", TEXT, R),
        ("status", TEXT, R), ("category", TEXT, R), "vendorId", ("cost", REAL),
        "scheduledDate", "recurrence", "resolvedAt", "notes",
        ("createdAt", TEXT, R), ("updatedAt", TEXT, R),
    ),
    ddl="""
        id TEXT PRIMARY KEY,
        propertyId TEXT NOT NULL REFERENCES properties(id) ON DELETE CASCADE,
        unitId TEXT REFERENCES units(id) ON DELETE SET NULL,
        tenantId TEXT REFERENCES tenants(id) ON DELETE SET NULL,
        title TEXT NOT NULL,
        description TEXT NOT NULL,
        priority TEXT NOT NULL DEFAULT 'medium',
        status TEXT NOT NULL DEFAULT 'open',
        category TEXT NOT NULL DEFAULT 'other',
        vendorId TEXT REFERENCES vendors(id) ON DELETE SET NULL,
        cost REAL,
        scheduledDate TEXT,
        recurrence TEXT,
        resolvedAt TEXT,
        notes TEXT,
        createdAt TEXT NOT NULL,
        updatedAt TEXT NOT NULL
    """,
    foreign_keys=(
        ForeignKey("propertyId", "properties"),
        ForeignKey("unitId", "units", "SET NULL"),
        ForeignKey("tenantId", "tenants", "SET NULL"),
        ForeignKey("vendorId", "vendors", "SET NULL"),
    ),
)

ACTIVITY_LOGS = TableSpec(
    key="activityLogs",
    table="activity_logs",
    columns=_cols(
        ("id", TEXT, R), ("entityType", TEXT, R), ("entityId", TEXT, R),
        ("note", TEXT, R), ("date", TEXT, R), ("createdAt", TEXT, R),
    ),
    ddl="""
        id TEXT PRIMARY KEY,
        entityType TEXT NOT NULL,
        entityId TEXT NOT NULL,
        note TEXT NOT NULL,
        date TEXT NOT NULL,
        createdAt TEXT NOT NULL
    """,
    indexes=(("entityType", "entityId"),),
)

COMMUNICATION_LOGS = TableSpec(
    key="communicationLogs",
    table="communication_logs",
    columns=_cols(
        ("id", TEXT, R), ("tenantId", TEXT, R), ("propertyId", TEXT, R),
        ("type", TEXT, R), ("date", TEXT, R), ("subject", TEXT, R), "notes",
        ("createdAt", TEXT, R),
    ),
    ddl="""
        id TEXT PRIMARY KEY,
        tenantId TEXT NOT NULL REFERENCES tenants(id) ON DELETE CASCADE,
        propertyId TEXT NOT NULL REFERENCES properties(id) ON DELETE CASCADE,
        type TEXT NOT NULL,
        date TEXT NOT NULL,
        subject TEXT NOT NULL,
        notes TEXT,
        createdAt TEXT NOT NULL
    """,
    foreign_keys=(
        ForeignKey("tenantId", "tenants"),
        ForeignKey("propertyId", "properties"),
    ),
)

DOCUMENTS = TableSpec(
    key="documents",
    table="documents",
    columns=_cols(
        ("id", TEXT, R), ("entityType", TEXT, R), ("entityId", TEXT, R),
        ("filename", TEXT, R), ("originalName", TEXT, R), "mimeType", ("size", INT),
        ("createdAt", TEXT, R),
    ),
    ddl="""
        id TEXT PRIMARY KEY,
        entityType TEXT NOT NULL,
        entityId TEXT NOT NULL,
        filename TEXT NOT NULL,
        originalName TEXT NOT NULL,
        mimeType TEXT,
        size INTEGER,
        createdAt TEXT NOT NULL
    """,
    indexes=(("entityType", "entityId"),),
)

EMAIL_TEMPLATES = TableSpec(
    key="emailTemplates",
    table="email_templates",
    columns=_cols(
        ("id", TEXT, R), ("name", TEXT, R), ("subject", TEXT, R), ("body", TEXT, R),
        ("createdAt", TEXT, R), ("updatedAt", TEXT, R),
    ),
    ddl="""
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        subject TEXT NOT NULL,
        body TEXT NOT NULL,
        createdAt TEXT NOT NULL,
        updatedAt TEXT NOT NULL
    """,
)

# Parents before children, so CREATE TABLE and rebuilds see their targets
CATALOG: Tuple[TableSpec, ...] = (
    PROPERTIES,
    UNITS,
    TENANTS,
    VENDORS,
    EXPENSES,
    PAYMENTS,
    MAINTENANCE_REQUESTS,
    ACTIVITY_LOGS,
    COMMUNICATION_LOGS,
    DOCUMENTS,
    EMAIL_TEMPLATES,
)

_BY_NAME: Dict[str, TableSpec] = {}
for _spec in CATALOG:
    _BY_NAME[_spec.key] = _spec
    _BY_NAME[_spec.table] = _spec

LOGICAL_KEYS: Tuple[str, ...] = tuple(spec.key for spec in CATALOG)

METADATA_DDL = """
CREATE TABLE IF NOT EXISTS metadata (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
)
"""


def get_table(name: str) -> Optional[TableSpec]:
    """Look up a table by logical key (``maintenanceRequests``) or SQL name."""
    if not isinstance(name, str):
        return None
    return _BY_NAME.get(name)


def create_all_sql() -> Sequence[str]:
    """Statements that create every table of the current schema."""
    return [METADATA_DDL] + [spec.create_sql() for spec in CATALOG]
