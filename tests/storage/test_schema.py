"""Tests for the schema catalog and row (de)serialization."""

import secrets
import sqlite3

import pytest

from landlordpal.crypto.codec import FieldCodec
from landlordpal.storage.schema import (
    CATALOG,
    LOGICAL_KEYS,
    PROPERTIES,
    TENANTS,
    UNITS,
    EXPENSES,
    create_all_sql,
    decode_json,
    get_table,
)
from landlordpal.types import FieldStatus


@pytest.fixture
def codec():
    return FieldCodec(secrets.token_bytes(32))


@pytest.fixture
def conn():
    c = sqlite3.connect(":memory:")
    c.row_factory = sqlite3.Row
    for sql in create_all_sql():
        c.execute(sql)
    yield c
    c.close()


def store_and_load(conn, spec, record, codec):
    """Write a record through the serializer and read it back."""
    cols = spec.column_names
    conn.execute(
        f"INSERT INTO {spec.table} ({', '.join(cols)}) VALUES ({', '.join('?' for _ in cols)})",
        spec.serialize(record, codec),
    )
    row = conn.execute(f"SELECT * FROM {spec.table} WHERE id = ?", (record["id"],)).fetchone()
    return spec.deserialize(row, codec)


# =============================================================================
# CATALOG
# =============================================================================

class TestCatalog:
    """Table lookup and ordering."""

    def test_eleven_tables(self):
        assert len(CATALOG) == 11
        assert LOGICAL_KEYS == (
            "properties", "units", "tenants", "vendors", "expenses", "payments",
            "maintenanceRequests", "activityLogs", "communicationLogs",
            "documents", "emailTemplates",
        )

    def test_lookup_by_logical_key_and_sql_name(self):
        assert get_table("maintenanceRequests") is get_table("maintenance_requests")
        assert get_table("emailTemplates").table == "email_templates"

    def test_unknown_table(self):
        assert get_table("landlords") is None
        assert get_table(None) is None

    def test_parents_before_children(self):
        position = {spec.table: i for i, spec in enumerate(CATALOG)}
        for spec in CATALOG:
            for fk in spec.foreign_keys:
                assert position[fk.parent] < position[spec.table]

    def test_ddl_matches_column_list(self, conn):
        for spec in CATALOG:
            declared = [r["name"] for r in conn.execute(f"PRAGMA table_info({spec.table})")]
            assert tuple(declared) == spec.column_names

    def test_pii_columns(self):
        assert TENANTS.pii_columns == ("email", "phone")
        assert get_table("vendors").pii_columns == ("phone", "email")
        assert PROPERTIES.pii_columns == ()

    def test_updated_at_presence(self):
        assert PROPERTIES.has_updated_at
        assert not get_table("activityLogs").has_updated_at

    def test_index_sql_covers_foreign_keys(self):
        sql = " ".join(UNITS.index_sql())
        assert "units(propertyId)" in sql
        assert "entityType, entityId" in " ".join(get_table("documents").index_sql())


# =============================================================================
# ROUND TRIP
# =============================================================================

class TestRoundTrip:
    """deserialize(serialize(r)) == r with absent optionals staying absent."""

    def test_property_all_fields(self, conn, codec, factory):
        record = factory.property(
            propertyType="multi_family",
            sqft=4200,
            amenities=["laundry", "parking"],
            purchasePrice=450000.0,
            purchaseDate="2019-06-01",
            insuranceProvider="Acme Mutual",
            insurancePolicyNumber="POL-1",
            insuranceExpiry="2025-01-01",
            notes="Corner lot",
        )
        assert store_and_load(conn, PROPERTIES, record, codec) == record

    def test_fractional_integer_column_not_truncated(self, conn, codec, factory):
        record = factory.property(sqft=1250.5)
        assert store_and_load(conn, PROPERTIES, record, codec)["sqft"] == 1250.5

    def test_integral_value_stays_int(self, conn, codec, factory):
        loaded = store_and_load(conn, UNITS, factory.unit(sqft=850), codec)
        assert loaded["sqft"] == 850
        assert isinstance(loaded["sqft"], int)

    def test_property_minimal(self, conn, codec, factory):
        record = factory.property()
        assert store_and_load(conn, PROPERTIES, record, codec) == record

    def test_none_normalizes_to_absent(self, conn, codec, factory):
        record = factory.property(notes=None, amenities=None)
        loaded = store_and_load(conn, PROPERTIES, record, codec)
        assert "notes" not in loaded
        assert "amenities" not in loaded

    def test_blank_optional_string_absent(self, conn, codec, factory):
        loaded = store_and_load(conn, PROPERTIES, factory.property(notes=""), codec)
        assert "notes" not in loaded

    def test_unit_required_bool(self, conn, codec, factory):
        loaded = store_and_load(conn, UNITS, factory.unit(available=False), codec)
        assert loaded["available"] is False

    def test_expense_optional_bool(self, conn, codec, factory):
        loaded = store_and_load(conn, EXPENSES, factory.expense(recurring=True), codec)
        assert loaded["recurring"] is True
        loaded = store_and_load(conn, EXPENSES, factory.expense(id="e2"), codec)
        assert "recurring" not in loaded

    def test_tenant_json_and_pii(self, conn, codec, factory):
        record = factory.tenant(
            email="a@b.com",
            phone="555-123-4567",
            rentHistory=[{"date": "2023-01-01", "amount": 1100}],
            leaseHistory=[{"start": "2023-01-01", "end": "2023-12-31"}],
        )
        assert store_and_load(conn, TENANTS, record, codec) == record

    def test_pii_stored_as_envelope(self, conn, codec, factory):
        row = TENANTS.serialize(factory.tenant(email="a@b.com"), codec)
        email = row[TENANTS.column_names.index("email")]
        assert email.startswith("ENC:")


class TestDeserializeDegrades:
    """Bad stored values never break a row."""

    def test_bad_json_is_absent(self, conn, codec, factory):
        store_and_load(conn, PROPERTIES, factory.property(), codec)
        conn.execute("UPDATE properties SET amenities = '{not json' WHERE id = 'p1'")
        row = conn.execute("SELECT * FROM properties WHERE id = 'p1'").fetchone()

        loaded = PROPERTIES.deserialize(row, codec)
        assert "amenities" not in loaded
        assert loaded["name"] == "Maple Court"

    def test_legacy_plaintext_pii(self, conn, codec, factory):
        store_and_load(conn, TENANTS, factory.tenant(), codec)
        conn.execute("UPDATE tenants SET email = 'old@plain.com' WHERE id = 't1'")
        row = conn.execute("SELECT * FROM tenants WHERE id = 't1'").fetchone()
        assert TENANTS.deserialize(row, codec)["email"] == "old@plain.com"

    def test_decode_json_statuses(self):
        assert decode_json('["a"]').status is FieldStatus.PARSED
        assert decode_json("nope").status is FieldStatus.ABSENT
        assert decode_json(None).status is FieldStatus.ABSENT
