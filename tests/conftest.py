"""Shared fixtures for LandlordPal tests."""

import logging
import os
import sqlite3
from pathlib import Path
from types import SimpleNamespace

import pytest

# Allow data directories under /tmp
os.environ["LANDLORDPAL_TESTING"] = "1"

from landlordpal.config import Config
from landlordpal.core import LandlordStore
from landlordpal.logging_config import ROOT_LOGGER_NAME

NOW = "2024-01-01T00:00:00.000Z"


# =============================================================================
# RECORD BUILDERS
# =============================================================================

def make_property(id="p1", **overrides):
    record = {
        "id": id,
        "name": "Maple Court",
        "address": "12 Maple St",
        "city": "Springfield",
        "state": "IL",
        "zip": "62701",
        "createdAt": NOW,
        "updatedAt": NOW,
    }
    record.update(overrides)
    return record


def make_unit(id="u1", propertyId="p1", **overrides):
    record = {
        "id": id,
        "propertyId": propertyId,
        "name": "Unit A",
        "bedrooms": 2,
        "bathrooms": 1.5,
        "monthlyRent": 1200,
        "available": False,
        "createdAt": NOW,
        "updatedAt": NOW,
    }
    record.update(overrides)
    return record


def make_tenant(id="t1", unitId="u1", propertyId="p1", **overrides):
    record = {
        "id": id,
        "unitId": unitId,
        "propertyId": propertyId,
        "name": "Alex Renter",
        "leaseStart": "2024-01-01",
        "leaseEnd": "2024-12-31",
        "monthlyRent": 1200,
        "createdAt": NOW,
        "updatedAt": NOW,
    }
    record.update(overrides)
    return record


def make_vendor(id="v1", **overrides):
    record = {
        "id": id,
        "name": "Quick Plumbing",
        "createdAt": NOW,
        "updatedAt": NOW,
    }
    record.update(overrides)
    return record


def make_expense(id="e1", propertyId="p1", **overrides):
    record = {
        "id": id,
        "propertyId": propertyId,
        "category": "repairs",
        "amount": 250.0,
        "date": "2024-02-01",
        "description": "Fix sink",
        "createdAt": NOW,
        "updatedAt": NOW,
    }
    record.update(overrides)
    return record


def make_payment(id="pay1", tenantId="t1", unitId="u1", propertyId="p1", **overrides):
    record = {
        "id": id,
        "tenantId": tenantId,
        "unitId": unitId,
        "propertyId": propertyId,
        "amount": 1200.0,
        "date": "2024-02-01",
        "periodStart": "2024-02-01",
        "periodEnd": "2024-02-29",
        "createdAt": NOW,
        "updatedAt": NOW,
    }
    record.update(overrides)
    return record


def make_request(id="m1", propertyId="p1", **overrides):
    record = {
        "id": id,
        "propertyId": propertyId,
        "title": "Leaky faucet",
        "description": "Kitchen faucet drips",
        "priority": "medium",
        "status": "open",
        "category": "plumbing",
        "createdAt": NOW,
        "updatedAt": NOW,
    }
    record.update(overrides)
    return record


def make_comm_log(id="c1", tenantId="t1", propertyId="p1", **overrides):
    record = {
        "id": id,
        "tenantId": tenantId,
        "propertyId": propertyId,
        "type": "call",
        "date": "2024-01-05",
        "subject": "Lease renewal",
        "createdAt": NOW,
    }
    record.update(overrides)
    return record


@pytest.fixture
def factory():
    """Record builders with sensible defaults; override any field by keyword."""
    return SimpleNamespace(
        property=make_property,
        unit=make_unit,
        tenant=make_tenant,
        vendor=make_vendor,
        expense=make_expense,
        payment=make_payment,
        request=make_request,
        comm_log=make_comm_log,
    )


# =============================================================================
# STORE FIXTURES
# =============================================================================

@pytest.fixture(autouse=True)
def reset_logging():
    """Drop handlers installed by setup_logging (the CLI binds them to captured streams)."""
    yield
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


@pytest.fixture
def data_dir(tmp_path):
    return tmp_path / "landlordpal"


@pytest.fixture
def config(data_dir):
    return Config(data_dir=data_dir)


@pytest.fixture
def store(config):
    """An initialized store on a fresh data directory."""
    s = LandlordStore(config)
    s.initialize()
    yield s
    s.close()


@pytest.fixture
def seeded_store(store):
    """Store holding one of each core record, plus a communication log for the tenant."""
    store.replace_all({
        "properties": [make_property()],
        "units": [make_unit()],
        "tenants": [make_tenant(email="a@b.com", phone="555-123-4567")],
        "vendors": [make_vendor(email="fix@pipes.com")],
        "expenses": [make_expense(unitId="u1", vendorId="v1")],
        "payments": [make_payment()],
        "maintenanceRequests": [make_request(unitId="u1", tenantId="t1", vendorId="v1")],
        "communicationLogs": [make_comm_log()],
    })
    return store


def raw_value(store, table, column, id):
    """Column value exactly as stored on disk."""
    row = store.database.fetchone(f"SELECT {column} FROM {table} WHERE id = ?", (id,))
    return row[0] if row else None


@pytest.fixture
def raw():
    return raw_value


# =============================================================================
# LEGACY DATABASE
# =============================================================================

# The schema as first released: no foreign keys, no version row
LEGACY_SCHEMA = """
CREATE TABLE properties (
  id TEXT PRIMARY KEY, name TEXT NOT NULL, address TEXT NOT NULL, city TEXT NOT NULL,
  state TEXT NOT NULL, zip TEXT NOT NULL, purchasePrice REAL, purchaseDate TEXT,
  notes TEXT, createdAt TEXT NOT NULL, updatedAt TEXT NOT NULL
);
CREATE TABLE units (
  id TEXT PRIMARY KEY, propertyId TEXT NOT NULL, name TEXT NOT NULL,
  bedrooms INTEGER NOT NULL DEFAULT 0, bathrooms INTEGER NOT NULL DEFAULT 0, sqft INTEGER,
  monthlyRent REAL NOT NULL DEFAULT 0, deposit REAL, available INTEGER NOT NULL DEFAULT 1,
  notes TEXT, createdAt TEXT NOT NULL, updatedAt TEXT NOT NULL
);
CREATE TABLE tenants (
  id TEXT PRIMARY KEY, unitId TEXT NOT NULL, propertyId TEXT NOT NULL, name TEXT NOT NULL,
  email TEXT, phone TEXT, leaseStart TEXT NOT NULL, leaseEnd TEXT NOT NULL,
  monthlyRent REAL NOT NULL DEFAULT 0, deposit REAL, depositReturned REAL,
  depositDeductions TEXT, gracePeriodDays INTEGER, lateFeeAmount REAL, moveInDate TEXT,
  moveOutDate TEXT, moveInNotes TEXT, moveOutNotes TEXT, notes TEXT, rentHistory TEXT,
  createdAt TEXT NOT NULL, updatedAt TEXT NOT NULL
);
CREATE TABLE expenses (
  id TEXT PRIMARY KEY, propertyId TEXT NOT NULL, unitId TEXT, category TEXT NOT NULL,
  amount REAL NOT NULL DEFAULT 0, date TEXT NOT NULL, description TEXT NOT NULL,
  recurring INTEGER DEFAULT 0, vendorId TEXT, createdAt TEXT NOT NULL, updatedAt TEXT NOT NULL
);
CREATE TABLE payments (
  id TEXT PRIMARY KEY, tenantId TEXT NOT NULL, unitId TEXT NOT NULL, propertyId TEXT NOT NULL,
  amount REAL NOT NULL DEFAULT 0, date TEXT NOT NULL, periodStart TEXT NOT NULL,
  periodEnd TEXT NOT NULL, method TEXT, notes TEXT, lateFee REAL,
  createdAt TEXT NOT NULL, updatedAt TEXT NOT NULL
);
CREATE TABLE maintenance_requests (
  id TEXT PRIMARY KEY, propertyId TEXT NOT NULL, unitId TEXT, tenantId TEXT,
  title TEXT NOT NULL, description TEXT NOT NULL, priority TEXT NOT NULL DEFAULT 'medium',
  status TEXT NOT NULL DEFAULT 'open', category TEXT NOT NULL DEFAULT 'other', vendorId TEXT,
  cost REAL, resolvedAt TEXT, notes TEXT, createdAt TEXT NOT NULL, updatedAt TEXT NOT NULL
);
CREATE TABLE activity_logs (
  id TEXT PRIMARY KEY, entityType TEXT NOT NULL, entityId TEXT NOT NULL, note TEXT NOT NULL,
  date TEXT NOT NULL, createdAt TEXT NOT NULL
);
CREATE TABLE vendors (
  id TEXT PRIMARY KEY, name TEXT NOT NULL, phone TEXT, email TEXT, specialty TEXT,
  notes TEXT, createdAt TEXT NOT NULL, updatedAt TEXT NOT NULL
);
"""


def create_legacy_database(db_path: Path) -> Path:
    """
    A first-release database with plaintext contact details and orphans:
    unit u-orphan points at a missing property, expense e1 at a missing vendor.
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(db_path))
    try:
        conn.executescript(LEGACY_SCHEMA)
        conn.execute(
            "INSERT INTO properties (id, name, address, city, state, zip, createdAt, updatedAt) "
            "VALUES ('p1', 'Maple Court', '12 Maple St', 'Springfield', 'IL', '62701', ?, ?)",
            (NOW, NOW),
        )
        conn.execute(
            "INSERT INTO units (id, propertyId, name, monthlyRent, createdAt, updatedAt) "
            "VALUES ('u1', 'p1', 'Unit A', 1200, ?, ?)",
            (NOW, NOW),
        )
        conn.execute(
            "INSERT INTO units (id, propertyId, name, monthlyRent, createdAt, updatedAt) "
            "VALUES ('u-orphan', 'p-gone', 'Ghost', 900, ?, ?)",
            (NOW, NOW),
        )
        conn.execute(
            "INSERT INTO tenants (id, unitId, propertyId, name, email, phone, leaseStart, "
            "leaseEnd, monthlyRent, createdAt, updatedAt) "
            "VALUES ('t1', 'u1', 'p1', 'Alex Renter', 'a@b.com', '555-123-4567', "
            "'2024-01-01', '2024-12-31', 1200, ?, ?)",
            (NOW, NOW),
        )
        conn.execute(
            "INSERT INTO tenants (id, unitId, propertyId, name, leaseStart, leaseEnd, "
            "monthlyRent, createdAt, updatedAt) "
            "VALUES ('t-orphan', 'u-orphan', 'p-gone', 'Ghost Tenant', '2024-01-01', "
            "'2024-12-31', 900, ?, ?)",
            (NOW, NOW),
        )
        conn.execute(
            "INSERT INTO vendors (id, name, phone, email, createdAt, updatedAt) "
            "VALUES ('v1', 'Quick Plumbing', '555-987-6543', 'fix@pipes.com', ?, ?)",
            (NOW, NOW),
        )
        conn.execute(
            "INSERT INTO expenses (id, propertyId, unitId, category, amount, date, "
            "description, vendorId, createdAt, updatedAt) "
            "VALUES ('e1', 'p1', 'u1', 'repairs', 250, '2024-02-01', 'Fix sink', "
            "'v-gone', ?, ?)",
            (NOW, NOW),
        )
        conn.commit()
    finally:
        conn.close()
    return db_path


@pytest.fixture
def legacy_data_dir(data_dir, config):
    create_legacy_database(config.db_path)
    return data_dir


@pytest.fixture
def legacy_database():
    """Builder for a first-release database file at a given path."""
    return create_legacy_database
