"""
Backup file format: one JSON array per collection.

The application exports the result of ``load_all()`` and restores it with
``replace_all()``. Items only have to carry a string ``id``; everything
else passes through untouched so older and newer exports both load.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from .constants import CURRENT_SCHEMA_VERSION
from .exceptions import ValidationError
from .storage.records import utc_now_iso

logger = logging.getLogger(__name__)


class BackupItem(BaseModel):
    """Any record with a string id."""

    model_config = ConfigDict(extra="allow")

    id: str


class BackupSnapshot(BaseModel):
    """A full export. Missing collections default to empty."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    properties: list[BackupItem] = Field(default_factory=list)
    units: list[BackupItem] = Field(default_factory=list)
    tenants: list[BackupItem] = Field(default_factory=list)
    expenses: list[BackupItem] = Field(default_factory=list)
    payments: list[BackupItem] = Field(default_factory=list)
    maintenance_requests: list[BackupItem] = Field(default_factory=list)
    activity_logs: list[BackupItem] = Field(default_factory=list)
    vendors: list[BackupItem] = Field(default_factory=list)
    communication_logs: list[BackupItem] = Field(default_factory=list)
    documents: list[BackupItem] = Field(default_factory=list)
    email_templates: list[BackupItem] = Field(default_factory=list)

    @property
    def total(self) -> int:
        return sum(len(items) for items in self.to_state().values())

    def to_state(self) -> dict[str, list[dict[str, Any]]]:
        """Collections keyed by logical table name, as ``replace_all`` expects."""
        return self.model_dump(by_alias=True)


def parse_backup(data: Any) -> BackupSnapshot:
    """
    Validate decoded backup JSON.

    Raises:
        ValidationError: With one message per pydantic error
    """
    try:
        return BackupSnapshot.model_validate(data)
    except PydanticValidationError as e:
        errors = [
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        ]
        raise ValidationError("Backup file is not valid", errors=errors) from e


def load_backup_file(path: str | Path) -> BackupSnapshot:
    """
    Read and validate a backup file.

    Raises:
        ValidationError: Unreadable file, invalid JSON or wrong shape
    """
    path = Path(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ValidationError(f"Cannot read backup file: {e.strerror or e}") from e
    except json.JSONDecodeError as e:
        raise ValidationError("Backup file is not valid JSON", errors=[str(e)]) from e

    snapshot = parse_backup(data)
    logger.info(f"Loaded backup {path.name} with {snapshot.total} records")
    return snapshot


def dump_backup(state: dict[str, list[dict[str, Any]]]) -> dict[str, Any]:
    """Export form of a ``load_all()`` result, stamped with time and schema version."""
    snapshot = parse_backup(state)
    return {
        **snapshot.to_state(),
        "exportedAt": utc_now_iso(),
        "schemaVersion": CURRENT_SCHEMA_VERSION,
    }


def write_backup_file(path: str | Path, state: dict[str, list[dict[str, Any]]]) -> Path:
    path = Path(path)
    path.write_text(json.dumps(dump_backup(state), indent=2), encoding="utf-8")
    return path
