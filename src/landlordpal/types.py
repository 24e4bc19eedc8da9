"""Core result types for LandlordPal storage operations."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

__all__ = [
    # Enums
    "FieldStatus",
    # Data classes
    "FieldResult",
    "SkippedOperation",
    "StoredAttachment",
    # Result types
    "MigrationResult",
    "ReplaceResult",
    "BatchResult",
]


class FieldStatus(Enum):
    """What happened to a single field crossing the serialization boundary."""
    ENCRYPTED = "encrypted"      # Plaintext turned into an envelope
    DECRYPTED = "decrypted"      # Envelope turned back into plaintext
    PASSTHROUGH = "passthrough"  # Value returned unchanged (no key, empty, legacy plaintext)
    FAILED = "failed"            # Crypto or parse failure, stored value returned
    PARSED = "parsed"            # JSON column decoded
    ABSENT = "absent"            # NULL / blank / unparseable, field omitted


@dataclass(frozen=True)
class FieldResult:
    """Outcome of encoding or decoding one column value."""
    value: Any
    status: FieldStatus

    @property
    def ok(self) -> bool:
        return self.status is not FieldStatus.FAILED


@dataclass
class MigrationResult:
    """Outcome of a migration run."""
    from_version: int
    to_version: int
    applied: List[int] = field(default_factory=list)
    backup_path: Optional[Path] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def migrated(self) -> bool:
        return self.ok and bool(self.applied)


@dataclass
class ReplaceResult:
    """Outcome of a full-state replace."""
    incoming: int
    existing: int
    refused: bool = False
    reason: Optional[str] = None

    @property
    def ok(self) -> bool:
        return not self.refused


@dataclass(frozen=True)
class SkippedOperation:
    """A batch operation that was not applied, and why."""
    index: int
    kind: str
    table: Optional[str]
    reason: str


@dataclass
class BatchResult:
    """Outcome of a batch execution. Skipped operations did not abort the batch."""
    applied: int = 0
    rows_affected: int = 0
    skipped: List[SkippedOperation] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.skipped

    def to_dict(self) -> Dict[str, Any]:
        return {
            "applied": self.applied,
            "rows_affected": self.rows_affected,
            "skipped": [
                {"index": s.index, "kind": s.kind, "table": s.table, "reason": s.reason}
                for s in self.skipped
            ],
        }


@dataclass(frozen=True)
class StoredAttachment:
    """A file copied into the managed documents directory."""
    filename: str
    original_name: str
    size: int
    mime_type: str
