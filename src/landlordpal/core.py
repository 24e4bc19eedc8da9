"""
LandlordStore - the one object the application talks to.

Usage:
    with LandlordStore() as store:
        store.initialize()
        state = store.load_all()
        store.execute_batch([{"type": "delete", "table": "tenants", "id": "t1"}])

Each instance owns its connection, key and statement cache; nothing is
shared at module level, so tests (or two data directories) can run side
by side.
"""

import logging
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from .config import Config
from .crypto import FieldCodec, KeyManager
from .exceptions import StorageError
from .storage import (
    AttachmentStore,
    Database,
    MigrationEngine,
    RecordStore,
    StatementCache,
)
from .storage.schema import create_all_sql
from .types import BatchResult, MigrationResult, ReplaceResult, StoredAttachment

logger = logging.getLogger(__name__)


class LandlordStore:
    """Local embedded data store: encrypted PII, versioned schema, atomic writes."""

    def __init__(self, config: Optional[Config] = None):
        self.config = config
        self._db: Optional[Database] = None
        self._keys: Optional[KeyManager] = None
        self._records: Optional[RecordStore] = None
        self._attachments: Optional[AttachmentStore] = None
        self._migrations: Optional[MigrationEngine] = None
        self._last_migration: Optional[MigrationResult] = None

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def initialize(self, data_dir: Optional[Union[str, Path]] = None) -> Optional[MigrationResult]:
        """
        Open (or create) the store.

        Order matters: the key is loaded before migrating so legacy
        plaintext contact fields can be encrypted, and foreign keys are
        switched on only after migration has rebuilt the tables.

        Args:
            data_dir: Overrides the configured data directory

        Returns:
            The migration result, or None if the store was already open.
        """
        if self._db is not None:
            return None

        if data_dir is not None and self.config is not None:
            self.config = replace(self.config, data_dir=Path(data_dir))
        elif data_dir is not None:
            self.config = Config(data_dir=Path(data_dir))
        elif self.config is None:
            self.config = Config()
        self.config.ensure_directories()

        self._keys = KeyManager(self.config.key_path)
        self._keys.load_or_create()
        codec = self._keys.codec()

        db = Database(self.config.db_path)
        db.connect()
        try:
            for sql in create_all_sql():
                db.execute(sql)

            self._migrations = MigrationEngine(db, codec, backup_dir=self.config.data_dir)
            result = self._migrations.run()
            self._migrations.prune_backups(keep=self.config.backup_retention)

            db.set_foreign_keys(True)
        except Exception:
            db.close()
            raise

        self._db = db
        self._records = RecordStore(db, codec, StatementCache())
        self._attachments = AttachmentStore(self.config.documents_dir)
        self._last_migration = result

        if result.error:
            logger.error(f"Store opened on schema v{result.from_version} after a failed migration")
        logger.info(f"Store ready at {self.config.data_dir} (schema v{self.schema_version})")
        return result

    def close(self) -> None:
        """Close the connection and forget the key. Safe to call twice."""
        if self._db is not None:
            self._db.close()
            self._db = None
            logger.debug("Store closed")
        if self._keys is not None:
            self._keys.forget()
        self._records = None
        self._attachments = None
        self._migrations = None

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()

    # =========================================================================
    # STATE
    # =========================================================================

    @property
    def is_open(self) -> bool:
        return self._db is not None

    @property
    def schema_version(self) -> int:
        return self._require(self._migrations).get_version()

    @property
    def last_migration(self) -> Optional[MigrationResult]:
        return self._last_migration

    @property
    def codec(self) -> FieldCodec:
        return self._require(self._records).codec

    @property
    def database(self) -> Database:
        return self._require(self._db)

    def get_key_error(self) -> Optional[str]:
        """Why PII is not being encrypted, or None when it is."""
        return self._keys.key_error if self._keys is not None else None

    def list_backups(self) -> List[Path]:
        """Retained pre-migration backups, newest first."""
        config = self._require(self.config)
        return sorted(
            config.data_dir.glob(config.backup_glob),
            key=lambda p: p.stat().st_mtime,
            reverse=True,
        )

    def _require(self, component):
        if component is None:
            raise StorageError("Store is not initialized", operation="initialize")
        return component

    # =========================================================================
    # RECORDS
    # =========================================================================

    def load_all(self) -> Dict[str, List[Dict[str, Any]]]:
        return self._require(self._records).load_all()

    def counts(self) -> Dict[str, int]:
        return self._require(self._records).count_all()

    def replace_all(self, snapshot: Mapping[str, Any]) -> ReplaceResult:
        return self._require(self._records).replace_all(snapshot)

    def execute_batch(self, operations: Iterable[Any]) -> BatchResult:
        return self._require(self._records).execute_batch(operations)

    # =========================================================================
    # ATTACHMENTS
    # =========================================================================

    def store_attachment(self, source_path: Union[str, Path]) -> StoredAttachment:
        return self._require(self._attachments).store(source_path)

    def resolve_attachment(self, filename: str) -> Optional[Path]:
        return self._require(self._attachments).resolve(filename)

    def delete_attachment(self, filename: str) -> bool:
        return self._require(self._attachments).delete(filename)
