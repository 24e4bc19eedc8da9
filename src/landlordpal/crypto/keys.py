"""Durable encryption key stored beside the database."""

import os
import secrets
import stat
import logging
from pathlib import Path
from typing import Optional

from ..constants import KEY_SIZE
from ..exceptions import KeyManagementError
from .codec import FieldCodec

logger = logging.getLogger(__name__)


class KeyManager:
    """
    Loads or generates the 32-byte key used for PII columns.

    Key file: ``Config.key_path`` (<data_dir>/.landlordpal-key), raw bytes,
    mode 0600.

    - Correct length: used as-is.
    - Wrong length: treated as corrupt, regenerated and overwritten. Data
      sealed under the old key stays unreadable (decrypt returns the
      envelope), which beats refusing to start.
    - Any filesystem failure: degraded mode. No key is held, ``key_error``
      explains why, and PII is written as plaintext until the next start.
    """

    def __init__(self, key_path: Path):
        self._path = Path(key_path)
        self._key: Optional[bytearray] = None
        self._error: Optional[str] = None

    @property
    def path(self) -> Path:
        return self._path

    @property
    def key(self) -> Optional[bytes]:
        return bytes(self._key) if self._key is not None else None

    @property
    def key_error(self) -> Optional[str]:
        """Why no key is loaded, or None when encryption is active."""
        return self._error

    @property
    def is_degraded(self) -> bool:
        return self._key is None

    def load_or_create(self) -> bool:
        """
        Load the key file, creating or repairing it as needed.

        Returns:
            True if a key is loaded, False if running in degraded mode.
        """
        try:
            key = self._read_or_generate()
        except KeyManagementError as e:
            self._key = None
            self._error = e.message
            logger.error(f"Encryption unavailable, PII will be stored unencrypted: {e.message}")
            return False

        self._key = bytearray(key)
        self._error = None
        return True

    def codec(self) -> FieldCodec:
        """Codec bound to the loaded key (pass-through in degraded mode)."""
        return FieldCodec(self.key)

    def forget(self) -> None:
        """Zero our copy of the key (best-effort)."""
        if self._key is not None:
            for i in range(len(self._key)):
                self._key[i] = 0
            self._key = None

    def _read_or_generate(self) -> bytes:
        try:
            if self._path.exists():
                data = self._path.read_bytes()
                if len(data) == KEY_SIZE:
                    logger.debug("Loaded encryption key")
                    return data
                logger.warning(
                    f"Encryption key file has {len(data)} bytes, expected {KEY_SIZE}; "
                    "regenerating. Previously encrypted fields will not be readable."
                )
            else:
                logger.info("No encryption key found, generating a new one")

            key = secrets.token_bytes(KEY_SIZE)
            self._write(key)
            return key
        except OSError as e:
            raise KeyManagementError(
                f"Cannot secure encryption key: {e.strerror or e}", path=str(self._path)
            ) from e

    def _write(self, key: bytes) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(self._path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "wb") as f:
            f.write(key)
        # O_CREAT mode is ignored when overwriting an existing file
        os.chmod(self._path, stat.S_IRUSR | stat.S_IWUSR)
