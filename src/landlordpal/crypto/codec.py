"""AES-256-GCM field encryption with a self-identifying text envelope."""

import secrets
import logging
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from ..constants import ENVELOPE_PREFIX, ENVELOPE_SEPARATOR, KEY_SIZE, NONCE_SIZE, TAG_SIZE
from ..exceptions import CryptoError
from ..types import FieldResult, FieldStatus

logger = logging.getLogger(__name__)


def is_envelope(value) -> bool:
    """True if *value* has the ENC:<iv>:<tag>:<ciphertext> shape."""
    if not isinstance(value, str):
        return False
    parts = value.split(ENVELOPE_SEPARATOR)
    return len(parts) == 4 and parts[0] == ENVELOPE_PREFIX


class FieldCodec:
    """
    Encrypts and decrypts individual string columns.

    Envelope format: ENC:<ivHex>:<tagHex>:<ciphertextHex>

    The codec never blocks a write or a load. Without a key, encryption is
    a pass-through; any decryption failure hands back the stored string.
    The ``*_field`` methods report what happened; ``encrypt``/``decrypt``
    return the bare value.
    """

    def __init__(self, key: Optional[bytes] = None):
        """
        Args:
            key: 32-byte AES key, or None for pass-through mode

        Raises:
            CryptoError: If key is the wrong size
        """
        self._aesgcm: Optional[AESGCM] = None
        if key is not None:
            if len(key) != KEY_SIZE:
                raise CryptoError(f"Key must be {KEY_SIZE} bytes, got {len(key)}")
            self._aesgcm = AESGCM(bytes(key))

    @property
    def has_key(self) -> bool:
        return self._aesgcm is not None

    def encrypt_field(self, value: Optional[str]) -> FieldResult:
        if value is None or value == "" or self._aesgcm is None:
            return FieldResult(value, FieldStatus.PASSTHROUGH)

        nonce = secrets.token_bytes(NONCE_SIZE)
        sealed = self._aesgcm.encrypt(nonce, str(value).encode("utf-8"), None)
        ciphertext, tag = sealed[:-TAG_SIZE], sealed[-TAG_SIZE:]
        envelope = ENVELOPE_SEPARATOR.join(
            (ENVELOPE_PREFIX, nonce.hex(), tag.hex(), ciphertext.hex())
        )
        return FieldResult(envelope, FieldStatus.ENCRYPTED)

    def decrypt_field(self, value) -> FieldResult:
        if not is_envelope(value):
            return FieldResult(value, FieldStatus.PASSTHROUGH)
        if self._aesgcm is None:
            logger.warning("Encrypted field found but no key is loaded")
            return FieldResult(value, FieldStatus.FAILED)

        _, iv_hex, tag_hex, ct_hex = value.split(ENVELOPE_SEPARATOR)
        try:
            nonce = bytes.fromhex(iv_hex)
            tag = bytes.fromhex(tag_hex)
            ciphertext = bytes.fromhex(ct_hex)
        except ValueError:
            logger.warning("Encrypted field has a corrupt envelope")
            return FieldResult(value, FieldStatus.FAILED)

        if len(nonce) != NONCE_SIZE or len(tag) != TAG_SIZE:
            logger.warning("Encrypted field has a corrupt envelope")
            return FieldResult(value, FieldStatus.FAILED)

        try:
            plaintext = self._aesgcm.decrypt(nonce, ciphertext + tag, None)
            return FieldResult(plaintext.decode("utf-8"), FieldStatus.DECRYPTED)
        except (InvalidTag, UnicodeDecodeError) as e:
            logger.warning(f"Field decryption failed: {type(e).__name__}")
            return FieldResult(value, FieldStatus.FAILED)

    def encrypt(self, value: Optional[str]) -> Optional[str]:
        return self.encrypt_field(value).value

    def decrypt(self, value):
        return self.decrypt_field(value).value
