"""Tests for field-level AES-256-GCM encryption.

These tests verify:
1. Envelope shape and round-trip
2. Pass-through for empty values and missing keys
3. Tampering and wrong-key detection never raise
"""

import secrets

import pytest

from landlordpal.crypto.codec import FieldCodec, is_envelope
from landlordpal.exceptions import CryptoError
from landlordpal.types import FieldStatus


def make_valid_key() -> bytes:
    return secrets.token_bytes(32)


@pytest.fixture
def codec():
    return FieldCodec(make_valid_key())


# =============================================================================
# ENVELOPE DETECTION
# =============================================================================

class TestIsEnvelope:
    """Tests for is_envelope()."""

    def test_four_parts_with_prefix(self):
        assert is_envelope("ENC:aa:bb:cc")

    def test_plain_strings(self):
        assert not is_envelope("a@b.com")
        assert not is_envelope("")

    def test_wrong_part_count(self):
        assert not is_envelope("ENC:aa:bb")
        assert not is_envelope("ENC:aa:bb:cc:dd")

    def test_wrong_prefix(self):
        assert not is_envelope("enc:aa:bb:cc")

    def test_non_strings(self):
        assert not is_envelope(None)
        assert not is_envelope(42)


# =============================================================================
# INITIALIZATION
# =============================================================================

class TestFieldCodecInit:
    """Tests for FieldCodec construction."""

    def test_rejects_short_key(self):
        with pytest.raises(CryptoError):
            FieldCodec(b"too short")

    def test_no_key_is_passthrough_mode(self):
        assert not FieldCodec().has_key

    def test_with_key(self, codec):
        assert codec.has_key


# =============================================================================
# ROUND TRIP
# =============================================================================

class TestEncryptDecrypt:
    """Encryption produces envelopes that decrypt back to the input."""

    @pytest.mark.parametrize("value", ["a@b.com", "555-123-4567", "ünïcödé ✓", "x" * 5000])
    def test_round_trip(self, codec, value):
        assert codec.decrypt(codec.encrypt(value)) == value

    def test_envelope_shape(self, codec):
        envelope = codec.encrypt("a@b.com")
        assert envelope.startswith("ENC:")
        _, iv_hex, tag_hex, ct_hex = envelope.split(":")
        assert len(bytes.fromhex(iv_hex)) == 12
        assert len(bytes.fromhex(tag_hex)) == 16
        assert len(bytes.fromhex(ct_hex)) == len("a@b.com")

    def test_fresh_nonce_each_time(self, codec):
        assert codec.encrypt("same") != codec.encrypt("same")

    def test_status_reported(self, codec):
        sealed = codec.encrypt_field("a@b.com")
        assert sealed.status is FieldStatus.ENCRYPTED
        opened = codec.decrypt_field(sealed.value)
        assert opened.status is FieldStatus.DECRYPTED
        assert opened.ok


class TestPassthrough:
    """Values that are returned unchanged."""

    def test_none(self, codec):
        assert codec.encrypt(None) is None

    def test_empty_string(self, codec):
        assert codec.encrypt("") == ""

    def test_plaintext_decrypts_to_itself(self, codec):
        result = codec.decrypt_field("plain")
        assert result.value == "plain"
        assert result.status is FieldStatus.PASSTHROUGH

    def test_no_key_encrypt(self):
        result = FieldCodec().encrypt_field("a@b.com")
        assert result.value == "a@b.com"
        assert result.status is FieldStatus.PASSTHROUGH


class TestFailures:
    """Crypto failures return the stored value instead of raising."""

    def test_tampered_ciphertext(self, codec):
        envelope = codec.encrypt("a@b.com")
        prefix, iv, tag, ct = envelope.split(":")
        flipped = f"{int(ct[:2], 16) ^ 0xFF:02x}" + ct[2:]
        tampered = ":".join((prefix, iv, tag, flipped))

        result = codec.decrypt_field(tampered)
        assert result.status is FieldStatus.FAILED
        assert result.value == tampered
        assert not result.ok

    def test_wrong_key(self, codec):
        envelope = codec.encrypt("a@b.com")
        assert FieldCodec(make_valid_key()).decrypt(envelope) == envelope

    def test_corrupt_hex(self, codec):
        assert codec.decrypt_field("ENC:zz:yy:xx").status is FieldStatus.FAILED

    def test_wrong_nonce_length(self, codec):
        bad = "ENC:" + "00" * 4 + ":" + "00" * 16 + ":" + "00" * 4
        assert codec.decrypt(bad) == bad

    def test_envelope_without_key(self, codec):
        envelope = codec.encrypt("a@b.com")
        result = FieldCodec().decrypt_field(envelope)
        assert result.status is FieldStatus.FAILED
        assert result.value == envelope
