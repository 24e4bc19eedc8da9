"""Cryptographic primitives for LandlordPal."""

from .codec import FieldCodec, is_envelope
from .keys import KeyManager

__all__ = ["FieldCodec", "KeyManager", "is_envelope"]
