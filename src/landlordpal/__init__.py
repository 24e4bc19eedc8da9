"""LandlordPal - local embedded data store with encrypted tenant contact details."""

__version__ = "0.1.0"

from .config import Config
from .core import LandlordStore
from .exceptions import (
    AttachmentError,
    ConfigurationError,
    CryptoError,
    KeyManagementError,
    LandlordPalError,
    MigrationError,
    StorageError,
    ValidationError,
)
from .types import BatchResult, FieldResult, FieldStatus, MigrationResult, ReplaceResult

__all__ = [
    "__version__",
    "Config",
    "LandlordStore",
    # Results
    "BatchResult",
    "FieldResult",
    "FieldStatus",
    "MigrationResult",
    "ReplaceResult",
    # Errors
    "AttachmentError",
    "ConfigurationError",
    "CryptoError",
    "KeyManagementError",
    "LandlordPalError",
    "MigrationError",
    "StorageError",
    "ValidationError",
]
