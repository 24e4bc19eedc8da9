"""
Unified exception hierarchy for LandlordPal.

All exception classes live here. No per-module exception files.

Hierarchy:
    LandlordPalError (base)
    ├── ConfigurationError
    ├── StorageError
    │   └── MigrationError
    ├── CryptoError
    │   └── KeyManagementError
    ├── AttachmentError
    └── ValidationError

Most recoverable conditions in the store never raise: they come back as
typed results (see :mod:`landlordpal.types`). These exceptions cover the
cases that must stop the caller.

Usage:
    from landlordpal.exceptions import StorageError, ValidationError
"""

from __future__ import annotations

from typing import Any

# =============================================================================
# ROOT
# =============================================================================


class LandlordPalError(Exception):
    """
    Base exception for all LandlordPal errors.

    Attributes:
        message: Human-readable error description
        context: Additional context about what was being done
        details: Technical details (table names, paths, versions, etc.)
    """

    def __init__(
        self,
        message: str,
        context: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.context = context
        self.details = details or {}
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        parts = [self.message]
        if self.context:
            parts.append(f"Context: {self.context}")
        if self.details:
            detail_str = ", ".join(f"{k}={v!r}" for k, v in self.details.items())
            parts.append(f"Details: {detail_str}")
        return ". ".join(parts)


class ConfigurationError(LandlordPalError):
    """Configuration or initialization error."""

    pass


# =============================================================================
# STORAGE
# =============================================================================


class StorageError(LandlordPalError):
    """Raised when the embedded database rejects or fails an operation."""

    def __init__(
        self,
        message: str,
        table: str | None = None,
        operation: str | None = None,
        **kwargs: Any,
    ):
        details = kwargs.pop("details", {})
        if table:
            details["table"] = table
        if operation:
            details["operation"] = operation
        super().__init__(message, details=details, **kwargs)
        self.table = table
        self.operation = operation


class MigrationError(StorageError):
    """A schema migration step failed and was rolled back."""

    def __init__(
        self,
        message: str,
        from_version: int | None = None,
        step: int | None = None,
        **kwargs: Any,
    ):
        details = kwargs.pop("details", {})
        if from_version is not None:
            details["from_version"] = from_version
        if step is not None:
            details["step"] = step
        super().__init__(message, operation="migrate", details=details, **kwargs)
        self.from_version = from_version
        self.step = step


# =============================================================================
# CRYPTO
# =============================================================================


class CryptoError(LandlordPalError):
    """Cryptographic operation failed."""

    pass


class KeyManagementError(CryptoError):
    """The encryption key could not be read, generated or persisted."""

    def __init__(self, message: str, path: str | None = None, **kwargs: Any):
        details = kwargs.pop("details", {})
        if path:
            details["path"] = path
        super().__init__(message, details=details, **kwargs)
        self.path = path


# =============================================================================
# ATTACHMENTS & INPUT
# =============================================================================


class AttachmentError(LandlordPalError):
    """Copying a file into the managed documents directory failed."""

    def __init__(self, message: str, path: str | None = None, **kwargs: Any):
        details = kwargs.pop("details", {})
        if path:
            details["path"] = path
        super().__init__(message, details=details, **kwargs)
        self.path = path


class ValidationError(LandlordPalError):
    """Input data (backup file, snapshot) failed validation."""

    def __init__(self, message: str, errors: list[str] | None = None, **kwargs: Any):
        details = kwargs.pop("details", {})
        if errors:
            details["errors"] = errors
        super().__init__(message, details=details, **kwargs)
        self.errors = errors or []
