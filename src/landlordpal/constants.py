"""
Central constants for LandlordPal.

All file names, sizes, timeouts, and limits defined here.
Import from this module rather than hardcoding values.
"""

__all__ = [
    # Product / file layout
    "PRODUCT_NAME",
    "DATABASE_FILENAME",
    "KEY_FILENAME",
    "DOCUMENTS_DIRNAME",
    "BACKUP_PREFIX",
    "BACKUP_GLOB",
    # Schema
    "CURRENT_SCHEMA_VERSION",
    "SCHEMA_VERSION_KEY",
    "DEFAULT_BACKUP_RETENTION",
    # Timeouts
    "DATABASE_LOCK_TIMEOUT",
    "DATABASE_BUSY_TIMEOUT_MS",
    "DB_MAX_RETRIES",
    "DB_RETRY_BASE_DELAY",
    "DB_RETRY_MAX_DELAY",
    "STATEMENT_CACHE_SIZE",
    # Crypto
    "KEY_SIZE",
    "NONCE_SIZE",
    "TAG_SIZE",
    "ENVELOPE_PREFIX",
    "ENVELOPE_SEPARATOR",
    # Attachments
    "ATTACHMENT_SUFFIX_BYTES",
    "MIME_TYPES",
    "DEFAULT_MIME_TYPE",
    # Logging
    "LOG_FILE_MAX_BYTES",
    "LOG_FILE_BACKUP_COUNT",
]

# --- PRODUCT / FILE LAYOUT ---
PRODUCT_NAME = "landlordpal"
DATABASE_FILENAME = f"{PRODUCT_NAME}.db"
KEY_FILENAME = f".{PRODUCT_NAME}-key"
DOCUMENTS_DIRNAME = "documents"
BACKUP_PREFIX = f"{PRODUCT_NAME}-backup"  # <prefix>-v<old>-<unixMillis>.db
BACKUP_GLOB = f"{BACKUP_PREFIX}-v*-*.db"

# --- SCHEMA ---
CURRENT_SCHEMA_VERSION = 5
SCHEMA_VERSION_KEY = "schema_version"
DEFAULT_BACKUP_RETENTION = 5

# --- TIMEOUTS ---
DATABASE_LOCK_TIMEOUT = 30.0  # seconds
DATABASE_BUSY_TIMEOUT_MS = 30000
DB_MAX_RETRIES = 3
DB_RETRY_BASE_DELAY = 0.1  # seconds, doubled per attempt
DB_RETRY_MAX_DELAY = 2.0
# Two statements per table plus load/count queries, with headroom
STATEMENT_CACHE_SIZE = 128

# --- CRYPTO ---
KEY_SIZE = 32    # AES-256
NONCE_SIZE = 12  # 96-bit GCM nonce
TAG_SIZE = 16
ENVELOPE_PREFIX = "ENC"
ENVELOPE_SEPARATOR = ":"

# --- ATTACHMENTS ---
ATTACHMENT_SUFFIX_BYTES = 4  # 8 hex chars after the timestamp

MIME_TYPES = {
    ".pdf": "application/pdf",
    ".doc": "application/msword",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ".xls": "application/vnd.ms-excel",
    ".xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    ".csv": "text/csv",
    ".txt": "text/plain",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
}
DEFAULT_MIME_TYPE = "application/octet-stream"

# --- LOGGING ---
LOG_FILE_MAX_BYTES = 5 * 1024 * 1024  # 5 MB
LOG_FILE_BACKUP_COUNT = 3
