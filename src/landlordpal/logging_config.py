"""
LandlordPal logging configuration.

Provides structured JSON logging and PII-safe value rendering.

Usage:
    from landlordpal.logging_config import setup_logging, sanitize_for_logging

    # In CLI main:
    setup_logging(verbose=True, log_file="~/.landlordpal/landlordpal.log")

    # Never echo a caller-supplied value without masking it:
    logger.warning("Skipping deleteWhere value=%s", sanitize_for_logging(value))
"""

import json
import logging
import logging.handlers
import re
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional, Union

from .constants import LOG_FILE_BACKUP_COUNT, LOG_FILE_MAX_BYTES

ROOT_LOGGER_NAME = "landlordpal"

# Tenant and vendor contact details are the PII this store protects
_PII_PATTERNS = [
    (re.compile(r"\b[\w.+-]+@[\w-]+(?:\.[\w-]+)+\b"), "[EMAIL-REDACTED]"),
    (re.compile(r"\(\d{3}\)\s*\d{3}-\d{4}"), "[PHONE-REDACTED]"),
    (re.compile(r"\b\d{3}[-.\s]\d{3}[-.\s]\d{4}\b"), "[PHONE-REDACTED]"),
]


def sanitize_for_logging(value: Any, max_length: int = 80) -> str:
    """
    Render a value for a log line with email addresses and phone numbers masked.

    Args:
        value: Anything a caller handed us (ids, column values, file names)
        max_length: Truncate to this length (0 for no truncation)
    """
    if value is None:
        return "None"
    text = value if isinstance(value, str) else repr(value)
    for pattern, replacement in _PII_PATTERNS:
        text = pattern.sub(replacement, text)
    if max_length > 0 and len(text) > max_length:
        text = text[:max_length] + "...[truncated]"
    return text


class JSONFormatter(logging.Formatter):
    """
    One JSON object per line for the store's log file.

    Messages and string ``extra`` values (``table``, ``operation``...) go
    through ``sanitize_for_logging`` on the way out, so a contact detail
    that slipped into a message still never lands in a support log.
    Warnings and debug lines carry their source location.
    """

    # Attributes every LogRecord has; anything else came in via ``extra``
    _RECORD_ATTRS = frozenset(
        vars(logging.LogRecord("", 0, "", 0, "", None, None))
    ) | {"message", "asctime"}

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": sanitize_for_logging(record.getMessage(), max_length=0),
        }

        if record.levelno >= logging.WARNING or record.levelno == logging.DEBUG:
            entry["source"] = {
                "file": record.filename,
                "line": record.lineno,
                "function": record.funcName,
            }

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        for key, value in vars(record).items():
            if key in self._RECORD_ATTRS:
                continue
            if isinstance(value, str):
                value = sanitize_for_logging(value, max_length=0)
            entry[key] = value

        return json.dumps(entry, default=str)


def setup_logging(
    verbose: bool = False,
    quiet: bool = False,
    log_file: Optional[Union[str, Path]] = None,
) -> logging.Logger:
    """
    Configure logging for the store.

    Args:
        verbose: Enable DEBUG level on the console
        quiet: Only show ERROR and above on the console
        log_file: Path to a rotating JSON log file (INFO and above)

    Returns:
        The configured ``landlordpal`` logger.
    """
    if quiet:
        level = logging.ERROR
    elif verbose:
        level = logging.DEBUG
    else:
        level = logging.WARNING

    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    root_logger.setLevel(logging.DEBUG)  # Capture all, filter at handler level
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(JSONFormatter())
    root_logger.addHandler(console_handler)

    if log_file:
        file_path = Path(log_file).expanduser()
        file_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            file_path,
            maxBytes=LOG_FILE_MAX_BYTES,
            backupCount=LOG_FILE_BACKUP_COUNT,
            encoding="utf-8",
        )
        file_handler.setLevel(logging.INFO)
        file_handler.setFormatter(JSONFormatter())
        root_logger.addHandler(file_handler)

    return root_logger
