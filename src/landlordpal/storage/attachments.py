"""
Document attachments kept next to the database.

File structure:
    ~/.landlordpal/
    ├── landlordpal.db
    └── documents/
        ├── 1717171717171-a1b2c3d4.pdf
        └── 1717171720000-0f9e8d7c.jpg

The namespace is flat. Callers only ever hand back the generated file
name, never a path, and every name is checked before it touches the
filesystem.
"""

import re
import secrets
import shutil
import time
from pathlib import Path
from typing import Optional
import logging

from ..constants import ATTACHMENT_SUFFIX_BYTES, DEFAULT_MIME_TYPE, MIME_TYPES
from ..exceptions import AttachmentError
from ..logging_config import sanitize_for_logging
from ..types import StoredAttachment

logger = logging.getLogger(__name__)


_SAFE_EXTENSION = re.compile(r"\.[a-z0-9]{1,16}")


def generate_filename(original_name: str) -> str:
    """
    ``<unixMillis>-<8 hex><ext>``; only the lowercased extension survives,
    and only when it is plain alphanumerics.
    """
    ext = Path(original_name).suffix.lower()
    if not _SAFE_EXTENSION.fullmatch(ext):
        ext = ""
    millis = int(time.time() * 1000)
    return f"{millis}-{secrets.token_hex(ATTACHMENT_SUFFIX_BYTES)}{ext}"


def mime_type_for(filename: str) -> str:
    return MIME_TYPES.get(Path(filename).suffix.lower(), DEFAULT_MIME_TYPE)


def is_safe_name(filename) -> bool:
    """A bare file name: no separators, not '.' or '..', not empty."""
    if not isinstance(filename, str) or not filename:
        return False
    if "/" in filename or "\\" in filename or "\x00" in filename:
        return False
    return filename not in (".", "..")


class AttachmentStore:
    """Copies user files into the managed documents directory."""

    def __init__(self, documents_dir: Path):
        self._dir = Path(documents_dir)

    @property
    def directory(self) -> Path:
        return self._dir

    def store(self, source_path) -> StoredAttachment:
        """
        Copy *source_path* into the documents directory under a new name.

        Raises:
            AttachmentError: Source is missing or the copy failed
        """
        source = Path(source_path)
        if not source.is_file():
            raise AttachmentError("Attachment source does not exist", path=str(source))

        self._dir.mkdir(parents=True, exist_ok=True)
        filename = generate_filename(source.name)
        target = self._dir / filename
        try:
            shutil.copyfile(source, target)
            size = target.stat().st_size
        except OSError as e:
            raise AttachmentError(
                f"Could not copy attachment: {e.strerror or e}", path=str(source)
            ) from e

        logger.info(f"Stored attachment {filename} ({size} bytes)")
        return StoredAttachment(
            filename=filename,
            original_name=source.name,
            size=size,
            mime_type=mime_type_for(filename),
        )

    def _checked_path(self, filename) -> Optional[Path]:
        if not is_safe_name(filename):
            logger.warning(f"Rejected attachment name {sanitize_for_logging(filename)}")
            return None

        base = self._dir.resolve()
        candidate = (base / filename).resolve()
        # Second check on the resolved path catches symlinks out of the directory
        if candidate.parent != base:
            logger.warning(f"Rejected attachment path outside documents: {sanitize_for_logging(filename)}")
            return None
        return candidate

    def resolve(self, filename) -> Optional[Path]:
        """Absolute path of a stored attachment, or None if unsafe or missing."""
        path = self._checked_path(filename)
        if path is None or not path.is_file():
            return None
        return path

    def delete(self, filename) -> bool:
        """
        Remove a stored attachment.

        Returns:
            True if a file was deleted. Unsafe names and missing files
            return False.
        """
        path = self._checked_path(filename)
        if path is None:
            return False
        try:
            path.unlink()
        except FileNotFoundError:
            logger.debug(f"Attachment {filename} already gone")
            return False
        except OSError as e:
            logger.warning(f"Could not delete attachment {filename}: {e}")
            return False
        logger.info(f"Deleted attachment {filename}")
        return True
