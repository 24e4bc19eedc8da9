"""Configuration for LandlordPal."""

import os
import stat
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional
import logging

from .constants import (
    BACKUP_GLOB,
    DATABASE_FILENAME,
    DEFAULT_BACKUP_RETENTION,
    DOCUMENTS_DIRNAME,
    KEY_FILENAME,
)
from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# Operating-system locations that must never hold the database, key or documents
SYSTEM_DIRECTORIES = (
    "/etc", "/var", "/usr", "/bin", "/sbin", "/lib", "/lib64",
    "/boot", "/dev", "/proc", "/sys", "/tmp",
    "/System", "/Library", "/Applications",  # macOS
    "C:\\Windows", "C:\\Program Files",  # Windows
)


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").lower() in ("1", "true", "yes")


def validate_data_path(path: Path) -> bool:
    """
    Whether *path* may be used as the LandlordPal data directory.

    The filesystem root, the system directories above and anything beneath
    them are refused: the store writes its key file and tenant documents
    there. LANDLORDPAL_TESTING=1 lifts the ban on /tmp.
    """
    resolved = Path(path).resolve()
    if resolved == Path(resolved.anchor):
        logger.warning(f"Refusing filesystem root {path} as data directory")
        return False

    allow_tmp = _env_flag("LANDLORDPAL_TESTING")
    for system_dir in SYSTEM_DIRECTORIES:
        if allow_tmp and system_dir == "/tmp":
            continue
        blocked = Path(system_dir)
        if resolved == blocked or blocked in resolved.parents:
            logger.warning(f"Refusing data directory {path}: inside system directory {system_dir}")
            return False

    return True


def default_data_dir() -> Path:
    """
    Default data directory, checked in order:
    1. LANDLORDPAL_HOME env var (if set and valid)
    2. ~/.landlordpal
    """
    env_dir = os.environ.get("LANDLORDPAL_HOME")
    if env_dir:
        path = Path(env_dir).expanduser()
        if validate_data_path(path):
            return path
        logger.warning(f"LANDLORDPAL_HOME={env_dir} failed validation, using default")

    return Path.home() / ".landlordpal"


def _default_retention() -> int:
    raw = os.environ.get("LANDLORDPAL_BACKUP_RETENTION")
    if not raw:
        return DEFAULT_BACKUP_RETENTION
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Ignoring non-integer LANDLORDPAL_BACKUP_RETENTION={raw!r}")
        return DEFAULT_BACKUP_RETENTION


def _default_log_file() -> Optional[Path]:
    raw = os.environ.get("LANDLORDPAL_LOG_FILE")
    return Path(raw).expanduser() if raw else None


@dataclass
class Config:
    """LandlordPal store configuration."""

    data_dir: Path = field(default_factory=default_data_dir)
    backup_retention: int = field(default_factory=_default_retention)
    log_file: Optional[Path] = field(default_factory=_default_log_file)

    def __post_init__(self):
        self.data_dir = Path(self.data_dir).expanduser()
        if not validate_data_path(self.data_dir):
            raise ConfigurationError(
                f"Invalid data_dir '{self.data_dir}'. "
                "Cannot use system directories like /etc, /var, /usr, etc."
            )
        if self.backup_retention < 1:
            raise ConfigurationError("backup_retention must be at least 1")

    @property
    def db_path(self) -> Path:
        return self.data_dir / DATABASE_FILENAME

    @property
    def key_path(self) -> Path:
        return self.data_dir / KEY_FILENAME

    @property
    def documents_dir(self) -> Path:
        return self.data_dir / DOCUMENTS_DIRNAME

    @property
    def backup_glob(self) -> str:
        return BACKUP_GLOB

    def ensure_directories(self) -> None:
        """Create data directories with secure permissions (0700)."""
        for dir_path in (self.data_dir, self.documents_dir):
            dir_path.mkdir(parents=True, exist_ok=True)
            dir_path.chmod(stat.S_IRWXU)
