"""Utility functions for trso."""

import hashlib
import logging
import os
import shutil
from datetime import datetime
from pathlib import Path

from .constants import CHECKSUM_LENGTH, LOG_DATE_FORMAT, LOG_FORMAT

logger = logging.getLogger(__name__)


def ensure_dir(path: Path) -> Path:
    """
    Create directory if it doesn't exist.

    Args:
        path: Directory path to create

    Returns:
        The created/existing directory path
    """
    path.mkdir(parents=True, exist_ok=True)
    return path


def expand_path(path: str | Path, base: Path | None = None) -> Path:
    """
    Expand ~ and environment variables in path.

    Relative paths are resolved against ``base`` (default: working directory).

    Args:
        path: Path string to expand
        base: Directory that relative paths are relative to

    Returns:
        Expanded absolute Path object
    """
    expanded = Path(os.path.expanduser(os.path.expandvars(str(path))))
    if not expanded.is_absolute() and base is not None:
        expanded = base / expanded
    return expanded.resolve()


def compute_checksum(content: str) -> str:
    """
    Calculate checksum of migration SQL.

    Whitespace is normalized so reformatting a file does not change its checksum.

    Args:
        content: Raw SQL text

    Returns:
        Hex string of SHA256 hash (first 16 chars)
    """
    normalized = " ".join(content.split())
    return hashlib.sha256(normalized.encode()).hexdigest()[:CHECKSUM_LENGTH]


def backup_database(db_path: Path) -> Path:
    """
    Copy a local database file next to itself with a timestamp suffix.

    Args:
        db_path: Path to the SQLite database file

    Returns:
        Path to backup file

    Raises:
        OSError: If the copy fails
    """
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    backup_path = db_path.parent / f"{db_path.stem}_backup_{timestamp}{db_path.suffix}"
    shutil.copy2(db_path, backup_path)
    logger.info(f"Created backup of {db_path} at {backup_path}")
    return backup_path


def setup_logging(verbose: bool) -> None:
    """
    Configure root logging for the CLI.

    Args:
        verbose: Log at DEBUG level instead of WARNING
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
    )
