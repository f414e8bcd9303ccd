"""Discovery and loading of SQL migration files."""

import logging
from collections.abc import Iterator
from dataclasses import dataclass, field
from pathlib import Path

from .constants import MIGRATION_FILE_ENCODING, MIGRATION_FILE_EXTENSION
from .errors import DirectoryNotFoundError, DirectoryReadError
from .utils import compute_checksum

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MigrationFile:
    """A single migration file loaded from disk.

    The file name is both the ledger key and the ordering key.
    """

    name: str
    content: str
    path: Path | None = field(default=None, compare=False)

    @property
    def sequence_key(self) -> str:
        """Key used to order migrations (lexicographic by file name)."""
        return self.name

    @property
    def checksum(self) -> str:
        """Checksum of the SQL content."""
        return compute_checksum(self.content)


class MigrationDirectory:
    """
    Iterable over the migration files in a directory.

    Every iteration lists the directory again, so the same instance can be
    iterated any number of times and always reflects the files on disk.
    Files are yielded in ascending file name order and read one at a time.
    """

    def __init__(self, path: Path, extension: str = MIGRATION_FILE_EXTENSION) -> None:
        """
        Initialize migration directory.

        Args:
            path: Directory containing migration files
            extension: File extension of migration files (case-insensitive)
        """
        self.path = path
        self.extension = extension.lower()

    def __iter__(self) -> Iterator[MigrationFile]:
        for file_path in self._list_files():
            yield self._read_file(file_path)

    def names(self) -> list[str]:
        """Return sorted migration file names without reading their content."""
        return [file_path.name for file_path in self._list_files()]

    def _list_files(self) -> list[Path]:
        if not self.path.exists():
            raise DirectoryNotFoundError(f"Migrations directory not found: {self.path}")
        if not self.path.is_dir():
            raise DirectoryNotFoundError(f"Migrations path is not a directory: {self.path}")

        try:
            candidates = [
                entry
                for entry in self.path.iterdir()
                if entry.suffix.lower() == self.extension and entry.is_file()
            ]
        except OSError as e:
            raise DirectoryReadError(f"Cannot read migrations directory {self.path}: {e}") from e

        candidates.sort(key=lambda p: p.name)
        logger.debug(f"Found {len(candidates)} migration file(s) in {self.path}")
        return candidates

    def _read_file(self, file_path: Path) -> MigrationFile:
        try:
            content = file_path.read_text(encoding=MIGRATION_FILE_ENCODING)
        except (OSError, UnicodeDecodeError) as e:
            raise DirectoryReadError(
                f"Cannot read migration file {file_path}: {e}", migration=file_path.name
            ) from e
        return MigrationFile(name=file_path.name, content=content, path=file_path)


def load_migrations(path: Path, extension: str = MIGRATION_FILE_EXTENSION) -> list[MigrationFile]:
    """
    Load all migration files from a directory.

    Args:
        path: Directory containing migration files
        extension: File extension of migration files

    Returns:
        Migration files sorted by name

    Raises:
        DirectoryNotFoundError: If the directory does not exist
        DirectoryReadError: If the directory or a file cannot be read
    """
    return list(MigrationDirectory(path, extension))
