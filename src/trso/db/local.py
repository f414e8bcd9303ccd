"""Local SQLite file connection."""

import logging
import sqlite3
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from ..errors import ExecutionError, StorageError
from .base import DatabaseConnection, Row

logger = logging.getLogger(__name__)


def _error_code(error: sqlite3.Error) -> str | None:
    return getattr(error, "sqlite_errorname", None)


class LocalConnection(DatabaseConnection):
    """Connection to a database file through the standard sqlite3 module."""

    def __init__(self, path: Path) -> None:
        """
        Open a local database file, creating it if needed.

        Args:
            path: Database file path (or ``:memory:``)

        Raises:
            StorageError: If the database file cannot be opened
        """
        self.path = path
        try:
            # Autocommit mode: transactions are only opened explicitly
            self._conn = sqlite3.connect(str(path), isolation_level=None)
        except sqlite3.Error as e:
            raise StorageError(f"Cannot open database {path}: {e}") from e
        logger.debug(f"Opened local database {path}")

    @property
    def description(self) -> str:
        return str(self.path)

    def execute(self, sql: str, params: Sequence[Any] = ()) -> int:
        try:
            cursor = self._conn.execute(sql, tuple(params))
        except sqlite3.Error as e:
            raise ExecutionError(str(e), code=_error_code(e)) from e
        return cursor.rowcount

    def query(self, sql: str, params: Sequence[Any] = ()) -> list[Row]:
        try:
            return self._conn.execute(sql, tuple(params)).fetchall()
        except sqlite3.Error as e:
            raise ExecutionError(str(e), code=_error_code(e)) from e

    def execute_script(self, sql: str) -> None:
        try:
            self._conn.executescript(f"BEGIN;\n{sql}\n;\nCOMMIT;")
        except sqlite3.Error as e:
            if self._conn.in_transaction:
                self._conn.execute("ROLLBACK")
            raise ExecutionError(str(e), code=_error_code(e)) from e

    def close(self) -> None:
        self._conn.close()
        logger.debug(f"Closed local database {self.path}")
