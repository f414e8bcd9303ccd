"""Ledger of applied migrations, stored in a table of the target database."""

import logging
from datetime import datetime, timezone

from pydantic import BaseModel

from .constants import DEFAULT_LEDGER_TABLE
from .db import DatabaseConnection
from .errors import DuplicateRecordError, ExecutionError, StorageError

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION_CODES = frozenset({"SQLITE_CONSTRAINT_UNIQUE", "SQLITE_CONSTRAINT_PRIMARYKEY"})


class AppliedMigration(BaseModel):
    """A migration recorded in the ledger."""

    name: str
    applied_at: datetime
    checksum: str | None = None


class MigrationLedger:
    """
    Reads and writes the ledger table.

    Rows are only ever inserted; this class never updates or deletes them.
    """

    def __init__(self, connection: DatabaseConnection, table: str = DEFAULT_LEDGER_TABLE) -> None:
        """
        Initialize ledger.

        Args:
            connection: Open database connection
            table: Ledger table name (must already be a validated identifier)
        """
        self.connection = connection
        self.table = table

    def ensure_ledger(self) -> None:
        """
        Create the ledger table if it doesn't exist.

        Raises:
            StorageError: If the table cannot be created
        """
        try:
            self.connection.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {self.table} (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL UNIQUE,
                    applied_at TEXT NOT NULL,
                    checksum TEXT
                )
                """
            )
        except ExecutionError as e:
            raise StorageError(f"Cannot create ledger table '{self.table}': {e}") from e

    def exists(self) -> bool:
        """
        Check whether the ledger table exists.

        Raises:
            StorageError: If the schema cannot be queried
        """
        try:
            rows = self.connection.query(
                "SELECT name FROM sqlite_master WHERE type = 'table' AND name = ?",
                (self.table,),
            )
        except ExecutionError as e:
            raise StorageError(f"Cannot inspect database schema: {e}") from e
        return bool(rows)

    def load_applied(self) -> set[str]:
        """
        Get names of all applied migrations.

        Raises:
            StorageError: If the ledger cannot be read
        """
        try:
            rows = self.connection.query(f"SELECT name FROM {self.table}")
        except ExecutionError as e:
            raise StorageError(f"Cannot read ledger table '{self.table}': {e}") from e
        return {row[0] for row in rows}

    def list_applied(self) -> list[AppliedMigration]:
        """
        Get all ledger records in the order they were applied.

        Raises:
            StorageError: If the ledger cannot be read
        """
        try:
            rows = self.connection.query(f"SELECT name, applied_at, checksum FROM {self.table} ORDER BY id")
        except ExecutionError as e:
            raise StorageError(f"Cannot read ledger table '{self.table}': {e}") from e
        return [
            AppliedMigration(name=name, applied_at=applied_at, checksum=checksum)
            for name, applied_at, checksum in rows
        ]

    def record_applied(self, name: str, checksum: str | None = None) -> AppliedMigration:
        """
        Record a migration as applied with the current UTC time.

        Args:
            name: Migration file name
            checksum: Checksum of the applied SQL

        Returns:
            The inserted record

        Raises:
            DuplicateRecordError: If the name is already in the ledger
            StorageError: If the record cannot be written
        """
        record = AppliedMigration(name=name, applied_at=datetime.now(timezone.utc), checksum=checksum)
        try:
            self.connection.execute(
                f"INSERT INTO {self.table} (name, applied_at, checksum) VALUES (?, ?, ?)",
                (record.name, record.applied_at.isoformat(), record.checksum),
            )
        except ExecutionError as e:
            if _is_unique_violation(e):
                raise DuplicateRecordError(
                    f"Migration '{name}' is already recorded in '{self.table}'", migration=name
                ) from e
            raise StorageError(f"Cannot record migration '{name}': {e}", migration=name) from e

        logger.debug(f"Recorded migration {name} in {self.table}")
        return record


def _is_unique_violation(error: ExecutionError) -> bool:
    """Backends that only report the primary code still name the constraint in the message."""
    if error.code in UNIQUE_VIOLATION_CODES:
        return True
    return error.code == "SQLITE_CONSTRAINT" and "UNIQUE constraint failed" in str(error)
