"""Actionable error guidance for common failure scenarios."""

from dataclasses import dataclass

from .errors import (
    DirectoryNotFoundError,
    DirectoryReadError,
    DuplicateRecordError,
    ExecutionError,
    InconsistentStateError,
    StorageError,
    TrsoError,
)


@dataclass
class ErrorGuidance:
    """Structured error guidance with checks and suggestions."""

    title: str
    checks: list[str]  # Things to check
    fixes: list[str]  # How to fix
    examples: list[str] | None = None  # Example commands


class GuidanceProvider:
    """Provides context-aware guidance for errors."""

    @staticmethod
    def get_directory_not_found(path: str) -> ErrorGuidance:
        """Guidance when the migrations directory is missing."""
        return ErrorGuidance(
            title="Migrations directory not found",
            checks=[f"Verify the directory exists: {path}", "Check TRSO_MIGRATIONS_PATH and --path"],
            fixes=["Create the directory and add .sql files", "Point trso at the right directory"],
            examples=["mkdir migrations", "trso migrate --path ./db/migrations"],
        )

    @staticmethod
    def get_directory_read_error() -> ErrorGuidance:
        """Guidance when migration files cannot be read."""
        return ErrorGuidance(
            title="Migration files could not be read",
            checks=["Check file and directory permissions", "Ensure files are UTF-8 encoded"],
            fixes=["Fix permissions: chmod u+r migrations/*.sql"],
        )

    @staticmethod
    def get_storage_error() -> ErrorGuidance:
        """Guidance when the ledger table cannot be used."""
        return ErrorGuidance(
            title="Migration ledger is not accessible",
            checks=[
                "Verify TRSO_PATH_URL points at the right database",
                "For remote databases, verify TRSO_TOKEN is valid and has write access",
                "For local databases, verify the parent directory exists and is writable",
            ],
            fixes=["Fix the connection settings and run trso migrate again"],
            examples=["trso status"],
        )

    @staticmethod
    def get_duplicate_record(name: str) -> ErrorGuidance:
        """Guidance when a ledger insert collides with an existing row."""
        return ErrorGuidance(
            title=f"'{name}' is already recorded in the ledger",
            checks=["Check whether another trso process ran at the same time"],
            fixes=["Run trso status to see the current ledger", "Avoid running migrations concurrently"],
            examples=["trso status"],
        )

    @staticmethod
    def get_execution_error(name: str | None) -> ErrorGuidance:
        """Guidance when a migration's SQL fails."""
        target = f"'{name}'" if name else "the migration"
        return ErrorGuidance(
            title=f"SQL in {target} failed",
            checks=[
                "Read the database error above",
                "Migration files must not contain BEGIN/COMMIT, each file already runs in a transaction",
            ],
            fixes=[
                f"Fix {target} and run trso migrate again",
                "Migrations before it are recorded and will be skipped",
            ],
        )

    @staticmethod
    def get_inconsistent_state(name: str | None, table: str) -> ErrorGuidance:
        """Guidance when a migration ran but was not recorded."""
        target = name or "<migration>"
        return ErrorGuidance(
            title=f"'{target}' was applied but is NOT recorded in the ledger",
            checks=[
                "Inspect the database to confirm the migration's changes are present",
                "Do not run trso migrate again before fixing the ledger, it would re-apply the file",
            ],
            fixes=[f"Record the migration manually in the '{table}' table"],
            examples=[
                f"INSERT INTO {table} (name, applied_at) VALUES ('{target}', datetime('now'));",
            ],
        )

    @classmethod
    def for_error(cls, error: TrsoError, migrations_path: str, table: str) -> ErrorGuidance | None:
        """
        Pick the guidance matching an error.

        Args:
            error: Error raised during a run
            migrations_path: Configured migrations directory
            table: Configured ledger table

        Returns:
            Guidance, or None if there is none for this error
        """
        if isinstance(error, InconsistentStateError):
            return cls.get_inconsistent_state(error.migration, table)
        if isinstance(error, DuplicateRecordError):
            return cls.get_duplicate_record(error.migration or "<migration>")
        if isinstance(error, StorageError):
            return cls.get_storage_error()
        if isinstance(error, ExecutionError):
            return cls.get_execution_error(error.migration)
        if isinstance(error, DirectoryNotFoundError):
            return cls.get_directory_not_found(migrations_path)
        if isinstance(error, DirectoryReadError):
            return cls.get_directory_read_error()
        return None
