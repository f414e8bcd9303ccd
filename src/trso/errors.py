"""Exception hierarchy for trso.

Every failure during a run is fatal. The engine raises the first error it
encounters and the CLI turns it into a message and a non-zero exit code.
"""


class TrsoError(Exception):
    """
    Base class for all trso errors.

    Args:
        message: Human-readable description
        migration: Name of the migration file involved, if any
    """

    kind = "error"

    def __init__(self, message: str, migration: str | None = None):
        super().__init__(message)
        self.migration = migration


class DirectoryNotFoundError(TrsoError):
    """Raised when the migrations directory does not exist."""

    kind = "directory not found"


class DirectoryReadError(TrsoError):
    """Raised when the migrations directory or one of its files cannot be read."""

    kind = "directory read error"


class StorageError(TrsoError):
    """
    Raised when the ledger table cannot be created, read or written.

    This covers connection failures, missing privileges and query errors
    against the ledger itself.
    """

    kind = "storage error"


class DuplicateRecordError(StorageError):
    """Raised when recording a migration name that is already in the ledger."""

    kind = "duplicate ledger record"


class ExecutionError(TrsoError):
    """
    Raised when the database rejects a statement or cannot be reached.

    Args:
        message: Error message from the backend
        migration: Name of the migration file involved, if any
        code: Backend error code (e.g. SQLITE_CONSTRAINT_UNIQUE), if known
    """

    kind = "execution error"

    def __init__(self, message: str, migration: str | None = None, code: str | None = None):
        super().__init__(message, migration)
        self.code = code


class InconsistentStateError(TrsoError):
    """
    Raised when a migration's SQL ran but its ledger record could not be written.

    The database now contains the migration's changes while the ledger does
    not know about them, so a retry would apply the file again. Requires
    manual inspection.
    """

    kind = "inconsistent state"
