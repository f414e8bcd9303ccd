"""Migration engine: applies pending migration files in order."""

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from rich.console import Console
from rich.markup import escape

from .constants import MigrationState
from .db import DatabaseConnection
from .errors import ExecutionError, InconsistentStateError, StorageError, TrsoError
from .ledger import AppliedMigration, MigrationLedger
from .loader import MigrationFile

logger = logging.getLogger(__name__)


class RunState(str, Enum):
    """Lifecycle of a single engine run."""

    INIT = "init"
    LOADED = "loaded"
    FILTERED = "filtered"
    APPLYING = "applying"
    DONE = "done"
    FAILED = "failed"


@dataclass
class MigrationReport:
    """Result of a migration run."""

    applied: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    state: RunState = RunState.INIT

    @property
    def count(self) -> int:
        """Number of migrations applied by this run."""
        return len(self.applied)


@dataclass
class MigrationStatus:
    """Status of one migration relative to the ledger."""

    name: str
    state: MigrationState
    applied_at: datetime | None = None


@dataclass
class MigrationPlan:
    """Read-only view of what a run would do."""

    pending: list[MigrationFile]
    statuses: list[MigrationStatus]

    @property
    def modified(self) -> list[str]:
        """Applied migrations whose file content changed since."""
        return [s.name for s in self.statuses if s.state == MigrationState.MODIFIED]


class MigrationEngine:
    """
    Applies pending migrations strictly in file name order.

    A run stops at the first failure. Migrations that ran before the failure
    stay applied and recorded; nothing after it is attempted, so the next
    run resumes at the failed file.
    """

    def __init__(
        self,
        connection: DatabaseConnection,
        ledger: MigrationLedger,
        migrations: Iterable[MigrationFile],
        console: Console | None = None,
        before_apply: Callable[[list[MigrationFile]], None] | None = None,
    ) -> None:
        """
        Initialize migration engine.

        Args:
            connection: Open database connection migrations are executed on
            ledger: Ledger stored in the same database
            migrations: Candidate migration files (re-iterated on every run)
            console: Rich console for progress output (None for silent)
            before_apply: Called once with the pending files before any is applied
        """
        self.connection = connection
        self.ledger = ledger
        self.migrations = migrations
        self.console = console
        self.before_apply = before_apply
        self.state = RunState.INIT
        self.report = MigrationReport()

    def run(self) -> MigrationReport:
        """
        Apply all pending migrations.

        Returns:
            Report listing applied and skipped migrations

        Raises:
            StorageError: If the ledger cannot be created or read
            DirectoryNotFoundError: If the migrations directory is missing
            DirectoryReadError: If a migration file cannot be read
            ExecutionError: If a migration's SQL fails (it is not recorded)
            InconsistentStateError: If a migration ran but could not be recorded
        """
        self.state = RunState.INIT
        self.report = report = MigrationReport(state=self.state)

        try:
            self.ledger.ensure_ledger()

            files = list(self.migrations)
            self._transition(report, RunState.LOADED)

            applied = self.ledger.load_applied()
            pending = []
            for migration in files:
                if migration.name in applied:
                    report.skipped.append(migration.name)
                    logger.debug(f"Skipping {migration.name}, already applied")
                    self._print(f"[dim]Skipping file {escape(migration.name)}, it is already applied[/dim]")
                else:
                    pending.append(migration)
            self._transition(report, RunState.FILTERED)

            if not pending:
                self._print("Nothing to apply, database is up to date.")
                self._transition(report, RunState.DONE)
                return report

            self._transition(report, RunState.APPLYING)
            if self.before_apply is not None:
                self.before_apply(pending)

            for migration in pending:
                self._apply(migration)
                report.applied.append(migration.name)
        except TrsoError:
            self._transition(report, RunState.FAILED)
            raise

        self._transition(report, RunState.DONE)
        return report

    def plan(self) -> MigrationPlan:
        """
        Compare migration files with the ledger without changing anything.

        The ledger table is not created when it is missing.

        Returns:
            Pending files and per-migration statuses

        Raises:
            StorageError: If the ledger cannot be read
            DirectoryNotFoundError: If the migrations directory is missing
            DirectoryReadError: If a migration file cannot be read
        """
        files = list(self.migrations)
        records: list[AppliedMigration] = self.ledger.list_applied() if self.ledger.exists() else []
        by_name = {r.name: r for r in records}

        statuses = []
        pending = []
        for migration in files:
            record = by_name.get(migration.name)
            if record is None:
                pending.append(migration)
                statuses.append(MigrationStatus(migration.name, MigrationState.PENDING))
            elif record.checksum is not None and record.checksum != migration.checksum:
                statuses.append(MigrationStatus(migration.name, MigrationState.MODIFIED, record.applied_at))
            else:
                statuses.append(MigrationStatus(migration.name, MigrationState.APPLIED, record.applied_at))

        file_names = {m.name for m in files}
        for record in records:
            if record.name not in file_names:
                statuses.append(MigrationStatus(record.name, MigrationState.MISSING, record.applied_at))

        statuses.sort(key=lambda s: s.name)
        return MigrationPlan(pending=pending, statuses=statuses)

    def _apply(self, migration: MigrationFile) -> None:
        """Execute one migration and record it."""
        logger.info(f"Applying migration {migration.name} (checksum: {migration.checksum})")

        try:
            self.connection.execute_script(migration.content)
        except ExecutionError as e:
            logger.error(f"Migration {migration.name} failed: {e}")
            self._print(f"[red]Error while executing migration {escape(migration.name)}[/red]")
            raise ExecutionError(
                f"Migration '{migration.name}' failed: {e}", migration=migration.name, code=e.code
            ) from e

        try:
            self.ledger.record_applied(migration.name, migration.checksum)
        except StorageError as e:
            logger.error(f"Migration {migration.name} executed but was not recorded: {e}")
            raise InconsistentStateError(
                f"Migration '{migration.name}' was executed but could not be recorded "
                f"in the ledger: {e}",
                migration=migration.name,
            ) from e

        self._print(f"[green]✓[/green] Migration applied for file {escape(migration.name)}")

    def _transition(self, report: MigrationReport, state: RunState) -> None:
        logger.debug(f"Engine state {self.state.value} -> {state.value}")
        self.state = state
        report.state = state

    def _print(self, message: str) -> None:
        if self.console is not None:
            self.console.print(message)
