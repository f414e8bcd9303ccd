"""Tests for the migration engine."""

from collections.abc import Sequence
from pathlib import Path
from typing import Any

import pytest
from rich.console import Console

from trso.constants import MigrationState
from trso.db import LocalConnection
from trso.engine import MigrationEngine, RunState
from trso.errors import (
    DirectoryNotFoundError,
    ExecutionError,
    InconsistentStateError,
    StorageError,
)
from trso.ledger import MigrationLedger
from trso.loader import MigrationDirectory, MigrationFile


class RecordingConnection(LocalConnection):
    """Local connection that records executed scripts and can fail on demand."""

    def __init__(self, path: Path, fail_on: str | None = None) -> None:
        super().__init__(path)
        self.scripts: list[str] = []
        self.fail_on = fail_on

    def execute(self, sql: str, params: Sequence[Any] = ()) -> int:
        if self.fail_on and self.fail_on in sql:
            raise ExecutionError("simulated failure", code="SQLITE_IOERR")
        return super().execute(sql, params)

    def execute_script(self, sql: str) -> None:
        self.scripts.append(sql)
        super().execute_script(sql)


@pytest.fixture
def connection(db_path: Path):
    conn = RecordingConnection(db_path)
    yield conn
    conn.close()


def make_engine(connection: LocalConnection, migrations_dir: Path, **kwargs: Any) -> MigrationEngine:
    return MigrationEngine(
        connection,
        MigrationLedger(connection),
        MigrationDirectory(migrations_dir),
        **kwargs,
    )


def table_exists(connection: LocalConnection, name: str) -> bool:
    rows = connection.query("SELECT name FROM sqlite_master WHERE type = 'table' AND name = ?", (name,))
    return bool(rows)


class TestMigrationEngineRun:
    """Tests for MigrationEngine.run."""

    def test_applies_all_pending(
        self, connection: RecordingConnection, migrations_dir: Path, write_migration
    ) -> None:
        """Test the basic create-then-insert scenario."""
        write_migration("a.sql", "CREATE TABLE t(x int);")
        write_migration("b.sql", "INSERT INTO t VALUES(1);")
        engine = make_engine(connection, migrations_dir)

        report = engine.run()

        assert report.applied == ["a.sql", "b.sql"]
        assert report.count == 2
        assert report.state == RunState.DONE
        assert engine.state == RunState.DONE
        assert MigrationLedger(connection).load_applied() == {"a.sql", "b.sql"}
        assert connection.query("SELECT count(*) FROM t") == [(1,)]

    def test_ledger_contains_exactly_applied_files(
        self, connection: RecordingConnection, migrations_dir: Path, write_migration
    ) -> None:
        """Test that the ledger holds exactly the applied names after a run."""
        write_migration("001_a.sql", "CREATE TABLE a(x int);")
        write_migration("002_b.sql", "CREATE TABLE b(x int);")

        make_engine(connection, migrations_dir).run()

        assert MigrationLedger(connection).load_applied() == {"001_a.sql", "002_b.sql"}

    def test_applies_in_lexicographic_order(
        self, connection: RecordingConnection, migrations_dir: Path, write_migration
    ) -> None:
        """Test that files are applied by name, not by creation order."""
        write_migration("003_c.sql", "INSERT INTO log VALUES('c');")
        write_migration("001_a.sql", "CREATE TABLE log(v text);")
        write_migration("002_b.sql", "INSERT INTO log VALUES('b');")

        report = make_engine(connection, migrations_dir).run()

        assert report.applied == ["001_a.sql", "002_b.sql", "003_c.sql"]
        assert connection.scripts[0] == "CREATE TABLE log(v text);"
        assert [r.name for r in MigrationLedger(connection).list_applied()] == report.applied

    def test_checksum_is_recorded(
        self, connection: RecordingConnection, migrations_dir: Path, write_migration
    ) -> None:
        """Test that the ledger stores the checksum of the applied file."""
        write_migration("001_a.sql", "CREATE TABLE a(x int);")

        make_engine(connection, migrations_dir).run()

        (record,) = MigrationLedger(connection).list_applied()
        assert record.checksum == MigrationFile(name="001_a.sql", content="CREATE TABLE a(x int);").checksum

    def test_empty_directory_executes_nothing(
        self, connection: RecordingConnection, migrations_dir: Path
    ) -> None:
        """Test that an empty directory is a successful no-op."""
        report = make_engine(connection, migrations_dir).run()

        assert report.count == 0
        assert report.state == RunState.DONE
        assert connection.scripts == []
        assert table_exists(connection, "migrations")

    def test_second_run_is_idempotent(
        self, connection: RecordingConnection, migrations_dir: Path, write_migration
    ) -> None:
        """Test that re-running without new files applies nothing."""
        write_migration("a.sql", "CREATE TABLE t(x int);")
        write_migration("b.sql", "INSERT INTO t VALUES(1);")
        engine = make_engine(connection, migrations_dir)
        engine.run()
        ledger_before = MigrationLedger(connection).list_applied()
        connection.scripts.clear()

        report = engine.run()

        assert report.applied == []
        assert report.skipped == ["a.sql", "b.sql"]
        assert report.state == RunState.DONE
        assert connection.scripts == []
        assert MigrationLedger(connection).list_applied() == ledger_before
        assert connection.query("SELECT count(*) FROM t") == [(1,)]

    def test_new_file_applied_on_later_run(
        self, connection: RecordingConnection, migrations_dir: Path, write_migration
    ) -> None:
        """Test that only files added since the last run are applied."""
        write_migration("001_a.sql", "CREATE TABLE t(x int);")
        engine = make_engine(connection, migrations_dir)
        engine.run()

        write_migration("002_b.sql", "INSERT INTO t VALUES(1);")
        report = engine.run()

        assert report.applied == ["002_b.sql"]
        assert report.skipped == ["001_a.sql"]

    def test_failure_stops_run_and_is_not_recorded(
        self, connection: RecordingConnection, migrations_dir: Path, write_migration
    ) -> None:
        """Test that a failing file is not recorded and later files are not applied."""
        write_migration("a.sql", "CREATE TABLE t(x int);")
        write_migration("b.sql", "INSERT INTO nowhere VALUES(1);")
        write_migration("c.sql", "CREATE TABLE c(x int);")
        engine = make_engine(connection, migrations_dir)

        with pytest.raises(ExecutionError) as exc_info:
            engine.run()

        assert exc_info.value.migration == "b.sql"
        assert engine.state == RunState.FAILED
        assert engine.report.applied == ["a.sql"]
        assert MigrationLedger(connection).load_applied() == {"a.sql"}
        assert len(connection.scripts) == 2
        assert not table_exists(connection, "c")

    def test_invalid_sql_leaves_only_earlier_files_recorded(
        self, connection: RecordingConnection, migrations_dir: Path, write_migration
    ) -> None:
        """Test the create-then-invalid scenario."""
        write_migration("a.sql", "CREATE TABLE t(x int);")
        write_migration("b.sql", "THIS IS NOT SQL;")

        with pytest.raises(ExecutionError):
            make_engine(connection, migrations_dir).run()

        assert MigrationLedger(connection).load_applied() == {"a.sql"}
        assert table_exists(connection, "t")

    def test_failed_file_is_retried_after_fix(
        self, connection: RecordingConnection, migrations_dir: Path, write_migration
    ) -> None:
        """Test that fixing a failed file lets the next run continue from it."""
        write_migration("a.sql", "CREATE TABLE t(x int);")
        write_migration("b.sql", "INSERT INTO nowhere VALUES(1);")
        engine = make_engine(connection, migrations_dir)
        with pytest.raises(ExecutionError):
            engine.run()

        write_migration("b.sql", "INSERT INTO t VALUES(1);")
        report = engine.run()

        assert report.applied == ["b.sql"]
        assert MigrationLedger(connection).load_applied() == {"a.sql", "b.sql"}

    def test_partial_file_is_rolled_back(
        self, connection: RecordingConnection, migrations_dir: Path, write_migration
    ) -> None:
        """Test that a file failing halfway leaves none of its statements applied."""
        write_migration("a.sql", "CREATE TABLE half(x int);\nINSERT INTO nowhere VALUES(1);")

        with pytest.raises(ExecutionError):
            make_engine(connection, migrations_dir).run()

        assert not table_exists(connection, "half")
        assert MigrationLedger(connection).load_applied() == set()

    def test_record_failure_is_inconsistent_state(
        self, db_path: Path, migrations_dir: Path, write_migration
    ) -> None:
        """Test that executed-but-unrecorded migrations are flagged."""
        write_migration("a.sql", "CREATE TABLE t(x int);")
        write_migration("b.sql", "CREATE TABLE u(x int);")
        connection = RecordingConnection(db_path, fail_on="INSERT INTO migrations")
        engine = make_engine(connection, migrations_dir)

        with pytest.raises(InconsistentStateError) as exc_info:
            engine.run()

        assert exc_info.value.migration == "a.sql"
        assert isinstance(exc_info.value.__cause__, StorageError)
        assert engine.state == RunState.FAILED
        assert table_exists(connection, "t")
        assert not table_exists(connection, "u")
        assert MigrationLedger(connection).load_applied() == set()
        connection.close()

    def test_ledger_creation_failure(self, db_path: Path, migrations_dir: Path, write_migration) -> None:
        """Test that a ledger that cannot be created aborts before any SQL runs."""
        write_migration("a.sql", "CREATE TABLE t(x int);")
        connection = RecordingConnection(db_path, fail_on="CREATE TABLE IF NOT EXISTS")
        engine = make_engine(connection, migrations_dir)

        with pytest.raises(StorageError):
            engine.run()

        assert engine.state == RunState.FAILED
        assert connection.scripts == []
        connection.close()

    def test_missing_directory(self, connection: RecordingConnection, tmp_path: Path) -> None:
        """Test that a missing migrations directory fails the run."""
        engine = make_engine(connection, tmp_path / "nope")

        with pytest.raises(DirectoryNotFoundError):
            engine.run()

        assert engine.state == RunState.FAILED

    def test_before_apply_called_with_pending(
        self, connection: RecordingConnection, migrations_dir: Path, write_migration
    ) -> None:
        """Test that the hook sees the pending files before they are applied."""
        write_migration("001_a.sql", "CREATE TABLE t(x int);")
        seen: list[list[str]] = []

        def hook(pending: list[MigrationFile]) -> None:
            seen.append([m.name for m in pending])
            assert connection.scripts == []

        engine = make_engine(connection, migrations_dir, before_apply=hook)
        engine.run()
        engine.run()

        assert seen == [["001_a.sql"]]

    def test_files_without_final_semicolon(
        self, connection: RecordingConnection, migrations_dir: Path, write_migration
    ) -> None:
        """Test that a last statement without ';' or followed by a comment still applies."""
        write_migration("001_a.sql", "CREATE TABLE t(x int)")
        write_migration("002_b.sql", "INSERT INTO t VALUES(1)\n-- done")

        report = make_engine(connection, migrations_dir).run()

        assert report.applied == ["001_a.sql", "002_b.sql"]
        assert report.state == RunState.DONE
        assert connection.query("SELECT x FROM t") == [(1,)]
        assert not connection._conn.in_transaction

    def test_file_names_are_printed_literally(
        self, connection: RecordingConnection, migrations_dir: Path, write_migration
    ) -> None:
        """Test that brackets in file names are not read as console markup."""
        write_migration("001_[bold]init.sql", "CREATE TABLE t(x int);")
        console = Console(record=True, width=200)

        make_engine(connection, migrations_dir, console=console).run()
        make_engine(connection, migrations_dir, console=console).run()

        output = console.export_text()
        assert "Migration applied for file 001_[bold]init.sql" in output
        assert "Skipping file 001_[bold]init.sql, it is already applied" in output


class TestMigrationEnginePlan:
    """Tests for MigrationEngine.plan."""

    def test_plan_does_not_create_ledger(
        self, connection: RecordingConnection, migrations_dir: Path, write_migration
    ) -> None:
        """Test that planning is read-only."""
        write_migration("001_a.sql", "CREATE TABLE t(x int);")

        plan = make_engine(connection, migrations_dir).plan()

        assert [m.name for m in plan.pending] == ["001_a.sql"]
        assert [(s.name, s.state) for s in plan.statuses] == [("001_a.sql", MigrationState.PENDING)]
        assert not table_exists(connection, "migrations")
        assert connection.scripts == []

    def test_plan_statuses(self, connection: RecordingConnection, migrations_dir: Path, write_migration) -> None:
        """Test applied, modified, missing and pending classification."""
        write_migration("001_a.sql", "CREATE TABLE a(x int);")
        write_migration("002_b.sql", "CREATE TABLE b(x int);")
        write_migration("003_c.sql", "CREATE TABLE c(x int);")
        engine = make_engine(connection, migrations_dir)
        engine.run()

        write_migration("002_b.sql", "CREATE TABLE b(x int, y int);")
        (migrations_dir / "003_c.sql").unlink()
        write_migration("004_d.sql", "CREATE TABLE d(x int);")
        plan = engine.plan()

        assert [(s.name, s.state) for s in plan.statuses] == [
            ("001_a.sql", MigrationState.APPLIED),
            ("002_b.sql", MigrationState.MODIFIED),
            ("003_c.sql", MigrationState.MISSING),
            ("004_d.sql", MigrationState.PENDING),
        ]
        assert plan.modified == ["002_b.sql"]
        assert [m.name for m in plan.pending] == ["004_d.sql"]
        assert plan.statuses[0].applied_at is not None

    def test_record_without_checksum_counts_as_applied(
        self, connection: RecordingConnection, migrations_dir: Path, write_migration
    ) -> None:
        """Test that ledger rows written without a checksum are not reported as modified."""
        write_migration("001_a.sql", "CREATE TABLE a(x int);")
        ledger = MigrationLedger(connection)
        ledger.ensure_ledger()
        ledger.record_applied("001_a.sql")

        plan = make_engine(connection, migrations_dir).plan()

        assert plan.statuses[0].state == MigrationState.APPLIED
        assert plan.pending == []
