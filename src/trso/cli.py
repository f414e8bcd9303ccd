"""CLI interface for trso."""

import sys
from pathlib import Path

# Runtime version check - must be before other imports
if sys.version_info < (3, 11):
    print("Error: trso requires Python 3.11 or higher", file=sys.stderr)
    version = f"Python {sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}"
    print(f"Current version: {version}", file=sys.stderr)
    print("\nPlease upgrade your Python installation:", file=sys.stderr)
    print("  https://www.python.org/downloads/", file=sys.stderr)
    sys.exit(1)

from typing import Any, Callable, NoReturn

import click
from rich.console import Console
from rich.markup import escape

from . import __version__
from .config import Config, load_config, write_default_config
from .constants import DEFAULT_CONFIG_FILENAME, EXIT_FAILURE, EXIT_INCONSISTENT_STATE, MEMORY_DATABASE
from .db import DatabaseConnection, open_connection
from .display import display_guidance, display_pending, display_run_results, display_status
from .engine import MigrationEngine
from .error_guidance import GuidanceProvider
from .errors import InconsistentStateError, TrsoError
from .ledger import MigrationLedger
from .loader import MigrationDirectory, MigrationFile
from .utils import backup_database, expand_path, setup_logging

console = Console()


def _resolve_config(ctx: click.Context, overrides: dict[str, Any]) -> Config:
    """Load configuration or exit with an error message."""
    try:
        return load_config(ctx.obj["config_path"], overrides=overrides)
    except (FileNotFoundError, ValueError, OSError) as e:
        console.print(f"[red]Error:[/red] Configuration: {escape(str(e))}")
        sys.exit(EXIT_FAILURE)


def _build_overrides(
    path: Path | None = None,
    local: bool | None = None,
    url: str | None = None,
    table: str | None = None,
) -> dict[str, Any]:
    """Turn CLI options into nested config overrides."""
    overrides: dict[str, Any] = {}
    if local is not None:
        overrides.setdefault("database", {})["local"] = local
    if url is not None:
        overrides.setdefault("database", {})["url"] = url
    if path is not None:
        overrides.setdefault("migrations", {})["path"] = str(path)
    if table is not None:
        overrides.setdefault("migrations", {})["table"] = table
    return overrides


def _build_engine(
    config: Config,
    connection: DatabaseConnection,
    before_apply: Callable[[list[MigrationFile]], None] | None = None,
) -> MigrationEngine:
    ledger = MigrationLedger(connection, config.ledger_table)
    migrations = MigrationDirectory(config.migrations_path, config.extension)
    return MigrationEngine(connection, ledger, migrations, console=console, before_apply=before_apply)


def _make_backup_hook(config: Config) -> Callable[[list[MigrationFile]], None]:
    """Create a hook that backs up the local database file before applying."""

    def backup(pending: list[MigrationFile]) -> None:
        db_path = expand_path(config.url_or_path)
        if not db_path.exists():
            return
        try:
            backup_path = backup_database(db_path)
            console.print(f"  Created backup: {backup_path}")
        except OSError as e:
            console.print(f"[yellow]Warning:[/yellow] Failed to create backup: {e}")

    return backup


def _report_failure(error: TrsoError, config: Config) -> NoReturn:
    """Print an error with guidance and exit with the matching code."""
    if error.migration:
        console.print(f"[red]Error:[/red] {error.kind} in migration {error.migration}: {escape(str(error))}")
    else:
        console.print(f"[red]Error:[/red] {error.kind}: {escape(str(error))}")

    guidance = GuidanceProvider.for_error(error, str(config.migrations_path), config.ledger_table)
    if guidance:
        display_guidance(guidance, console)

    if isinstance(error, InconsistentStateError):
        sys.exit(EXIT_INCONSISTENT_STATE)
    sys.exit(EXIT_FAILURE)


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--config",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help=f"Config file path (default: $TRSO_CONFIG or ./{DEFAULT_CONFIG_FILENAME})",
)
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, config: Path | None, verbose: bool) -> None:
    """trso: apply SQL migration files to SQLite and libSQL databases."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config
    setup_logging(verbose)


@cli.command()
@click.option(
    "--path",
    "-p",
    type=click.Path(file_okay=False, path_type=Path),
    help="Migrations directory (overrides TRSO_MIGRATIONS_PATH)",
)
@click.option(
    "--local/--remote",
    default=None,
    help="Treat the database as a local file or a remote server (overrides TRSO_LOCAL)",
)
@click.option("--url", help="Database file path or server URL (overrides TRSO_PATH_URL)")
@click.option("--table", help="Ledger table name (default: migrations)")
@click.option("--dry-run", is_flag=True, help="Show pending migrations without applying them")
@click.option("--backup", is_flag=True, help="Back up a local database file before applying")
@click.pass_context
def migrate(
    ctx: click.Context,
    path: Path | None,
    local: bool | None,
    url: str | None,
    table: str | None,
    dry_run: bool,
    backup: bool,
) -> None:
    """
    Apply pending migrations in file name order.

    Every .sql file in the migrations directory that is not recorded in the
    ledger table is executed in its own transaction and then recorded.
    The run stops at the first failing file.

    Examples:

        \b
        # Local SQLite file
        TRSO_LOCAL=true TRSO_PATH_URL=./app.db trso migrate

        \b
        # Remote libSQL database
        TRSO_PATH_URL=libsql://mydb-me.turso.io TRSO_TOKEN=... trso migrate

        \b
        # Preview what would be applied
        trso migrate --dry-run
    """
    config = _resolve_config(ctx, _build_overrides(path, local, url, table))

    before_apply = None
    if backup:
        if config.local and config.url_or_path != MEMORY_DATABASE:
            before_apply = _make_backup_hook(config)
        else:
            console.print("[yellow]Warning:[/yellow] --backup only applies to local database files")

    if not dry_run:
        console.print("Migration is starting ...")

    engine: MigrationEngine | None = None
    try:
        with open_connection(config) as connection:
            engine = _build_engine(config, connection, before_apply)
            if dry_run:
                plan = engine.plan()
                display_pending(plan.pending, console)
                for name in plan.modified:
                    console.print(f"[yellow]Warning:[/yellow] {name} changed after it was applied")
                return
            report = engine.run()
    except TrsoError as e:
        if engine is not None:
            display_run_results(engine.report, console)
        _report_failure(e, config)

    display_run_results(report, console)
    console.print("Migration finished.")


@cli.command()
@click.option(
    "--path",
    "-p",
    type=click.Path(file_okay=False, path_type=Path),
    help="Migrations directory (overrides TRSO_MIGRATIONS_PATH)",
)
@click.option("--local/--remote", default=None, help="Treat the database as a local file or a remote server")
@click.option("--url", help="Database file path or server URL (overrides TRSO_PATH_URL)")
@click.option("--table", help="Ledger table name (default: migrations)")
@click.pass_context
def status(
    ctx: click.Context,
    path: Path | None,
    local: bool | None,
    url: str | None,
    table: str | None,
) -> None:
    """
    Show which migrations are applied, pending, modified or missing.

    Nothing is written to the database, not even the ledger table.

    Examples:

        \b
        trso status
        trso status --path ./db/migrations
    """
    config = _resolve_config(ctx, _build_overrides(path, local, url, table))

    try:
        with open_connection(config) as connection:
            plan = _build_engine(config, connection).plan()
            display_status(plan, connection.description, console)
    except TrsoError as e:
        _report_failure(e, config)


@cli.command()
@click.argument(
    "config-file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=DEFAULT_CONFIG_FILENAME,
)
@click.option("--local/--remote", default=None, help="Database mode to write into the file")
@click.option("--url", help="Database file path or server URL to write into the file")
@click.option("--force", "-f", is_flag=True, help="Overwrite an existing file")
def init(config_file: Path, local: bool | None, url: str | None, force: bool) -> None:
    """
    Write a starter config file.

    The token is deliberately left empty; prefer setting TRSO_TOKEN in the
    environment over storing it in the file.

    Examples:

        \b
        trso init
        trso init --local --url ./app.db
    """
    if config_file.exists() and not force:
        console.print(f"[red]Error:[/red] {config_file} already exists (use --force to overwrite)")
        sys.exit(EXIT_FAILURE)

    try:
        written = write_default_config(config_file, _build_overrides(local=local, url=url))
    except OSError as e:
        console.print(f"[red]Error:[/red] Could not write {config_file}: {escape(str(e))}")
        sys.exit(EXIT_FAILURE)

    console.print(f"[green]✓[/green] Wrote {written}")


if __name__ == "__main__":
    cli()
