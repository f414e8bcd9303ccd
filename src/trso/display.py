"""Display functions for trso CLI output."""

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from .constants import MigrationState
from .engine import MigrationPlan, MigrationReport
from .error_guidance import ErrorGuidance
from .loader import MigrationFile

_STATE_STYLES = {
    MigrationState.APPLIED: "[green]✓ Applied[/green]",
    MigrationState.PENDING: "[yellow]… Pending[/yellow]",
    MigrationState.MODIFIED: "[red]! Modified[/red]",
    MigrationState.MISSING: "[magenta]? Missing file[/magenta]",
}


def display_run_results(report: MigrationReport, console: Console) -> None:
    """
    Display migrations applied by a run in a table.

    Args:
        report: Report returned by the engine
        console: Rich console instance for output
    """
    if not report.applied:
        return

    table = Table(title="Applied Migrations")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Migration", style="cyan")
    table.add_column("Status", style="green")

    for index, name in enumerate(report.applied, start=1):
        table.add_row(str(index), escape(name), "✓ Applied")

    console.print(table)
    console.print(f"Applied {report.count} migration(s), skipped {len(report.skipped)}.")


def display_pending(pending: list[MigrationFile], console: Console) -> None:
    """
    Display migrations that would be applied.

    Args:
        pending: Pending migration files in apply order
        console: Rich console instance for output
    """
    if not pending:
        console.print("Nothing to apply, database is up to date.")
        return

    table = Table(title="Pending Migrations")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Migration", style="cyan")
    table.add_column("Checksum", style="blue")

    for index, migration in enumerate(pending, start=1):
        table.add_row(str(index), escape(migration.name), migration.checksum)

    console.print(table)


def display_status(plan: MigrationPlan, target: str, console: Console) -> None:
    """
    Display the status of every known migration.

    Args:
        plan: Plan computed by the engine
        target: Database description shown in the title
        console: Rich console instance for output
    """
    if not plan.statuses:
        console.print("No migrations found.")
        return

    table = Table(title=f"Migrations ({target})")
    table.add_column("Migration", style="cyan")
    table.add_column("Status")
    table.add_column("Applied", style="yellow")

    for status in plan.statuses:
        applied_at = status.applied_at.strftime("%Y-%m-%d %H:%M") if status.applied_at else ""
        table.add_row(escape(status.name), _STATE_STYLES[status.state], applied_at)

    console.print(table)

    if plan.modified:
        console.print(
            Panel(
                "These migrations changed after they were applied:\n"
                + "\n".join(f"  • {escape(name)}" for name in plan.modified)
                + "\nChanges to applied files are never re-run.",
                title="Modified Migrations",
                border_style="yellow",
            )
        )


def display_guidance(guidance: ErrorGuidance, console: Console) -> None:
    """
    Display actionable guidance for an error.

    Args:
        guidance: Guidance to show
        console: Rich console instance for output
    """
    lines = [f"[bold]{guidance.title}[/bold]", ""]
    if guidance.checks:
        lines.append("Check:")
        lines.extend(f"  • {check}" for check in guidance.checks)
    if guidance.fixes:
        lines.append("Fix:")
        lines.extend(f"  • {fix}" for fix in guidance.fixes)
    if guidance.examples:
        lines.append("Examples:")
        lines.extend(f"  $ {example}" for example in guidance.examples)

    console.print(Panel("\n".join(lines), title="Suggestion", border_style="cyan"))
