"""Rich console singleton and output helpers."""

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from plan_fixtures.schemas.run_summary import RunSummary

# Status/progress to stderr so it doesn't pollute piped JSON output
console = Console(stderr=True)

# Data output to stdout (pipeable to jq); resolved at print time
stdout_console = Console()


def print_ok(msg: str) -> None:
    """Print a success message to stderr."""
    console.print(f"[green]✓[/green] {escape(msg)}")


def print_err(msg: str) -> None:
    """Print an error message to stderr.

    Engine messages quote Rego refs like ``data["x"]``, so text is escaped.
    """
    console.print(f"[red]✗[/red] {escape(msg)}")


def print_warn(msg: str) -> None:
    """Print a warning message to stderr."""
    console.print(f"[yellow]![/yellow] {escape(msg)}")


def output_json(data, *, ctx: typer.Context) -> bool:
    """Print data as JSON on stdout when --json is active.

    Returns:
        True if the data was printed.
    """
    if not ctx.obj.get("json"):
        return False
    stdout_console.print_json(data=data)
    return True


def print_summary(summary: RunSummary, *, ctx: typer.Context, brief: bool = False) -> None:
    """Render the run tally, with a per-reason table when anything failed.

    ``brief`` (--quiet) prints the bare tally line only.
    """
    if output_json(summary.to_report(), ctx=ctx):
        return

    if brief:
        console.print(summary.tally_line(), markup=False, highlight=False)
        return

    if summary.failures:
        print_warn(summary.tally_line())
        table = Table(title="Failures by reason", show_lines=False)
        table.add_column("reason")
        table.add_column("count", justify="right")
        for reason, count in summary.to_report()["failures_by_reason"].items():
            table.add_row(reason, str(count))
        console.print(table)
    else:
        print_ok(summary.tally_line())
    console.print(f"  Files written: {summary.files_written}")


def print_entrypoint_rows(rows: list[dict], *, ctx: typer.Context, title: str = "") -> None:
    """Print per-case entry points as JSON or a Rich table."""
    if output_json(rows, ctx=ctx):
        return

    if not rows:
        console.print("[dim]No cases[/dim]")
        return

    table = Table(title=title, show_lines=False)
    for col in ("note", "entrypoints", "query"):
        table.add_column(col)
    for row in rows:
        table.add_row(
            escape(row["note"]),
            escape("\n".join(row["entrypoints"])),
            escape("\n".join(row["query"])),
        )
    console.print(table)
