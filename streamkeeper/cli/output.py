"""Output formatting utilities for CLI."""

import csv
import json
import traceback
from io import StringIO
from typing import Any, NoReturn

import typer
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm
from rich.table import Table

from streamkeeper.exceptions import StreamKeeperError, get_exit_code

console = Console()
console_err = Console(stderr=True)

# Off for --quiet and for json or csv output.
_status_enabled = True


def set_status_messages(enabled: bool) -> None:
    """Turn success, warning and info lines on or off."""
    global _status_enabled
    _status_enabled = enabled



def output_format(ctx: typer.Context) -> str:
    """Output format selected on the root command."""
    return getattr(ctx.obj, "output_format", "table")


def print_table(
    data: list[dict[str, Any]],
    title: str | None = None,
    columns: list[str] | None = None,
) -> None:
    """Print data as a Rich table.

    Args:
        data: List of dictionaries to display
        title: Optional table title
        columns: Optional list of column names (defaults to all keys)
    """
    if not data:
        console.print("[yellow]No data to display[/yellow]")
        return

    if columns is None:
        columns = list(data[0].keys())

    table = Table(title=title, show_header=True, header_style="bold cyan")

    for col in columns:
        table.add_column(col, style="white", no_wrap=False)

    for row in data:
        table.add_row(*[_cell(row.get(col, "")) for col in columns])

    console.print(table)


def _cell(value: Any) -> str:
    if value is None:
        return "-"
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v) for v in value) or "-"
    return str(value)


def print_json(data: Any, indent: int = 2) -> None:
    """Print data as JSON.

    Args:
        data: Data to print as JSON
        indent: Number of spaces for indentation
    """
    console.print_json(json.dumps(data, indent=indent, default=str))


def print_csv(data: list[dict[str, Any]], columns: list[str] | None = None) -> None:
    """Print data as CSV.

    Args:
        data: List of dictionaries to display
        columns: Optional list of column names
    """
    if not data:
        return

    if columns is None:
        columns = list(data[0].keys())

    output = StringIO()
    writer = csv.DictWriter(output, fieldnames=columns, extrasaction="ignore")
    writer.writeheader()
    writer.writerows(data)

    console.print(output.getvalue(), end="", markup=False, highlight=False, soft_wrap=True)


def print_dict(data: dict[str, Any], title: str | None = None) -> None:
    """Print dictionary as a formatted table.

    Args:
        data: Dictionary to display
        title: Optional table title
    """
    table = Table(title=title, show_header=False)
    table.add_column("Key", style="cyan", no_wrap=True)
    table.add_column("Value", style="white")

    for key, value in data.items():
        table.add_row(key, _cell(value))

    console.print(table)


def print_records(
    fmt: str,
    data: list[dict[str, Any]],
    title: str | None = None,
    columns: list[str] | None = None,
) -> None:
    """Print a list of records in the selected output format."""
    if fmt == "json":
        print_json(data)
    elif fmt == "csv":
        print_csv(data, columns)
    else:
        print_table(data, title=title, columns=columns)


def print_mapping(fmt: str, data: dict[str, Any], title: str | None = None) -> None:
    """Print a single record in the selected output format."""
    if fmt == "json":
        print_json(data)
    elif fmt == "csv":
        print_csv([data])
    else:
        print_dict(data, title=title)


def print_success(message: str) -> None:
    """Print success message with checkmark.

    Args:
        message: Success message to display
    """
    if not _status_enabled:
        return
    console.print(f"[green]✓[/green] {message}")


def print_error(message: str) -> None:
    """Print error message with X mark.

    Args:
        message: Error message to display
    """
    console_err.print(f"[red]✗[/red] {message}")


def print_warning(message: str) -> None:
    """Print warning message with warning symbol.

    Args:
        message: Warning message to display
    """
    if not _status_enabled:
        return
    console.print(f"[yellow]⚠[/yellow] {message}")


def print_info(message: str) -> None:
    """Print info message with info symbol.

    Args:
        message: Info message to display
    """
    if not _status_enabled:
        return
    console.print(f"[blue]ℹ[/blue] {message}")


def confirm(message: str, default: bool = False) -> bool:
    """Ask user for confirmation.

    Args:
        message: Confirmation prompt
        default: Default value if user presses enter

    Returns:
        True if user confirmed, False otherwise
    """
    return Confirm.ask(message, default=default)


def print_panel(content: str, title: str | None = None, border_style: str = "cyan") -> None:
    """Print content in a bordered panel.

    Args:
        content: Content to display
        title: Optional panel title
        border_style: Border color style
    """
    panel = Panel(content, title=title, border_style=border_style)
    console.print(panel)


def report_error(error: Exception, verbose: bool = False) -> int:
    """Print an error to stderr and return its mapped exit code."""
    if isinstance(error, StreamKeeperError):
        print_error(error.message)
        if verbose and error.context:
            for key, value in error.context.items():
                console_err.print(f"  {key}: {value}")
    else:
        print_error(f"Unexpected error: {error}")
        if verbose:
            console_err.print(traceback.format_exc())
    return get_exit_code(error)


def fail(error: Exception, verbose: bool = False) -> NoReturn:
    """Report an error and exit with its mapped exit code."""
    raise typer.Exit(report_error(error, verbose))
