"""Main CLI entry point for streamkeeper."""

import sys
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from streamkeeper import __version__
from streamkeeper.cli.output import fail, report_error, set_status_messages
from streamkeeper.config import Settings, get_settings
from streamkeeper.exceptions import ConfigurationError
from streamkeeper.logging_config import get_logger, setup_logging

app = typer.Typer(
    name="streamkeeper",
    help="streamkeeper - Operations toolkit for Spark Structured Streaming queries",
    add_completion=True,
    rich_markup_mode="rich",
    no_args_is_help=False,
)

console = Console()
console_err = Console(stderr=True)
logger = get_logger(__name__)


class CLIState:
    """Global CLI state."""

    output_format: str = "table"
    verbose: bool = False
    quiet: bool = False
    settings: Optional[Settings] = None


state = CLIState()


def version_callback(value: bool) -> None:
    """Callback for --version flag."""
    if value:
        console.print(f"streamkeeper version: {__version__}")
        console.print(f"Python: {sys.version.split()[0]}")
        raise typer.Exit(0)


@app.callback()
def main(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version information and exit",
        callback=version_callback,
        is_eager=True,
    ),
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Configuration file path",
        exists=True,
        file_okay=True,
        dir_okay=False,
        readable=True,
    ),
    output: str = typer.Option(
        "table",
        "--output",
        "-o",
        help="Output format: table, json, csv",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose logging",
    ),
    quiet: bool = typer.Option(
        False,
        "--quiet",
        "-q",
        help="Suppress non-error output",
    ),
) -> None:
    """
    streamkeeper - Operations toolkit for Spark Structured Streaming

    Inspect and reconcile checkpoint directories, classify sinks, and
    summarise micro-batch progress of streaming queries.
    """
    state.output_format = output
    state.verbose = verbose
    state.quiet = quiet

    if output not in ["table", "json", "csv"]:
        console_err.print(f"[red]Error:[/red] Invalid output format: {output}")
        console_err.print("Valid formats: table, json, csv")
        raise typer.Exit(1)

    set_status_messages(not quiet and output == "table")

    try:
        state.settings = get_settings(config_path=config, reload=config is not None)
    except ConfigurationError as e:
        fail(e, verbose)

    if verbose:
        setup_logging("DEBUG")
    elif quiet:
        setup_logging("ERROR")
    else:
        setup_logging()

    ctx.obj = state


from streamkeeper.cli import checkpoint, config, progress, sink  # noqa: E402

app.add_typer(checkpoint.app, name="checkpoint", help="Inspect and repair checkpoints")
app.add_typer(sink.app, name="sink", help="Classify and inspect sinks")
app.add_typer(progress.app, name="progress", help="Inspect micro-batch progress")
app.add_typer(config.app, name="config", help="Configuration management")


def main_cli() -> None:
    """Entry point for CLI application with error handling."""
    try:
        app()
    except KeyboardInterrupt:
        console_err.print("\n[yellow]Operation cancelled by user[/yellow]")
        sys.exit(1)
    except Exception as e:
        sys.exit(report_error(e, state.verbose))


if __name__ == "__main__":
    main_cli()
