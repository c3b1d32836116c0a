"""Configuration management CLI commands."""

import json
from typing import Optional

import typer
import yaml
from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table

from streamkeeper.cli.output import print_error, print_info, print_panel
from streamkeeper.config import Settings, get_settings
from streamkeeper.logging_config import get_logger

app = typer.Typer(help="Configuration management")
console = Console()
logger = get_logger(__name__)

SECTIONS = ["query", "checkpoint", "progress", "logging"]


@app.command("show")
def show_config(
    section: Optional[str] = typer.Option(
        None,
        "--section",
        "-s",
        help="Show specific section: query, checkpoint, progress, logging",
    ),
    format: str = typer.Option(
        "table",
        "--format",
        "-f",
        help="Output format: table, yaml, json",
    ),
) -> None:
    """
    Show current configuration.

    Displays all streamkeeper settings or a specific section, in the same
    layout the YAML config file uses.
    """
    if section and section not in SECTIONS:
        print_error(f"Unknown section: {section}")
        print_info(f"Available sections: {', '.join(SECTIONS)}")
        raise typer.Exit(1)

    try:
        settings = get_settings()
    except Exception as e:
        logger.exception("Failed to load configuration")
        print_error(f"Failed to load configuration: {str(e)}")
        raise typer.Exit(1)

    config_dict = settings_to_dict(settings)
    if section:
        config_dict = {section: config_dict[section]}

    if format == "yaml":
        config_yaml = yaml.dump(config_dict, default_flow_style=False, sort_keys=False)
        console.print(Syntax(config_yaml, "yaml", theme="monokai", line_numbers=True))
    elif format == "json":
        json_str = json.dumps(config_dict, indent=2)
        console.print(Syntax(json_str, "json", theme="monokai", line_numbers=True))
    else:
        console.print()
        print_panel("streamkeeper Configuration", border_style="cyan")
        console.print()
        for section_name, values in config_dict.items():
            console.print(_section_table(section_name, values))
            console.print()


def _section_table(section: str, values: dict) -> Table:
    table = Table(
        title=f"{section.capitalize()} Settings", show_header=True, header_style="bold cyan"
    )
    table.add_column("Setting", style="cyan", no_wrap=True)
    table.add_column("Value", style="white")
    for key, value in values.items():
        table.add_row(key, str(value))
    return table


def settings_to_dict(settings: Settings) -> dict:
    """Convert settings object to the nested YAML layout."""
    return {
        "query": {
            "stop_timeout_seconds": settings.stop_timeout_seconds,
            "stop_poll_interval_seconds": settings.stop_poll_interval_seconds,
            "default_trigger_interval": settings.default_trigger_interval,
        },
        "checkpoint": {
            "min_batches_to_retain": settings.min_batches_to_retain,
        },
        "progress": {
            "history_size": settings.progress_history_size,
            "store_path": str(settings.progress_store_path),
            "flush_count": settings.progress_flush_count,
            "falling_behind_factor": settings.falling_behind_factor,
            "stall_intervals": settings.stall_intervals,
        },
        "logging": {
            "level": settings.log_level,
            "format": settings.log_format,
        },
    }
