"""CLI module for streamkeeper."""

from streamkeeper.cli.main import app, main_cli

__all__ = ["app", "main_cli"]
