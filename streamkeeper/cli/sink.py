"""Sink classification and file sink log commands."""

from pathlib import Path
from typing import Optional

import typer

from streamkeeper.cli.output import (
    fail,
    output_format,
    print_mapping,
    print_records,
)
from streamkeeper.exceptions import StreamKeeperError
from streamkeeper.sinks import FileSinkLog, classify_sink

app = typer.Typer(help="Classify sinks and inspect file sink metadata logs")


@app.command()
def classify(
    ctx: typer.Context,
    description: str = typer.Argument(
        ..., help="The sink.description string from a progress record"
    ),
) -> None:
    """
    Classify a sink and report its delivery guarantee.

    Examples:
        streamkeeper sink classify "FileSink[/data/orders]"

        streamkeeper sink classify ForeachBatchSink
    """
    info = classify_sink(description)
    print_mapping(output_format(ctx), info.to_dict(), title="Sink")


@app.command()
def inspect(
    ctx: typer.Context,
    output_path: Path = typer.Argument(
        ...,
        help="File sink output directory (contains _spark_metadata)",
        exists=True,
        file_okay=False,
        dir_okay=True,
    ),
    batch: Optional[int] = typer.Option(
        None,
        "--batch",
        "-b",
        help="List the files written by this batch",
        min=0,
    ),
) -> None:
    """
    Summarise a file sink's metadata log, or list one batch's files.

    Only files listed in _spark_metadata are visible to batch readers; files
    in the output directory that are not listed belong to failed batches.

    Examples:
        streamkeeper sink inspect /data/orders

        streamkeeper sink inspect /data/orders --batch 12
    """
    try:
        sink_log = FileSinkLog(output_path)
        fmt = output_format(ctx)
        if batch is None:
            print_mapping(fmt, sink_log.summary(), title="File sink log")
        else:
            rows = [
                {"path": e.path, "size": e.size, "action": e.action}
                for e in sink_log.entries(batch)
            ]
            print_records(fmt, rows, title=f"Batch {batch}")
    except StreamKeeperError as e:
        fail(e, getattr(ctx.obj, "verbose", False))
