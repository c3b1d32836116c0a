"""Progress inspection commands.

All commands read progress records exported as JSON lines, e.g. collected
with ``json.dumps(query.lastProgress)`` or a listener writing
``event.progress.json``.
"""

from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import typer

from streamkeeper.cli.output import (
    fail,
    output_format,
    print_info,
    print_mapping,
    print_records,
    print_success,
    print_warning,
)
from streamkeeper.config import get_settings
from streamkeeper.exceptions import StreamKeeperError
from streamkeeper.logging_config import get_logger
from streamkeeper.progress import BatchKind, ProgressStore, ProgressTracker, load_progress_file
from streamkeeper.trigger import parse_interval

app = typer.Typer(help="Inspect micro-batch progress of streaming queries")
logger = get_logger(__name__)

ProgressFile = typer.Argument(
    ...,
    help="JSON-lines file of progress records",
    exists=True,
    file_okay=True,
    dir_okay=False,
    readable=True,
)

_BATCH_COLUMNS = [
    "batch_id",
    "kind",
    "timestamp",
    "num_input_rows",
    "trigger_execution_ms",
    "processed_rows_per_second",
]


def _load(path: Path, query_id: Optional[str]) -> ProgressTracker:
    records = load_progress_file(path)
    tracker = ProgressTracker(
        max_history=max(len(records), 1),
        query_id=query_id,
    )
    tracker.record_all(records)
    return tracker


def _verbose(ctx: typer.Context) -> bool:
    return getattr(ctx.obj, "verbose", False)


QueryIdOption = typer.Option(
    None, "--query-id", "-i", help="Only use records of this query id"
)


@app.command()
def summary(
    ctx: typer.Context,
    path: Path = ProgressFile,
    query_id: Optional[str] = QueryIdOption,
) -> None:
    """
    Count data batches, no-data batches and idle events.

    Batch ids skipped between executed batches are listed; idle triggers do
    not consume batch ids. When the file holds records of several queries,
    select one with --query-id.

    Examples:
        streamkeeper progress summary progress.jsonl
    """
    try:
        tracker = _load(path, query_id)
        print_mapping(output_format(ctx), tracker.summary().to_dict(), title="Progress summary")
    except StreamKeeperError as e:
        fail(e, _verbose(ctx))


@app.command("batches")
def list_batches(
    ctx: typer.Context,
    path: Path = ProgressFile,
    kind: Optional[BatchKind] = typer.Option(
        None, "--kind", "-k", help="Only show one kind: data, no_data, idle"
    ),
    query_id: Optional[str] = QueryIdOption,
) -> None:
    """
    List progress records with their batch classification.

    Examples:
        streamkeeper progress batches progress.jsonl --kind no_data
    """
    try:
        tracker = _load(path, query_id)
        rows = [b.to_record() for b in tracker.batches(kind)]
        print_records(output_format(ctx), rows, title="Progress", columns=_BATCH_COLUMNS)
    except StreamKeeperError as e:
        fail(e, _verbose(ctx))


@app.command()
def health(
    ctx: typer.Context,
    path: Path = ProgressFile,
    trigger: Optional[str] = typer.Option(
        None,
        "--trigger",
        "-t",
        help='Processing-time trigger interval, e.g. "10 seconds"',
    ),
    query_id: Optional[str] = QueryIdOption,
    at: Optional[datetime] = typer.Option(
        None,
        "--at",
        help="Evaluate staleness at this time instead of now (UTC)",
    ),
) -> None:
    """
    Check whether a query is falling behind, overrunning its trigger, or stalled.

    A query is stalled when no batch executed within stall_intervals trigger
    intervals; idle heartbeats do not count. Exits with status 1 when a
    problem is found.

    Examples:
        streamkeeper progress health progress.jsonl --trigger "30 seconds"
    """
    settings = get_settings()
    try:
        interval = parse_interval(trigger) if trigger else settings.default_trigger_seconds
    except ValueError as e:
        raise typer.BadParameter(str(e), param_hint="--trigger")

    now = at
    if now is not None and now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    try:
        report = _load(path, query_id).health(
            interval,
            falling_behind_factor=settings.falling_behind_factor,
            stall_intervals=settings.stall_intervals,
            now=now,
        )
    except StreamKeeperError as e:
        fail(e, _verbose(ctx))

    print_mapping(output_format(ctx), report.to_dict(), title="Query health")

    if not report.healthy:
        for reason in report.reasons:
            print_warning(reason)
        raise typer.Exit(1)


@app.command()
def export(
    ctx: typer.Context,
    path: Path = ProgressFile,
    out: Optional[Path] = typer.Option(
        None,
        "--out",
        "-d",
        help="Target directory for Parquet files (default: progress_store_path)",
    ),
    query_id: Optional[str] = QueryIdOption,
) -> None:
    """
    Write progress records to Parquet for long-term batch history.

    Examples:
        streamkeeper progress export progress.jsonl --out /data/progress
    """
    settings = get_settings()
    target = out or settings.progress_store_path
    try:
        tracker = _load(path, query_id)
        store = ProgressStore(target, flush_count=settings.progress_flush_count)
        written = store.extend(tracker.batches())
        last = store.flush()
        if last is not None:
            written.append(last)
    except StreamKeeperError as e:
        fail(e, _verbose(ctx))

    if not written:
        print_info("No progress records to export")
        return

    print_success(f"Exported {len(tracker)} record(s) to {len(written)} file(s) in {target}")
    logger.info("progress_exported", records=len(tracker), files=len(written), target=str(target))
