"""Checkpoint inspection and repair commands.

Rollback and purge only print their plan unless ``--apply`` is given. Stop
the query before applying either: the engine does not expect its checkpoint
to change underneath a running query.
"""

from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import typer

from streamkeeper.checkpoint import (
    Checkpoint,
    apply_plan,
    plan_purge,
    plan_rollback,
    reconcile,
)
from streamkeeper.checkpoint.reconcile import RemovalPlan
from streamkeeper.cli.output import (
    confirm,
    fail,
    output_format,
    print_info,
    print_json,
    print_mapping,
    print_records,
    print_success,
    print_warning,
)
from streamkeeper.config import get_settings
from streamkeeper.exceptions import StreamKeeperError
from streamkeeper.logging_config import get_logger

app = typer.Typer(help="Inspect, reconcile and repair streaming checkpoints")
logger = get_logger(__name__)

CheckpointPath = typer.Argument(
    ...,
    help="Checkpoint directory (the query's checkpointLocation)",
    exists=True,
    file_okay=False,
    dir_okay=True,
    readable=True,
)


def _format_ms(epoch_ms: int) -> str:
    if epoch_ms <= 0:
        return "-"
    return datetime.fromtimestamp(epoch_ms / 1000, tz=timezone.utc).isoformat()


def _verbose(ctx: typer.Context) -> bool:
    return getattr(ctx.obj, "verbose", False)


@app.command()
def inspect(ctx: typer.Context, path: Path = CheckpointPath) -> None:
    """
    Show query id, latest offset and commit, and pending batches.

    A pending batch has offsets but no commit: the engine re-runs it with the
    same offsets when the query restarts.

    Examples:
        streamkeeper checkpoint inspect /chk/orders

        streamkeeper -o json checkpoint inspect /chk/orders
    """
    try:
        summary = Checkpoint(path).summary()
        print_mapping(output_format(ctx), summary.to_dict(), title="Checkpoint")
    except StreamKeeperError as e:
        fail(e, _verbose(ctx))


@app.command()
def batches(
    ctx: typer.Context,
    path: Path = CheckpointPath,
    limit: int = typer.Option(
        20,
        "--limit",
        "-n",
        help="Show only the newest N batches (0 = all)",
        min=0,
    ),
) -> None:
    """
    List planned batches with their commit status and watermark.

    Examples:
        streamkeeper checkpoint batches /chk/orders --limit 5
    """
    try:
        checkpoint = Checkpoint(path)
        batch_ids = checkpoint.offset_batch_ids()
        if limit:
            batch_ids = batch_ids[-limit:]
        committed = set(checkpoint.commit_batch_ids())

        rows = []
        for batch_id in batch_ids:
            offset = checkpoint.offset(batch_id)
            rows.append(
                {
                    "batch_id": batch_id,
                    "committed": batch_id in committed,
                    "batch_timestamp": _format_ms(offset.batch_timestamp_ms),
                    "watermark_ms": offset.batch_watermark_ms,
                    "sources": len(offset.source_offsets),
                }
            )

        print_records(output_format(ctx), rows, title="Batches")
    except StreamKeeperError as e:
        fail(e, _verbose(ctx))


@app.command("reconcile")
def reconcile_command(
    ctx: typer.Context,
    path: Path = CheckpointPath,
    sink_output: Optional[Path] = typer.Option(
        None,
        "--sink-output",
        "-s",
        help="File sink output directory to compare against commits",
        exists=True,
        file_okay=False,
        dir_okay=True,
    ),
) -> None:
    """
    Compare offsets, commits and an optional file sink log.

    Exits with status 1 when an error-level finding is reported.

    Examples:
        streamkeeper checkpoint reconcile /chk/orders

        streamkeeper checkpoint reconcile /chk/orders --sink-output /data/orders
    """
    try:
        report = reconcile(Checkpoint(path), sink_output=sink_output)
    except StreamKeeperError as e:
        fail(e, _verbose(ctx))

    fmt = output_format(ctx)
    if fmt == "json":
        print_mapping(fmt, report.to_dict())
    else:
        print_records(
            fmt,
            [f.to_dict() for f in report.findings],
            title="Reconciliation",
            columns=["severity", "code", "message", "batch_ids"],
        )

    if not report.healthy:
        raise typer.Exit(1)


def _execute_plan(plan: RemovalPlan, apply: bool, yes: bool, fmt: str) -> None:
    if plan.empty:
        if fmt == "json":
            print_json([])
        print_info("Nothing to remove")
        return

    print_records(
        fmt,
        [{"file": str(p)} for p in plan.files],
        title=f"{plan.operation.capitalize()} plan (batches {plan.batch_ids[0]}-{plan.batch_ids[-1]})",
    )

    if not apply:
        print_info("Dry run: re-run with --apply to delete these files")
        return

    if not yes and not confirm(f"Delete {len(plan.files)} file(s)?", default=False):
        print_warning("Aborted")
        raise typer.Exit(1)

    removed = apply_plan(plan, dry_run=False)
    print_success(f"Removed {len(removed)} file(s)")


@app.command()
def rollback(
    ctx: typer.Context,
    path: Path = CheckpointPath,
    to_batch: Optional[int] = typer.Option(
        None,
        "--to-batch",
        "-b",
        help="Last committed batch to keep (default: latest commit)",
        min=0,
    ),
    apply: bool = typer.Option(False, "--apply", help="Delete the files instead of printing the plan"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """
    Remove offsets and commits newer than a committed batch.

    Without --to-batch this drops only uncommitted offsets, so the next run
    re-plans that batch from the sources instead of replaying the recorded
    offsets.

    Examples:
        streamkeeper checkpoint rollback /chk/orders

        streamkeeper checkpoint rollback /chk/orders --to-batch 41 --apply --yes
    """
    try:
        plan = plan_rollback(Checkpoint(path), to_batch=to_batch)
        print_info(f"Rolling back to batch {plan.to_batch}")
        _execute_plan(plan, apply, yes, output_format(ctx))
    except StreamKeeperError as e:
        fail(e, _verbose(ctx))


@app.command()
def purge(
    ctx: typer.Context,
    path: Path = CheckpointPath,
    retain: Optional[int] = typer.Option(
        None,
        "--retain",
        "-r",
        help="Committed batches to keep (default: min_batches_to_retain)",
        min=1,
    ),
    apply: bool = typer.Option(False, "--apply", help="Delete the files instead of printing the plan"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """
    Remove offset and commit files older than the newest N commits.

    Examples:
        streamkeeper checkpoint purge /chk/orders --retain 10
    """
    try:
        if retain is None:
            retain = get_settings().min_batches_to_retain
        plan = plan_purge(Checkpoint(path), retain=retain)
        _execute_plan(plan, apply, yes, output_format(ctx))
    except StreamKeeperError as e:
        fail(e, _verbose(ctx))

