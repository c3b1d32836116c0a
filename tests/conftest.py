"""Shared pytest fixtures."""

import json
from pathlib import Path
from typing import Any

import pytest

import streamkeeper.config

QUERY_ID = "0d3f5c1e-8a2b-4c7d-9e10-112233445566"
RUN_ID = "7b1e2f3a-4c5d-6e7f-8091-a2b3c4d5e6f7"


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    """Keep tests away from the user's ~/.streamkeeper/config.yaml."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    streamkeeper.config.reset_settings()
    yield
    streamkeeper.config.reset_settings()


def write_offset(
    checkpoint: Path,
    batch_id: int,
    watermark_ms: int = 0,
    timestamp_ms: int = 1700000000000,
    sources: list[str] | None = None,
) -> Path:
    offsets = checkpoint / "offsets"
    offsets.mkdir(parents=True, exist_ok=True)
    metadata = {
        "batchWatermarkMs": watermark_ms,
        "batchTimestampMs": timestamp_ms + batch_id * 1000,
        "conf": {"spark.sql.shuffle.partitions": "200"},
    }
    if sources is None:
        sources = [json.dumps({"orders": {"0": (batch_id + 1) * 10}})]
    path = offsets / str(batch_id)
    path.write_text("v1\n" + json.dumps(metadata) + "\n" + "\n".join(sources))
    return path


def write_commit(checkpoint: Path, batch_id: int, watermark_ms: int = 0) -> Path:
    commits = checkpoint / "commits"
    commits.mkdir(parents=True, exist_ok=True)
    path = commits / str(batch_id)
    path.write_text("v1\n" + json.dumps({"nextBatchWatermarkMs": watermark_ms}))
    return path


def build_checkpoint(
    root: Path,
    offsets: range | list[int],
    commits: range | list[int],
    query_id: str = QUERY_ID,
) -> Path:
    root.mkdir(parents=True, exist_ok=True)
    (root / "metadata").write_text(json.dumps({"id": query_id}))
    (root / "offsets").mkdir(exist_ok=True)
    for batch_id in offsets:
        write_offset(root, batch_id)
    for batch_id in commits:
        write_commit(root, batch_id)
    return root


def write_sink_log(output: Path, batches: dict[str, list[dict[str, Any]]]) -> Path:
    """Write a file sink log; keys are file names like "3" or "9.compact"."""
    log_dir = output / "_spark_metadata"
    log_dir.mkdir(parents=True, exist_ok=True)
    for name, entries in batches.items():
        body = "".join("\n" + json.dumps(e) for e in entries)
        (log_dir / name).write_text("v1" + body)
    return log_dir


def sink_entry(name: str, size: int = 100, action: str = "add") -> dict[str, Any]:
    return {
        "path": f"file:///data/out/{name}",
        "size": size,
        "isDir": False,
        "modificationTime": 1700000000000,
        "blockReplication": 1,
        "blockSize": 33554432,
        "action": action,
    }


def progress_record(
    batch_id: int,
    rows: int = 10,
    executed: bool = True,
    timestamp: str = "2024-01-01T00:00:00.000Z",
    trigger_ms: int = 500,
    input_rate: float = 10.0,
    processed_rate: float = 20.0,
    query_id: str = QUERY_ID,
    sink: str = "FileSink[/data/out]",
) -> dict[str, Any]:
    duration = {"latestOffset": 3, "triggerExecution": trigger_ms}
    if executed:
        duration.update({"addBatch": trigger_ms - 50, "walCommit": 10, "queryPlanning": 5})
    return {
        "id": query_id,
        "runId": RUN_ID,
        "name": "orders",
        "timestamp": timestamp,
        "batchId": batch_id,
        "numInputRows": rows,
        "inputRowsPerSecond": input_rate,
        "processedRowsPerSecond": processed_rate,
        "durationMs": duration,
        "eventTime": {"watermark": "2024-01-01T00:00:00.000Z"},
        "stateOperators": [],
        "sources": [
            {
                "description": "KafkaV2[Subscribe[orders]]",
                "startOffset": {"orders": {"0": batch_id * 10}},
                "endOffset": {"orders": {"0": batch_id * 10 + rows}},
                "numInputRows": rows,
                "inputRowsPerSecond": input_rate,
                "processedRowsPerSecond": processed_rate,
            }
        ],
        "sink": {"description": sink, "numOutputRows": -1},
    }


@pytest.fixture
def checkpoint_dir(tmp_path):
    """Checkpoint with batches 0-4 committed and batch 5 pending."""
    return build_checkpoint(tmp_path / "chk", offsets=range(6), commits=range(5))


@pytest.fixture
def progress_file(tmp_path):
    """Progress history with data, no-data and idle triggers."""
    records = [
        progress_record(0, rows=10, timestamp="2024-01-01T00:00:00.000Z"),
        progress_record(1, rows=5, timestamp="2024-01-01T00:00:10.000Z"),
        progress_record(2, rows=0, executed=False, timestamp="2024-01-01T00:00:20.000Z"),
        progress_record(2, rows=0, timestamp="2024-01-01T00:00:30.000Z"),
        progress_record(4, rows=7, timestamp="2024-01-01T00:00:40.000Z"),
    ]
    path = tmp_path / "progress.jsonl"
    path.write_text("\n".join(json.dumps(r) for r in records) + "\n")
    return path


@pytest.fixture
def make_checkpoint():
    return build_checkpoint


@pytest.fixture
def make_offset():
    return write_offset


@pytest.fixture
def make_commit():
    return write_commit


@pytest.fixture
def make_sink_log():
    return write_sink_log


@pytest.fixture
def make_sink_entry():
    return sink_entry


@pytest.fixture
def make_progress():
    return progress_record
