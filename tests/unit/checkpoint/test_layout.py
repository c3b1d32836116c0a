"""Tests for checkpoint directory access."""

import json

import pytest

from streamkeeper.checkpoint import Checkpoint
from streamkeeper.exceptions import (
    CheckpointFileNotFoundError,
    CheckpointNotFoundError,
    CorruptLogFileError,
)

QUERY_ID = "0d3f5c1e-8a2b-4c7d-9e10-112233445566"


class TestCheckpointOpen:
    """Test opening checkpoint directories."""

    def test_missing_path(self, tmp_path):
        with pytest.raises(CheckpointNotFoundError):
            Checkpoint(tmp_path / "nope")

    def test_directory_without_checkpoint_files(self, tmp_path):
        (tmp_path / "random").mkdir()

        with pytest.raises(CheckpointNotFoundError):
            Checkpoint(tmp_path / "random")

    def test_metadata_only_checkpoint(self, tmp_path):
        (tmp_path / "metadata").write_text(json.dumps({"id": QUERY_ID}))

        checkpoint = Checkpoint(tmp_path)

        assert checkpoint.query_id == QUERY_ID
        assert checkpoint.offset_batch_ids() == []
        assert checkpoint.latest_offset() is None
        assert checkpoint.latest_commit() is None


class TestCheckpointRecords:
    """Test reading offsets and commits."""

    def test_query_id(self, checkpoint_dir):
        assert Checkpoint(checkpoint_dir).query_id == QUERY_ID

    def test_corrupt_metadata(self, checkpoint_dir):
        (checkpoint_dir / "metadata").write_text('{"name": "x"}')

        with pytest.raises(CorruptLogFileError, match="query id"):
            Checkpoint(checkpoint_dir).query_id

    def test_batch_ids(self, checkpoint_dir):
        checkpoint = Checkpoint(checkpoint_dir)

        assert checkpoint.offset_batch_ids() == [0, 1, 2, 3, 4, 5]
        assert checkpoint.commit_batch_ids() == [0, 1, 2, 3, 4]

    def test_offset_record(self, checkpoint_dir):
        record = Checkpoint(checkpoint_dir).offset(2)

        assert record.batch_id == 2
        assert record.version == 1
        assert record.batch_timestamp_ms == 1700000002000
        assert record.conf == {"spark.sql.shuffle.partitions": "200"}
        assert record.source_offsets == [{"orders": {"0": 30}}]

    def test_offset_with_missing_source_offset(self, tmp_path, make_checkpoint, make_offset):
        root = make_checkpoint(tmp_path / "chk", offsets=[], commits=[])
        make_offset(root, 0, sources=["-", '{"logOffset":3}', "opaque-offset"])

        record = Checkpoint(root).offset(0)

        assert record.source_offsets == [None, {"logOffset": 3}, "opaque-offset"]

    def test_offset_missing_metadata_line(self, checkpoint_dir):
        (checkpoint_dir / "offsets" / "7").write_text("v1")

        with pytest.raises(CorruptLogFileError, match="offset metadata"):
            Checkpoint(checkpoint_dir).offset(7)

    def test_offset_invalid_json(self, checkpoint_dir):
        (checkpoint_dir / "offsets" / "7").write_text("v1\n{not json")

        with pytest.raises(CorruptLogFileError, match="invalid JSON"):
            Checkpoint(checkpoint_dir).offset(7)

    def test_offset_non_integer_watermark(self, checkpoint_dir):
        (checkpoint_dir / "offsets" / "7").write_text('v1\n{"batchWatermarkMs":"soon"}\n-')

        with pytest.raises(CorruptLogFileError, match="batchWatermarkMs"):
            Checkpoint(checkpoint_dir).offset(7)

    def test_offset_conf_not_object(self, checkpoint_dir):
        (checkpoint_dir / "offsets" / "7").write_text('v1\n{"conf":["a"]}\n-')

        with pytest.raises(CorruptLogFileError, match="conf"):
            Checkpoint(checkpoint_dir).offset(7)

    def test_commit_non_integer_watermark(self, checkpoint_dir):
        (checkpoint_dir / "commits" / "5").write_text('v1\n{"nextBatchWatermarkMs":null}')

        with pytest.raises(CorruptLogFileError, match="nextBatchWatermarkMs"):
            Checkpoint(checkpoint_dir).commit(5)

    def test_commit_record(self, tmp_path, make_checkpoint, make_commit):
        root = make_checkpoint(tmp_path / "chk", offsets=range(2), commits=[0])
        make_commit(root, 1, watermark_ms=5000)

        record = Checkpoint(root).commit(1)

        assert record.batch_id == 1
        assert record.next_batch_watermark_ms == 5000

    def test_commit_missing(self, checkpoint_dir):
        with pytest.raises(CheckpointFileNotFoundError):
            Checkpoint(checkpoint_dir).commit(5)

    def test_compacted_offset_file(self, checkpoint_dir):
        offsets = checkpoint_dir / "offsets"
        (offsets / "5").rename(offsets / "5.compact")

        checkpoint = Checkpoint(checkpoint_dir)

        assert checkpoint.offset_batch_ids()[-1] == 5
        assert checkpoint.latest_offset().batch_id == 5

    def test_is_committed(self, checkpoint_dir):
        checkpoint = Checkpoint(checkpoint_dir)

        assert checkpoint.is_committed(4)
        assert not checkpoint.is_committed(5)

    def test_checksum_files_ignored(self, checkpoint_dir):
        (checkpoint_dir / "offsets" / ".6.crc").write_bytes(b"\x00")
        (checkpoint_dir / "offsets" / ".6.5f2e.tmp").write_text("v1")

        assert Checkpoint(checkpoint_dir).offset_batch_ids()[-1] == 5


class TestCheckpointSummary:
    """Test checkpoint summaries."""

    def test_pending_batch(self, checkpoint_dir):
        summary = Checkpoint(checkpoint_dir).summary()

        assert summary.latest_offset == 5
        assert summary.latest_commit == 4
        assert summary.pending_batch_ids == [5]
        assert summary.next_batch_id == 5

    def test_fully_committed(self, tmp_path, make_checkpoint):
        root = make_checkpoint(tmp_path / "chk", offsets=range(3), commits=range(3))

        summary = Checkpoint(root).summary()

        assert summary.pending_batch_ids == []
        assert summary.next_batch_id == 3

    def test_no_commits(self, tmp_path, make_checkpoint):
        root = make_checkpoint(tmp_path / "chk", offsets=[0], commits=[])

        summary = Checkpoint(root).summary()

        assert summary.latest_commit is None
        assert summary.pending_batch_ids == [0]
        assert summary.next_batch_id == 0

    def test_sources_and_state(self, checkpoint_dir):
        (checkpoint_dir / "sources" / "0").mkdir(parents=True)
        (checkpoint_dir / "sources" / "1").mkdir()
        (checkpoint_dir / "state" / "0").mkdir(parents=True)

        data = Checkpoint(checkpoint_dir).summary().to_dict()

        assert data["source_count"] == 2
        assert data["has_state"] is True
        assert data["query_id"] == QUERY_ID
        assert data["offsets"] == 6
        assert data["commits"] == 5
