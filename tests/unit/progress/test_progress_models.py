"""Tests for progress record parsing and classification."""

import json
from datetime import timezone
from types import SimpleNamespace

import pytest

from streamkeeper.exceptions import ProgressParseError
from streamkeeper.progress import BatchKind, QueryProgress, classify_progress, parse_progress


class TestParseProgress:
    """Test parsing progress from the shapes the engine hands out."""

    def test_from_dict(self, make_progress):
        progress = parse_progress(make_progress(3, rows=12))

        assert isinstance(progress, QueryProgress)
        assert progress.batch_id == 3
        assert progress.num_input_rows == 12
        assert progress.name == "orders"
        assert progress.timestamp.tzinfo is not None
        assert progress.timestamp.astimezone(timezone.utc).year == 2024
        assert progress.sources[0].end_offset == {"orders": {"0": 42}}
        assert progress.sink.description == "FileSink[/data/out]"
        assert progress.watermark == "2024-01-01T00:00:00.000Z"

    def test_from_json_string(self, make_progress):
        progress = parse_progress(json.dumps(make_progress(1)))

        assert progress.batch_id == 1

    def test_from_json_property(self, make_progress):
        event_progress = SimpleNamespace(json=json.dumps(make_progress(7)))

        assert parse_progress(event_progress).batch_id == 7

    def test_from_json_method(self, make_progress):
        payload = json.dumps(make_progress(8))

        class EngineProgress:
            def json(self):
                return payload

        assert parse_progress(EngineProgress()).batch_id == 8

    def test_passthrough(self, make_progress):
        progress = parse_progress(make_progress(0))

        assert parse_progress(progress) is progress

    def test_unknown_fields_ignored(self, make_progress):
        record = make_progress(0)
        record["someFutureField"] = {"x": 1}
        record["sources"][0]["newMetric"] = 5

        assert parse_progress(record).batch_id == 0

    def test_missing_required_field(self, make_progress):
        record = make_progress(0)
        del record["batchId"]

        with pytest.raises(ProgressParseError):
            parse_progress(record)

    def test_invalid_json(self):
        with pytest.raises(ProgressParseError, match="invalid JSON"):
            parse_progress("{not json")

    def test_not_an_object(self):
        with pytest.raises(ProgressParseError, match="not a JSON object"):
            parse_progress("[1, 2]")

    def test_unsupported_type(self):
        with pytest.raises(ProgressParseError, match="unsupported"):
            parse_progress(42)

    def test_to_record(self, make_progress):
        record = parse_progress(make_progress(5, rows=3, trigger_ms=800)).to_record()

        assert record["batch_id"] == 5
        assert record["trigger_execution_ms"] == 800
        assert record["add_batch_ms"] == 750
        assert record["sink_description"] == "FileSink[/data/out]"
        assert record["state_rows_total"] == 0


class TestClassifyProgress:
    """Test empty-batch classification."""

    def test_data_batch(self, make_progress):
        assert classify_progress(make_progress(0, rows=10)) == BatchKind.DATA

    def test_no_data_batch(self, make_progress):
        assert classify_progress(make_progress(0, rows=0)) == BatchKind.NO_DATA

    def test_idle_event(self, make_progress):
        record = make_progress(0, rows=0, executed=False)

        assert classify_progress(record) == BatchKind.IDLE
        assert parse_progress(record).executed is False
