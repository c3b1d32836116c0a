"""Tests for the progress tracker."""

import threading
from datetime import datetime, timezone

import pytest

from streamkeeper.exceptions import AmbiguousQueryError
from streamkeeper.progress import BatchKind, ProgressTracker, load_progress_file

OTHER_QUERY = "ffffffff-0000-0000-0000-000000000000"
QUERY_A = "aaaaaaaa-0000-0000-0000-000000000000"
QUERY_B = "bbbbbbbb-0000-0000-0000-000000000000"


@pytest.fixture
def tracker(progress_file):
    tracker = ProgressTracker()
    tracker.record_all(load_progress_file(progress_file))
    return tracker


def at(seconds: int) -> datetime:
    return datetime(2024, 1, 1, 0, 0, tzinfo=timezone.utc).replace(
        minute=seconds // 60, second=seconds % 60
    )


class TestProgressTracker:
    """Test recording and classification history."""

    def test_invalid_history_size(self):
        with pytest.raises(ValueError):
            ProgressTracker(max_history=0)

    def test_record_classifies(self, make_progress):
        tracker = ProgressTracker()

        tracked = tracker.record(make_progress(0, rows=0))

        assert tracked.kind == BatchKind.NO_DATA
        assert tracked.batch_id == 0
        assert tracked.to_record()["kind"] == "no_data"
        assert len(tracker) == 1

    def test_query_id_filter(self, make_progress):
        tracker = ProgressTracker(query_id=OTHER_QUERY)

        assert tracker.record(make_progress(0)) is None
        assert tracker.record(make_progress(1, query_id=OTHER_QUERY)) is not None
        assert len(tracker) == 1

    def test_history_bounded(self, make_progress):
        tracker = ProgressTracker(max_history=3)

        tracker.record_all(make_progress(i) for i in range(10))

        assert [b.batch_id for b in tracker.batches()] == [7, 8, 9]

    def test_batches_by_kind(self, tracker):
        assert [b.batch_id for b in tracker.batches(BatchKind.DATA)] == [0, 1, 4]
        assert [b.batch_id for b in tracker.batches(BatchKind.NO_DATA)] == [2]
        assert [b.batch_id for b in tracker.batches(BatchKind.IDLE)] == [2]
        assert len(tracker.executed()) == 4

    def test_idle_events_do_not_count_as_gaps(self, tracker):
        assert tracker.gaps() == [3]

    def test_replays(self, make_progress):
        tracker = ProgressTracker()
        tracker.record_all(
            [make_progress(5), make_progress(6), make_progress(6), make_progress(7)]
        )

        assert tracker.replays() == [6]
        assert tracker.gaps() == []

    def test_summary(self, tracker):
        summary = tracker.summary()

        assert summary.total == 5
        assert summary.data_batches == 3
        assert summary.no_data_batches == 1
        assert summary.idle_events == 1
        assert summary.total_input_rows == 22
        assert summary.last_batch_id == 4
        assert summary.mean_trigger_ms == 500
        assert summary.max_trigger_ms == 500
        assert summary.skipped_batch_ids == [3]
        assert summary.to_dict()["replayed_batch_ids"] == []

    def test_empty_summary(self):
        summary = ProgressTracker().summary()

        assert summary.total == 0
        assert summary.last_batch_id is None
        assert summary.mean_trigger_ms is None

    def test_lifecycle_markers(self):
        tracker = ProgressTracker()

        tracker.mark_started("run-1")
        tracker.mark_terminated("run-1", "boom")
        tracker.mark_idle(datetime(2024, 1, 1))

        assert tracker.started_runs == ["run-1"]
        assert tracker.terminated == {"run-1": "boom"}
        assert tracker.last_idle_at.tzinfo == timezone.utc

    def test_queries_are_analysed_separately(self, make_progress):
        tracker = ProgressTracker()
        tracker.record_all([make_progress(i, query_id=QUERY_A) for i in range(3)])
        tracker.record_all([make_progress(0, query_id=QUERY_B), make_progress(5, query_id=QUERY_B)])

        assert tracker.query_ids() == [QUERY_A, QUERY_B]
        assert tracker.gaps(QUERY_A) == []
        assert tracker.replays(QUERY_A) == []
        assert tracker.gaps(QUERY_B) == [1, 2, 3, 4]
        assert tracker.replays(QUERY_B) == []
        assert tracker.summary(QUERY_B).last_batch_id == 5
        assert tracker.summary(QUERY_A).total == 3

    def test_several_queries_require_selection(self, make_progress):
        tracker = ProgressTracker()
        tracker.record_all([make_progress(0, query_id=QUERY_A), make_progress(0, query_id=QUERY_B)])

        with pytest.raises(AmbiguousQueryError) as exc_info:
            tracker.summary()

        assert exc_info.value.context["query_ids"] == [QUERY_A, QUERY_B]
        with pytest.raises(AmbiguousQueryError):
            tracker.health(10)

    def test_query_filter_selects_query(self, make_progress):
        tracker = ProgressTracker(query_id=QUERY_B)
        tracker.record_all([make_progress(0, query_id=QUERY_A), make_progress(0, query_id=QUERY_B)])

        assert tracker.replays() == []
        assert tracker.summary().total == 1

    def test_concurrent_recording(self, make_progress):
        tracker = ProgressTracker(max_history=1000)

        def feed(offset):
            for i in range(100):
                tracker.record(make_progress(offset + i))

        threads = [threading.Thread(target=feed, args=(n * 100,)) for n in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(tracker) == 400


class TestHealth:
    """Test health assessment against a trigger interval."""

    def test_healthy(self, tracker):
        report = tracker.health(10, now=at(45))

        assert report.healthy
        assert report.reasons == []

    def test_no_history_is_healthy(self):
        assert ProgressTracker().health(10).healthy

    def test_overrun(self, tracker):
        report = tracker.health(0.2, stall_intervals=1000, now=at(45))

        assert report.overrun
        assert not report.healthy
        assert "longer than" in report.reasons[0]

    def test_falling_behind(self, make_progress):
        tracker = ProgressTracker()
        tracker.record(make_progress(0, input_rate=100.0, processed_rate=20.0))

        report = tracker.health(0)

        assert report.falling_behind
        assert not report.stalled

    def test_stalled(self, tracker):
        report = tracker.health(10, stall_intervals=10, now=at(600))

        assert report.stalled
        assert "no executed batch" in report.reasons[0]

    def test_idle_heartbeats_do_not_hide_stall(self, make_progress):
        tracker = ProgressTracker()
        tracker.record(make_progress(0, timestamp="2024-01-01T00:00:00.000Z"))
        tracker.record(make_progress(1, executed=False, timestamp="2024-01-01T01:00:00.000Z"))
        tracker.mark_idle(datetime(2024, 1, 1, 1, 0, tzinfo=timezone.utc))

        report = tracker.health(
            10, stall_intervals=10, now=datetime(2024, 1, 1, 1, 0, 5, tzinfo=timezone.utc)
        )

        assert report.stalled
        assert "3605s" in report.reasons[0]

    def test_only_idle_records_stall_from_first_record(self, make_progress):
        tracker = ProgressTracker()
        tracker.record(make_progress(0, executed=False, timestamp="2024-01-01T00:00:00.000Z"))
        tracker.record(make_progress(0, executed=False, timestamp="2024-01-01T00:09:00.000Z"))

        assert not tracker.health(10, stall_intervals=10, now=at(90)).stalled
        assert tracker.health(10, stall_intervals=10, now=at(540)).stalled

    def test_no_trigger_interval_skips_stall_check(self, tracker):
        assert not tracker.health(0, now=at(3000)).stalled
