"""Bridge from the engine's query listener API to a ProgressTracker.

pyspark is imported only when a listener is built, so the rest of
streamkeeper works on machines without a Spark installation.
"""

from datetime import datetime
from typing import Any

from streamkeeper.logging_config import get_logger, log_error, log_operation, query_context
from streamkeeper.progress.store import ProgressStore
from streamkeeper.progress.tracker import ProgressTracker

logger = get_logger(__name__)


class ProgressForwarder:
    """Engine-independent listener callbacks.

    Callbacks never raise: an exception escaping a listener is only logged by
    the engine and would hide the original error from our logs. Events of
    queries the tracker does not follow are ignored.
    """

    def __init__(self, tracker: ProgressTracker, store: ProgressStore | None = None) -> None:
        self.tracker = tracker
        self.store = store

    def _follows(self, event: Any) -> bool:
        return self.tracker.accepts(getattr(event, "id", None))

    def on_started(self, event: Any) -> None:
        if not self._follows(event):
            return
        run_id = str(getattr(event, "runId", ""))
        self.tracker.mark_started(run_id)
        log_operation(
            logger,
            "query_started",
            query_id=str(getattr(event, "id", "")),
            run_id=run_id,
            name=getattr(event, "name", None),
        )

    def on_progress(self, event: Any) -> None:
        try:
            tracked = self.tracker.record(event.progress)
            if tracked is not None and self.store is not None:
                self.store.append(tracked)
        except Exception as e:
            log_error(logger, e, "record_progress")

    def on_idle(self, event: Any) -> None:
        if not self._follows(event):
            return
        timestamp = getattr(event, "timestamp", None)
        parsed = None
        if isinstance(timestamp, str):
            try:
                parsed = datetime.fromisoformat(timestamp.replace("Z", "+00:00"))
            except ValueError:
                logger.debug("idle_timestamp_unparsed", timestamp=timestamp)
        self.tracker.mark_idle(parsed)

    def on_terminated(self, event: Any) -> None:
        if not self._follows(event):
            return
        query_id = getattr(event, "id", None)
        run_id = str(getattr(event, "runId", ""))
        exception = getattr(event, "exception", None)
        self.tracker.mark_terminated(run_id, exception)
        with query_context(str(query_id) if query_id else None, run_id):
            if self.store is not None:
                try:
                    self.store.flush()
                except Exception as e:
                    log_error(logger, e, "flush_progress")
            if exception:
                logger.warning("query_terminated_with_error", exception=exception)
            else:
                log_operation(logger, "query_terminated")


def build_listener(tracker: ProgressTracker, store: ProgressStore | None = None) -> Any:
    """Build a pyspark ``StreamingQueryListener`` feeding ``tracker``."""
    from pyspark.sql.streaming import StreamingQueryListener

    forwarder = ProgressForwarder(tracker, store)

    class TrackingListener(StreamingQueryListener):
        def onQueryStarted(self, event):
            forwarder.on_started(event)

        def onQueryProgress(self, event):
            forwarder.on_progress(event)

        def onQueryIdle(self, event):
            forwarder.on_idle(event)

        def onQueryTerminated(self, event):
            forwarder.on_terminated(event)

    return TrackingListener()


def attach_listener(
    spark: Any, tracker: ProgressTracker, store: ProgressStore | None = None
) -> Any:
    """Register a tracking listener on ``spark.streams``; returns the listener.

    Remove it again with ``spark.streams.removeListener(listener)``.
    """
    listener = build_listener(tracker, store)
    spark.streams.addListener(listener)
    log_operation(logger, "listener_attached", query_id=tracker.query_id)
    return listener
