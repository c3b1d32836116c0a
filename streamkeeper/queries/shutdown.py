"""Signal-driven graceful shutdown of all streaming queries in a driver."""

import signal
import threading
from typing import Any

from streamkeeper.logging_config import get_logger
from streamkeeper.queries.control import StopAllResult, stop_all

logger = get_logger(__name__)


class GracefulShutdown:
    """Stop all queries between micro-batches on SIGTERM/SIGINT.

    Signal handlers only set a flag; the stop itself runs on a worker thread
    because it blocks on the engine.

    Example:
        shutdown = GracefulShutdown(spark.streams, timeout=120)
        shutdown.install()
        shutdown.wait()
    """

    def __init__(
        self,
        manager: Any,
        timeout: float = 60.0,
        poll_interval: float = 0.5,
        signals: tuple[int, ...] = (signal.SIGTERM, signal.SIGINT),
    ) -> None:
        self.manager = manager
        self.timeout = timeout
        self.poll_interval = poll_interval
        self.signals = signals
        self.result: StopAllResult | None = None
        self._requested = threading.Event()
        self._done = threading.Event()
        self._previous: dict[int, Any] = {}
        self._worker: threading.Thread | None = None
        self._lock = threading.Lock()

    @property
    def requested(self) -> bool:
        return self._requested.is_set()

    @property
    def done(self) -> bool:
        return self._done.is_set()

    def install(self) -> None:
        """Register handlers; must be called from the main thread."""
        for sig in self.signals:
            self._previous[sig] = signal.signal(sig, self._handle)

    def uninstall(self) -> None:
        for sig, handler in self._previous.items():
            signal.signal(sig, handler)
        self._previous.clear()

    def _handle(self, signum: int, frame: Any) -> None:
        logger.info("shutdown_signal_received", signal=signum)
        self.request()

    def request(self) -> None:
        """Start the graceful stop once; later calls are ignored."""
        with self._lock:
            if self._requested.is_set():
                return
            self._requested.set()
            self._worker = threading.Thread(
                target=self._run, name="streamkeeper-shutdown", daemon=True
            )
            self._worker.start()

    def _run(self) -> None:
        try:
            self.result = stop_all(
                self.manager,
                timeout=self.timeout,
                poll_interval=self.poll_interval,
            )
            logger.info(
                "shutdown_complete",
                stopped=len(self.result.results),
                failed=len(self.result.failed),
            )
        finally:
            self._done.set()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until a requested shutdown finishes; False on timeout."""
        return self._done.wait(timeout)
