"""Background refresh loop driving the collection orchestrator."""

import threading
from collections.abc import Callable

import structlog

logger = structlog.get_logger(__name__)

DEFAULT_INTERVAL = 5.0


class RefreshScheduler:
    """Runs a refresh callable on a fixed interval in a daemon thread.

    The first refresh runs as soon as the scheduler starts. A refresh that
    raises is logged and the loop carries on with the next interval, so the
    thread only ends when stop() is called or the process exits.
    """

    def __init__(
        self,
        refresh: Callable[[], object],
        interval: float = DEFAULT_INTERVAL,
    ):
        """Initialize the scheduler.

        Args:
            refresh: Zero-argument callable run once per tick, typically
                CollectionOrchestrator.run_once.
            interval: Seconds to wait between the end of one tick and the
                start of the next.

        Raises:
            ValueError: If interval is not positive.
        """
        if interval <= 0:
            msg = "interval must be positive"
            raise ValueError(msg)

        self._refresh = refresh
        self._interval = interval
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        """Whether the refresh thread is alive."""
        return self._thread is not None and self._thread.is_alive()

    def tick(self) -> None:
        """Run a single refresh, logging anything it raises."""
        try:
            self._refresh()
        except Exception:
            logger.exception("Refresh raised unexpectedly")

    def _run(self) -> None:
        logger.info("Refresh loop started", interval_seconds=self._interval)
        while not self._stop_event.is_set():
            self.tick()
            self._stop_event.wait(self._interval)
        logger.info("Refresh loop stopped")

    def start(self) -> None:
        """Start the refresh thread if it is not already running."""
        if self.running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run,
            name="openpbs-refresh",
            daemon=True,
        )
        self._thread.start()

    def stop(self, timeout: float | None = None) -> None:
        """Signal the refresh thread to exit and wait for it.

        Args:
            timeout: Maximum seconds to wait for an in-flight tick. If the
                thread outlives it, the scheduler keeps tracking the thread
                and start() will not spawn a second one until it exits.
        """
        self._stop_event.set()
        if self._thread is None:
            return
        self._thread.join(timeout)
        if self._thread.is_alive():
            logger.warning("Refresh thread still busy after stop", timeout=timeout)
            return
        self._thread = None
