"""Background polling for widget refresh requests."""

import threading

from savings_jars.core.utils import get_logger
from savings_jars.services.jar_service import JarService
from savings_jars.services.snapshot_sync import SnapshotPublisher

logger = get_logger("savings-jars.worker")


class RefreshWatcher:
    """Republishes the widget snapshot whenever the widget leaves a refresh request."""

    def __init__(self, service: JarService, publisher: SnapshotPublisher, interval: float = 2.0) -> None:
        """Initialise the watcher with the service to republish from and the polling interval."""
        self.service = service
        self.publisher = publisher
        self.interval = interval
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def run_once(self) -> bool:
        """Handle a pending request, if any; return whether a republish happened."""
        if not self.publisher.consume_refresh_request():
            return False
        self.service.republish()
        return True

    def start(self) -> None:
        """Start polling on a daemon thread."""
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="refresh-watcher", daemon=True)
        self._thread.start()
        logger.info(f"Refresh watcher started (interval {self.interval}s)")

    def stop(self, timeout: float | None = None) -> None:
        """Stop polling and wait for the thread to finish."""
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            if self._thread.is_alive():
                logger.warning("Refresh watcher did not stop within the timeout")
                return
            self._thread = None
        logger.info("Refresh watcher stopped")

    @property
    def running(self) -> bool:
        """Whether the polling thread is alive."""
        return self._thread is not None and self._thread.is_alive()

    def _run(self) -> None:
        while not self._stop.wait(self.interval):
            try:
                self.run_once()
            except Exception:
                logger.exception("Refresh request handling failed")
