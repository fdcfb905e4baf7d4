"""Structured ingest progress reporting.

This module emits periodic monitor events from a background thread and
milestone events whenever the committed count crosses a fixed multiple.
It only reads shared counters; its failure never affects ingestion.
"""

from __future__ import annotations

import threading
from typing import Callable

from core.constants import MONITOR_INTERVAL_SECONDS, PROGRESS_LOG_EVERY
from core.logging_config import get_logger
from ingest.run_counters import CounterSnapshot, IngestionRun

_LOGGER = get_logger(__name__)


class ProgressMonitor:
    """Report processed, skipped, queue depth, elapsed time, and throughput."""

    def __init__(
        self,
        run: IngestionRun,
        queue_depth: Callable[[], int],
        interval_seconds: float = MONITOR_INTERVAL_SECONDS,
        log_every: int = PROGRESS_LOG_EVERY,
    ) -> None:
        self._run = run
        self._queue_depth = queue_depth
        self._interval_seconds = interval_seconds
        self._log_every = log_every
        self._stopped = threading.Event()
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        """Start the periodic monitor thread."""
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self._loop, name="ingest-monitor", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        """Stop the monitor thread and wait for it to exit."""
        self._stopped.set()
        if self._thread is not None:
            self._thread.join()
            self._thread = None

    def record_committed(self, before: int, after: int) -> None:
        """Log a milestone event when ``after`` crosses a multiple of the interval."""
        if not crossed_multiple(before, after, self._log_every):
            return
        try:
            snapshot = self._run.snapshot()
            _LOGGER.info(
                "ingest_progress",
                processed=after,
                docs_per_sec=round(snapshot.throughput, 2),
                elapsed_seconds=round(snapshot.elapsed_seconds, 1),
            )
        except Exception as error:
            _LOGGER.warning("ingest_monitor_failed", error=str(error))

    def report(self) -> None:
        """Emit one monitor event."""
        try:
            snapshot = self._run.snapshot()
            _LOGGER.info("ingest_monitor", queue=self._queue_depth(), **_snapshot_fields(snapshot))
        except Exception as error:
            _LOGGER.warning("ingest_monitor_failed", error=str(error))

    def _loop(self) -> None:
        while not self._stopped.wait(self._interval_seconds):
            self.report()


def crossed_multiple(before: int, after: int, every: int) -> bool:
    """Return whether the half-open range ``(before, after]`` contains a multiple of ``every``."""
    if every <= 0 or after <= before:
        return False
    return after // every > before // every


def _snapshot_fields(snapshot: CounterSnapshot) -> dict[str, object]:
    return {
        "processed": snapshot.processed,
        "skipped": snapshot.skipped_malformed,
        "elapsed_seconds": round(snapshot.elapsed_seconds, 1),
        "docs_per_sec": round(snapshot.throughput, 2),
    }
