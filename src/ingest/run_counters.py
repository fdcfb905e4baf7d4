"""Process-wide ingest counters.

This module holds the only state shared between the producer,
the workers, and the progress monitor. Updates are lock-guarded.
"""

from __future__ import annotations

from dataclasses import dataclass
import threading
import time


@dataclass(frozen=True)
class CounterSnapshot:
    """Point-in-time copy of run counters."""

    processed: int
    skipped_malformed: int
    resume_offset: int
    elapsed_seconds: float

    @property
    def throughput(self) -> float:
        """Committed documents per elapsed second."""
        if self.elapsed_seconds <= 0:
            return 0.0
        return self.processed / self.elapsed_seconds


class IngestionRun:
    """Atomic counters for one invocation of the pipeline."""

    def __init__(self, resume_offset: int = 0) -> None:
        self._lock = threading.Lock()
        self._processed = 0
        self._skipped_malformed = 0
        self._resume_offset = resume_offset
        self.started_at = time.monotonic()

    def add_processed(self, count: int) -> tuple[int, int]:
        """Add committed documents and return the ``(before, after)`` totals."""
        with self._lock:
            before = self._processed
            self._processed += count
            return before, self._processed

    def add_skipped(self, count: int = 1) -> int:
        """Count malformed records and return the new total."""
        with self._lock:
            self._skipped_malformed += count
            return self._skipped_malformed

    @property
    def processed(self) -> int:
        with self._lock:
            return self._processed

    @property
    def skipped_malformed(self) -> int:
        with self._lock:
            return self._skipped_malformed

    def snapshot(self) -> CounterSnapshot:
        """Return a consistent copy of every counter."""
        with self._lock:
            return CounterSnapshot(
                processed=self._processed,
                skipped_malformed=self._skipped_malformed,
                resume_offset=self._resume_offset,
                elapsed_seconds=time.monotonic() - self.started_at,
            )
