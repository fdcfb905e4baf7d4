"""Unit tests for ingest progress reporting."""

from __future__ import annotations

from typing import Any

from ingest.ingest_worker import IngestWorker
from ingest.progress import ProgressMonitor, crossed_multiple
from ingest.record_transformer import build_transformer
from ingest.run_counters import IngestionRun
from search_index.bulk_submitter import BulkSubmitter


class _FakeLogger:
    def __init__(self) -> None:
        self.events: list[tuple[str, dict[str, object]]] = []

    def info(self, event: str, **fields: object) -> None:
        self.events.append((event, fields))

    def warning(self, event: str, **fields: object) -> None:
        self.events.append((event, fields))


class _BrokenSinkLogger(_FakeLogger):
    def info(self, event: str, **fields: object) -> None:
        raise RuntimeError("log sink down")


class _AcceptingWriter:
    index_name = "people-test"

    def bulk_write(self, payload: str) -> dict[str, Any]:
        return {"errors": False, "items": []}


def test_crossed_multiple_detects_milestones() -> None:
    """Milestones should fire only when a multiple lies in the range."""
    assert crossed_multiple(9990, 10010, 10000) is True
    assert crossed_multiple(10000, 10500, 10000) is False
    assert crossed_multiple(0, 10000, 10000) is True
    assert crossed_multiple(15000, 35000, 10000) is True
    assert crossed_multiple(5, 5, 10000) is False


def test_record_committed_logs_only_when_multiple_is_crossed(monkeypatch) -> None:
    """Milestone events should fire once per crossed multiple window."""
    fake_logger = _FakeLogger()
    monkeypatch.setattr("ingest.progress._LOGGER", fake_logger)
    run = IngestionRun()
    monitor = ProgressMonitor(run, queue_depth=lambda: 0, log_every=100)

    for _ in range(5):
        before, after = run.add_processed(60)
        monitor.record_committed(before, after)

    processed = [fields["processed"] for event, fields in fake_logger.events]
    assert processed == [120, 240, 300]


def test_report_logs_counters_and_queue_depth(monkeypatch) -> None:
    """Monitor events should carry counters and queue depth."""
    fake_logger = _FakeLogger()
    monkeypatch.setattr("ingest.progress._LOGGER", fake_logger)
    run = IngestionRun(resume_offset=10)
    run.add_processed(40)
    run.add_skipped(2)
    monitor = ProgressMonitor(run, queue_depth=lambda: 17)

    monitor.report()

    event, fields = fake_logger.events[0]
    assert event == "ingest_monitor"
    assert (fields["processed"], fields["skipped"], fields["queue"]) == (40, 2, 17)


def test_report_failure_never_raises(monkeypatch) -> None:
    """A failing queue-depth callback should be logged, not propagated."""
    fake_logger = _FakeLogger()
    monkeypatch.setattr("ingest.progress._LOGGER", fake_logger)

    def broken_depth() -> int:
        raise RuntimeError("queue gone")

    ProgressMonitor(IngestionRun(), queue_depth=broken_depth).report()

    assert fake_logger.events[0][0] == "ingest_monitor_failed"


def test_monitor_start_and_stop_are_prompt() -> None:
    """Stopping the monitor should not wait for the interval."""
    monitor = ProgressMonitor(IngestionRun(), queue_depth=lambda: 0, interval_seconds=60.0)

    monitor.start()
    monitor.stop()


def test_counter_snapshot_reports_throughput() -> None:
    """Snapshots should compute throughput from elapsed time."""
    run = IngestionRun(resume_offset=3)
    run.add_processed(50)
    run.started_at -= 10.0

    snapshot = run.snapshot()

    assert snapshot.resume_offset == 3
    assert 4.0 < snapshot.throughput <= 5.0


def test_milestone_logging_failure_does_not_fail_the_commit(monkeypatch) -> None:
    """A broken log sink during a milestone should leave the batch committed."""
    fake_logger = _BrokenSinkLogger()
    monkeypatch.setattr("ingest.progress._LOGGER", fake_logger)
    run = IngestionRun()
    monitor = ProgressMonitor(run, queue_depth=lambda: 0, log_every=1)
    submitter = BulkSubmitter(_AcceptingWriter(), max_attempts=1, retry_base_seconds=0.0)
    worker = IngestWorker(
        0,
        build_transformer("delhi-ncr", augment_registration_year=False),
        submitter,
        batch_size=1,
        run=run,
        monitor=monitor,
    )

    worker.accept({"mobile": "9810000001", "name": "Asha", "id": "ID1"})

    assert run.processed == 1
    assert fake_logger.events[0][0] == "ingest_monitor_failed"
