"""Ingest orchestration for bulk index loads.

This module coordinates source opening, record decoding, the resume
filter, index lifecycle calls, the worker pool, and final summary
reporting for one ingest run.
"""

from __future__ import annotations

from contextlib import closing
import os
import threading
from typing import Callable

from core.config import CensusConfig, clamp_int
from core.constants import (
    MALFORMED_LOG_EVERY,
    MALFORMED_LOG_FIRST,
    MAX_WORKER_MULTIPLIER,
    MIN_WORKER_MULTIPLIER,
)
from core.errors import IngestCancelledError
from core.logging_config import get_logger
from core.types import IngestOptions, IngestSummary, PipelineState
from ingest.ingest_worker import IngestWorker
from ingest.progress import ProgressMonitor
from ingest.record_decoder import open_decoder
from ingest.record_transformer import RecordTransformer, build_transformer
from ingest.resume_filter import skip_resumed_records
from ingest.run_counters import IngestionRun
from ingest.source_reader import open_source
from ingest.worker_pool import WorkerPool
from search_index.bulk_submitter import BulkSubmitter
from search_index.opensearch_client import create_opensearch_client
from search_index.people_index import PeopleIndex

_LOGGER = get_logger(__name__)


class IngestPipelineRunner:
    """Stateful runner for one ingest run.

    The runner owns the shared cancellation event. ``cancel`` may be
    called from a signal handler or another thread; the run then stops
    cooperatively, skips index finalization, and raises
    ``IngestCancelledError``. ``summary`` is populated when ``run``
    returns or raises.
    """

    def __init__(
        self,
        options: IngestOptions,
        config: CensusConfig,
        index: PeopleIndex | None = None,
        cancel_event: threading.Event | None = None,
        transformer: RecordTransformer | None = None,
        cpu_count: Callable[[], int | None] = os.cpu_count,
    ) -> None:
        if options.resume_offset < 0:
            raise ValueError("resume offset must be non-negative.")
        self._options = options
        self._config = config
        self._index = index
        self._cancel_event = cancel_event or threading.Event()
        self._region = options.region or config.default_region
        self._transformer = transformer or build_transformer(
            self._region, config.augment_registration_year
        )
        self._cpu_count = cpu_count
        self._run = IngestionRun(options.resume_offset)
        self._state: PipelineState = "running"
        self._monitor: ProgressMonitor | None = None
        self.summary: IngestSummary | None = None

    @property
    def batch_size(self) -> int:
        """Batch size after applying the run override."""
        if self._options.batch_size is not None:
            return max(1, self._options.batch_size)
        return self._config.ingest_batch_size

    @property
    def worker_count(self) -> int:
        """Worker threads: available CPUs times the multiplier."""
        multiplier = self._options.worker_multiplier or self._config.ingest_worker_multiplier
        multiplier = clamp_int(multiplier, MIN_WORKER_MULTIPLIER, MAX_WORKER_MULTIPLIER)
        return max(1, (self._cpu_count() or 1) * multiplier)

    def cancel(self) -> None:
        """Request cooperative cancellation of the run."""
        if not self._cancel_event.is_set():
            _LOGGER.warning("ingest_cancel_requested", source=self._options.source_uri)
        self._cancel_event.set()

    def run(self) -> IngestSummary:
        """Stream the source into the index and return final counters.

        Returns:
            Summary of a run that reached the stopped state.

        Raises:
            CensusError: If startup, decoding, or a bulk write fails.
            IngestCancelledError: If the run was cancelled externally.
        """
        _LOGGER.info(
            "ingest_started",
            source=self._options.source_uri,
            input_format=self._options.input_format,
            index=self._config.opensearch_index,
            resume_offset=self._options.resume_offset,
            batch_size=self.batch_size,
            workers=self.worker_count,
            region=self._region,
        )
        try:
            self._state = self._run_stages()
        except BaseException:
            self._state = "cancelled"
            raise
        finally:
            self.summary = self._build_summary()
            _log_summary(self.summary)
        if self._state == "cancelled":
            raise IngestCancelledError("Ingest cancelled before the source was fully indexed.")
        return self.summary

    def _run_stages(self) -> PipelineState:
        with open_source(self._options.source_uri, self._config) as stream, closing(
            open_decoder(stream, self._options.input_format, self._record_malformed)
        ) as decoder:
            index = self._resolve_index()
            index.apply_template()
            index.create_index()
            pool = WorkerPool(
                self._build_worker_factory(index),
                worker_count=self.worker_count,
                queue_capacity=self._config.ingest_queue_capacity,
                cancel_event=self._cancel_event,
            )
            monitor = ProgressMonitor(self._run, pool.queue_depth)
            self._monitor = monitor
            monitor.start()
            try:
                state = pool.run(
                    skip_resumed_records(decoder.records(), self._options.resume_offset)
                )
            finally:
                monitor.stop()
        if state == "stopped":
            index.finalize_index()
        return state

    def _resolve_index(self) -> PeopleIndex:
        if self._index is None:
            client = create_opensearch_client(self._config)
            self._index = PeopleIndex(client, self._config.opensearch_index)
        return self._index

    def _build_worker_factory(self, index: PeopleIndex) -> Callable[[int], IngestWorker]:
        def build_worker(worker_id: int) -> IngestWorker:
            submitter = BulkSubmitter(
                index,
                max_attempts=self._config.bulk_max_attempts,
                retry_base_seconds=self._config.bulk_retry_base_seconds,
                cancel_event=self._cancel_event,
            )
            return IngestWorker(
                worker_id,
                transformer=self._transformer,
                submitter=submitter,
                batch_size=self.batch_size,
                run=self._run,
                monitor=self._monitor,
            )

        return build_worker

    def _record_malformed(self, reason: str, detail: str) -> None:
        skipped = self._run.add_skipped()
        if skipped <= MALFORMED_LOG_FIRST or skipped % MALFORMED_LOG_EVERY == 0:
            _LOGGER.warning(
                "record_skipped",
                reason=reason,
                detail=detail,
                skipped=skipped,
            )

    def _build_summary(self) -> IngestSummary:
        snapshot = self._run.snapshot()
        return IngestSummary(
            processed=snapshot.processed,
            skipped_malformed=snapshot.skipped_malformed,
            resume_offset=snapshot.resume_offset,
            elapsed_seconds=snapshot.elapsed_seconds,
            throughput=snapshot.throughput,
            state=self._state,
            region=self._region,
        )


def ingest_source(
    options: IngestOptions,
    config: CensusConfig,
    cancel_event: threading.Event | None = None,
) -> IngestSummary:
    """Run one ingest and return its summary.

    Args:
        options: Source and per-run overrides.
        config: Runtime configuration.
        cancel_event: Optional shared cancellation signal.

    Returns:
        Final counters of a completed run.
    """
    runner = IngestPipelineRunner(options, config, cancel_event=cancel_event)
    return runner.run()


def _log_summary(summary: IngestSummary) -> None:
    _LOGGER.info(
        "ingest_summary",
        processed=summary.processed,
        skipped_malformed=summary.skipped_malformed,
        resume_offset=summary.resume_offset,
        elapsed_seconds=round(summary.elapsed_seconds, 2),
        docs_per_sec=round(summary.throughput, 2),
        state=summary.state,
        region=summary.region,
    )
