"""Transform, batch, and submit loop body for one worker."""

from __future__ import annotations

from core.logging_config import get_logger
from core.types import IndexedDocument, RawRecord
from ingest.batcher import Batcher
from ingest.progress import ProgressMonitor
from ingest.record_transformer import RecordTransformer
from ingest.run_counters import IngestionRun
from search_index.bulk_submitter import BulkSubmitter

_LOGGER = get_logger(__name__)


class IngestWorker:
    """Owns one batch; commits counts only after a batch is written."""

    def __init__(
        self,
        worker_id: int,
        transformer: RecordTransformer,
        submitter: BulkSubmitter,
        batch_size: int,
        run: IngestionRun,
        monitor: ProgressMonitor | None = None,
    ) -> None:
        self.worker_id = worker_id
        self._transformer = transformer
        self._submitter = submitter
        self._run = run
        self._monitor = monitor
        self._batcher = Batcher(batch_size, self._commit)

    def accept(self, raw: RawRecord) -> None:
        """Transform one record into the worker's batch."""
        self._batcher.add(self._transformer.transform(raw))

    def finish(self) -> None:
        """Flush the final, possibly partial, batch."""
        self._batcher.flush()

    def abort(self) -> None:
        """Drop the unsubmitted batch after cancellation."""
        dropped = self._batcher.discard()
        if dropped:
            _LOGGER.info("worker_batch_discarded", worker=self.worker_id, documents=dropped)

    def _commit(self, batch: list[IndexedDocument]) -> None:
        self._submitter.submit(batch)
        before, after = self._run.add_processed(len(batch))
        if self._monitor is not None:
            self._monitor.record_committed(before, after)
