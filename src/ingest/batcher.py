"""Per-worker document batching.

Each worker owns one batcher; batches are never shared across threads.
"""

from __future__ import annotations

from typing import Callable

from core.types import CanonicalDocument, IndexedDocument
from ingest.document_identity import build_document_id

BatchFlush = Callable[[list[IndexedDocument]], None]


class Batcher:
    """Accumulate documents and hand full batches to a flush callback."""

    def __init__(self, batch_size: int, flush: BatchFlush) -> None:
        if batch_size < 1:
            raise ValueError(f"batch size must be positive, got {batch_size}")
        self._batch_size = batch_size
        self._flush = flush
        self._pending: list[IndexedDocument] = []

    def __len__(self) -> int:
        return len(self._pending)

    def add(self, document: CanonicalDocument) -> None:
        """Append a document, flushing when the batch reaches capacity."""
        self._pending.append(IndexedDocument(doc_id=build_document_id(document), document=document))
        if len(self._pending) >= self._batch_size:
            self.flush()

    def flush(self) -> None:
        """Hand the pending batch to the flush callback and start a new one."""
        if not self._pending:
            return
        batch = self._pending
        self._pending = []
        self._flush(batch)

    def discard(self) -> int:
        """Drop pending documents without writing them; return how many."""
        dropped = len(self._pending)
        self._pending = []
        return dropped
