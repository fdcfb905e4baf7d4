"""Retrying bulk writes.

This module serializes a batch into one bulk request of index
(upsert-by-id) actions, inspects per-item results, and retries the whole
batch with exponential backoff plus jitter on transport or item failures.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import json
import random
import threading
from typing import Any, Callable, Mapping, Protocol, Sequence

from opensearchpy.exceptions import OpenSearchException

from core.constants import (
    BULK_FAILURE_SAMPLE_SIZE,
    BULK_RETRY_JITTER_SECONDS,
    NON_FATAL_BULK_ERROR_TYPES,
)
from core.errors import BulkWriteError, IngestCancelledError
from core.logging_config import get_logger
from core.types import IndexedDocument

_LOGGER = get_logger(__name__)


class BulkWriter(Protocol):
    """Index endpoint accepting newline-delimited bulk payloads."""

    index_name: str

    def bulk_write(self, payload: str) -> Mapping[str, Any]:
        """Send the payload and return the bulk response body."""


@dataclass(frozen=True)
class BulkInspection:
    """Per-item failures found in one bulk response."""

    fatal: list[str] = field(default_factory=list)
    non_fatal: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class BulkOutcome:
    """Result of a successfully submitted batch."""

    documents: int
    attempts: int
    non_fatal_failures: int


class BulkSubmitter:
    """Submit batches with whole-batch retries."""

    def __init__(
        self,
        writer: BulkWriter,
        max_attempts: int,
        retry_base_seconds: float,
        cancel_event: threading.Event | None = None,
        jitter: Callable[[], float] | None = None,
    ) -> None:
        self._writer = writer
        self._max_attempts = max(1, max_attempts)
        self._retry_base_seconds = retry_base_seconds
        self._cancel_event = cancel_event or threading.Event()
        self._jitter = jitter or _uniform_jitter

    def submit(self, batch: Sequence[IndexedDocument]) -> BulkOutcome:
        """Write one batch, retrying until success or attempts run out.

        Args:
            batch: Documents with their deterministic ids.

        Returns:
            Outcome with the attempt count that succeeded.

        Raises:
            BulkWriteError: If every attempt failed.
            IngestCancelledError: If the run was cancelled during backoff.
        """
        if not batch:
            return BulkOutcome(documents=0, attempts=0, non_fatal_failures=0)
        if self._cancel_event.is_set():
            raise IngestCancelledError("Bulk write skipped because the run was cancelled.")
        payload = build_bulk_payload(self._writer.index_name, batch)
        last_error = ""
        sample: list[str] = []
        for attempt in range(1, self._max_attempts + 1):
            try:
                response = self._writer.bulk_write(payload)
            except OpenSearchException as error:
                last_error = f"bulk request failed on attempt {attempt}/{self._max_attempts}: {error}"
                sample = []
            else:
                inspection = inspect_bulk_response(response)
                if not inspection.fatal:
                    return self._log_success(len(batch), attempt, inspection)
                sample = inspection.fatal[:BULK_FAILURE_SAMPLE_SIZE]
                last_error = (
                    f"bulk request returned {len(inspection.fatal)} failed items on attempt "
                    f"{attempt}/{self._max_attempts}, sample: {'; '.join(sample)}"
                )
            if attempt < self._max_attempts:
                self._wait_before_retry(attempt, last_error)
        raise BulkWriteError(
            f"Bulk write of {len(batch)} documents failed after {self._max_attempts} "
            f"attempts: {last_error}",
            attempts=self._max_attempts,
            failure_sample=sample,
        )

    def _wait_before_retry(self, attempt: int, last_error: str) -> None:
        wait_seconds = backoff_seconds(attempt, self._retry_base_seconds) + self._jitter()
        _LOGGER.warning(
            "bulk_retry_scheduled",
            attempt=attempt,
            max_attempts=self._max_attempts,
            wait_seconds=round(wait_seconds, 3),
            error=last_error,
        )
        if self._cancel_event.wait(wait_seconds):
            raise IngestCancelledError("Bulk retry abandoned because the run was cancelled.")

    def _log_success(self, documents: int, attempt: int, inspection: BulkInspection) -> BulkOutcome:
        if inspection.non_fatal:
            _LOGGER.warning(
                "bulk_indexed_with_recoverable_errors",
                documents=documents,
                attempt=attempt,
                recoverable_items=len(inspection.non_fatal),
                sample=inspection.non_fatal[:BULK_FAILURE_SAMPLE_SIZE],
            )
        else:
            _LOGGER.debug("bulk_indexed", documents=documents, attempt=attempt)
        return BulkOutcome(
            documents=documents,
            attempts=attempt,
            non_fatal_failures=len(inspection.non_fatal),
        )


def backoff_seconds(attempt: int, base_seconds: float) -> float:
    """Return the pre-jitter wait after a failed attempt: ``base * 2**(attempt-1)``."""
    return base_seconds * (2 ** (attempt - 1))


def build_bulk_payload(index_name: str, batch: Sequence[IndexedDocument]) -> str:
    """Serialize a batch into newline-delimited ``index`` actions."""
    lines: list[str] = []
    for item in batch:
        lines.append(json.dumps({"index": {"_index": index_name, "_id": item.doc_id}}))
        lines.append(json.dumps(item.document.to_index_source(), ensure_ascii=False))
    return "\n".join(lines) + "\n"


def inspect_bulk_response(response: Mapping[str, Any]) -> BulkInspection:
    """Classify item failures in a bulk response.

    An item fails when it carries an ``error`` or a status of 300 or more.
    Version conflicts on an already-written id are duplicates and non-fatal.
    """
    inspection = BulkInspection()
    if not response.get("errors"):
        return inspection
    for position, item in enumerate(response.get("items", [])):
        for action, result in item.items():
            message = _describe_item_failure(position, action, result)
            if message is None:
                continue
            if _is_non_fatal(result):
                inspection.non_fatal.append(message)
            else:
                inspection.fatal.append(message)
    return inspection


def _describe_item_failure(position: int, action: str, result: Mapping[str, Any]) -> str | None:
    status = int(result.get("status") or 0)
    error = result.get("error")
    if error is None and status < 300:
        return None
    if isinstance(error, Mapping):
        return (
            f"item {position} action {action} status {status} "
            f"type={error.get('type')} reason={error.get('reason')}"
        )
    if error:
        return f"item {position} action {action} status {status} error={error}"
    return f"item {position} action {action} returned status {status}"


def _is_non_fatal(result: Mapping[str, Any]) -> bool:
    error = result.get("error")
    error_type = error.get("type") if isinstance(error, Mapping) else None
    return result.get("status") == 409 and error_type in NON_FATAL_BULK_ERROR_TYPES


def _uniform_jitter() -> float:
    return random.uniform(0.0, BULK_RETRY_JITTER_SECONDS)
