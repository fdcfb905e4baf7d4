"""Unit tests for retrying bulk writes."""

from __future__ import annotations

import json
import threading
from typing import Any

import pytest
from opensearchpy.exceptions import ConnectionError as OpenSearchConnectionError

from core.errors import BulkWriteError, IngestCancelledError
from core.types import CanonicalDocument, IndexedDocument
from search_index.bulk_submitter import (
    BulkSubmitter,
    backoff_seconds,
    build_bulk_payload,
    inspect_bulk_response,
)


class _ScriptedWriter:
    """Bulk writer replaying a scripted list of responses or errors."""

    index_name = "people-test"

    def __init__(self, script: list[Any]) -> None:
        self._script = list(script)
        self.payloads: list[str] = []

    def bulk_write(self, payload: str) -> dict[str, Any]:
        self.payloads.append(payload)
        outcome = self._script.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class _RecordingEvent:
    """Cancellation event that records waits instead of sleeping."""

    def __init__(self, cancel_on_wait: bool = False) -> None:
        self.waits: list[float] = []
        self._cancel_on_wait = cancel_on_wait

    def is_set(self) -> bool:
        return False

    def wait(self, timeout: float) -> bool:
        self.waits.append(timeout)
        return self._cancel_on_wait


def _batch(size: int) -> list[IndexedDocument]:
    return [
        IndexedDocument(
            doc_id=f"id-{index}",
            document=CanonicalDocument(mobile=f"98100000{index:02d}", name=f"Person {index}"),
        )
        for index in range(size)
    ]


def _failed_item(status: int, error_type: str) -> dict[str, Any]:
    return {"index": {"status": status, "error": {"type": error_type, "reason": "boom"}}}


def _ok() -> dict[str, Any]:
    return {"errors": False, "items": [{"index": {"status": 201}}]}


def _connection_error() -> OpenSearchConnectionError:
    return OpenSearchConnectionError("N/A", "connection refused", None)


def test_submit_succeeds_on_first_attempt() -> None:
    """A clean response should succeed after one attempt."""
    writer = _ScriptedWriter([_ok()])
    submitter = BulkSubmitter(writer, max_attempts=3, retry_base_seconds=1.0)

    outcome = submitter.submit(_batch(2))

    assert (outcome.documents, outcome.attempts) == (2, 1)


def test_submit_retries_whole_batch_after_transport_error() -> None:
    """Every attempt should resend the identical payload."""
    event = _RecordingEvent()
    writer = _ScriptedWriter([_connection_error(), _connection_error(), _ok()])
    submitter = BulkSubmitter(
        writer,
        max_attempts=5,
        retry_base_seconds=2.0,
        cancel_event=event,  # type: ignore[arg-type]
        jitter=lambda: 0.0,
    )

    outcome = submitter.submit(_batch(3))

    assert outcome.attempts == 3
    assert len(set(writer.payloads)) == 1
    assert event.waits == [2.0, 4.0]


def test_backoff_waits_are_monotonic_before_jitter() -> None:
    """Backoff waits should double with each attempt."""
    event = _RecordingEvent()
    writer = _ScriptedWriter([_connection_error()] * 5)
    submitter = BulkSubmitter(
        writer,
        max_attempts=5,
        retry_base_seconds=0.5,
        cancel_event=event,  # type: ignore[arg-type]
        jitter=lambda: 0.25,
    )

    with pytest.raises(BulkWriteError) as error_info:
        submitter.submit(_batch(1))

    assert error_info.value.attempts == 5
    for attempt, waited in enumerate(event.waits, start=1):
        assert waited >= backoff_seconds(attempt, 0.5)
    assert event.waits == sorted(event.waits)
    assert len(event.waits) == 4


def test_submit_retries_on_fatal_item_failures() -> None:
    """Fatal item failures should trigger whole-batch retries."""
    failed = {"errors": True, "items": [_failed_item(429, "es_rejected_execution_exception")]}
    event = _RecordingEvent()
    writer = _ScriptedWriter([failed, failed])
    submitter = BulkSubmitter(
        writer,
        max_attempts=2,
        retry_base_seconds=0.0,
        cancel_event=event,  # type: ignore[arg-type]
        jitter=lambda: 0.0,
    )

    with pytest.raises(BulkWriteError) as error_info:
        submitter.submit(_batch(1))

    assert "es_rejected_execution_exception" in error_info.value.failure_sample[0]


def test_submit_treats_version_conflicts_as_success() -> None:
    """Duplicate-id conflicts should not trigger a retry."""
    response = {
        "errors": True,
        "items": [{"index": {"status": 201}}, _failed_item(409, "version_conflict_engine_exception")],
    }
    writer = _ScriptedWriter([response])
    submitter = BulkSubmitter(writer, max_attempts=3, retry_base_seconds=1.0)

    outcome = submitter.submit(_batch(2))

    assert (outcome.attempts, outcome.non_fatal_failures) == (1, 1)


def test_submit_stops_retrying_when_cancelled() -> None:
    """Cancellation during backoff should abandon the retry."""
    writer = _ScriptedWriter([_connection_error(), _ok()])
    submitter = BulkSubmitter(
        writer,
        max_attempts=3,
        retry_base_seconds=1.0,
        cancel_event=_RecordingEvent(cancel_on_wait=True),  # type: ignore[arg-type]
        jitter=lambda: 0.0,
    )

    with pytest.raises(IngestCancelledError):
        submitter.submit(_batch(1))

    assert len(writer.payloads) == 1


def test_submit_skips_write_after_cancellation() -> None:
    """A cancelled run should not send the batch at all."""
    cancel_event = threading.Event()
    cancel_event.set()
    writer = _ScriptedWriter([])
    submitter = BulkSubmitter(writer, max_attempts=3, retry_base_seconds=1.0, cancel_event=cancel_event)

    with pytest.raises(IngestCancelledError):
        submitter.submit(_batch(1))

    assert writer.payloads == []


def test_submit_empty_batch_is_noop() -> None:
    """An empty batch should not reach the writer."""
    writer = _ScriptedWriter([])

    outcome = BulkSubmitter(writer, max_attempts=1, retry_base_seconds=0.0).submit([])

    assert outcome.documents == 0 and writer.payloads == []


def test_build_bulk_payload_writes_index_actions() -> None:
    """The payload should pair index actions with sources."""
    payload = build_bulk_payload("people-test", _batch(1))

    action, source = [json.loads(line) for line in payload.strip().split("\n")]
    assert action == {"index": {"_index": "people-test", "_id": "id-0"}}
    assert source["mobile"] == "9810000000"
    assert set(source) == {
        "mobile",
        "name",
        "fname",
        "address",
        "alt_address",
        "alt",
        "id",
        "oid",
        "email",
        "year_of_registration",
        "region",
    }
    assert payload.endswith("\n")


def test_inspect_bulk_response_flags_status_without_error_body() -> None:
    """Failing statuses without an error body should be fatal."""
    inspection = inspect_bulk_response({"errors": True, "items": [{"index": {"status": 500}}]})

    assert inspection.fatal == ["item 0 action index returned status 500"]
    assert inspection.non_fatal == []
