"""Unit tests for resume offset handling."""

from __future__ import annotations

import pytest

from ingest.resume_filter import skip_resumed_records


class _FakeLogger:
    def __init__(self) -> None:
        self.events: list[str] = []

    def info(self, event: str, **fields: object) -> None:
        self.events.append(event)

    def warning(self, event: str, **fields: object) -> None:
        self.events.append(event)


def test_skip_resumed_records_drops_leading_records() -> None:
    """The first offset records should be dropped."""
    assert list(skip_resumed_records(range(10), 3)) == [3, 4, 5, 6, 7, 8, 9]


def test_skip_resumed_records_matches_suffix_of_full_run() -> None:
    """Resuming at K should process exactly the records after the first K."""
    records = [{"id": f"ID{index}"} for index in range(6)]

    for offset in range(len(records) + 1):
        assert list(skip_resumed_records(iter(records), offset)) == records[offset:]


def test_skip_resumed_records_beyond_source_yields_nothing(monkeypatch) -> None:
    """An offset beyond the source should yield nothing and log it."""
    fake_logger = _FakeLogger()
    monkeypatch.setattr("ingest.resume_filter._LOGGER", fake_logger)

    assert list(skip_resumed_records(range(3), 10)) == []
    assert fake_logger.events == ["resume_skip_started", "resume_offset_beyond_source"]


def test_skip_resumed_records_rejects_negative_offset() -> None:
    """Negative offsets should be rejected."""
    with pytest.raises(ValueError):
        list(skip_resumed_records(range(3), -1))
