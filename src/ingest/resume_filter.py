"""Resume offset handling.

This module drops records that a previous, interrupted run already
ingested, before they reach the concurrent stage.
"""

from __future__ import annotations

from itertools import islice
from typing import Iterable, Iterator, TypeVar

from core.logging_config import get_logger

_LOGGER = get_logger(__name__)

T = TypeVar("T")


def skip_resumed_records(records: Iterable[T], resume_offset: int) -> Iterator[T]:
    """Discard the first ``resume_offset`` records and yield the rest.

    Skipped records are consumed without any transformation. A source
    shorter than the offset yields nothing and is not an error.

    Args:
        records: Decoded record sequence.
        resume_offset: Non-negative count of records to discard.

    Raises:
        ValueError: If ``resume_offset`` is negative.
    """
    if resume_offset < 0:
        raise ValueError(f"resume offset must be non-negative, got {resume_offset}")
    iterator = iter(records)
    if resume_offset:
        _LOGGER.info("resume_skip_started", resume_offset=resume_offset)
        skipped = sum(1 for _ in islice(iterator, resume_offset))
        if skipped < resume_offset:
            _LOGGER.warning(
                "resume_offset_beyond_source",
                resume_offset=resume_offset,
                available=skipped,
            )
            return
        _LOGGER.info("resume_skip_completed", skipped=skipped)
    yield from iterator
