"""Census exception hierarchy.

This module defines traceable domain errors with clear boundaries.
Each subsystem raises a specific error type for debuggability.
"""

from __future__ import annotations

from typing import Sequence


class CensusError(Exception):
    """Base exception for all Census failures."""


class CensusConfigError(CensusError):
    """Raised for invalid runtime configuration."""


class CensusDependencyError(CensusError):
    """Raised when an optional runtime dependency is missing."""


class CensusIngestError(CensusError):
    """Raised for source reading and record decoding failures."""


class SourceUnavailableError(CensusIngestError):
    """Raised when a source path, stream, or object cannot be opened."""


class TruncatedInputError(CensusIngestError):
    """Raised when a JSON array source ends before its closing bracket."""


class SchemaValidationError(CensusIngestError):
    """Raised when a CSV header lacks required columns."""

    def __init__(self, message: str, missing_columns: Sequence[str]) -> None:
        super().__init__(message)
        self.missing_columns = tuple(missing_columns)


class CensusIndexError(CensusError):
    """Raised for index template, creation, and settings failures."""


class BulkWriteError(CensusError):
    """Raised when a bulk write still fails after every retry attempt."""

    def __init__(self, message: str, attempts: int, failure_sample: Sequence[str] = ()) -> None:
        super().__init__(message)
        self.attempts = attempts
        self.failure_sample = tuple(failure_sample)


class IngestCancelledError(CensusError):
    """Raised when an ingest run is stopped by an external signal."""
