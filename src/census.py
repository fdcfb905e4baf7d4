"""Public SDK surface for census ingest.

This module provides a stable import path for library users.
It re-exports the primary client and typed option models.
"""

from __future__ import annotations

from core.config import CensusConfig
from core.errors import (
    BulkWriteError,
    CensusError,
    IngestCancelledError,
    SchemaValidationError,
    SourceUnavailableError,
    TruncatedInputError,
)
from core.types import CanonicalDocument, IngestOptions, IngestSummary
from ingest.ingest_sdk import CensusClient
from ingest.pipeline import IngestPipelineRunner, ingest_source

__all__ = [
    "BulkWriteError",
    "CanonicalDocument",
    "CensusClient",
    "CensusConfig",
    "CensusError",
    "IngestCancelledError",
    "IngestOptions",
    "IngestPipelineRunner",
    "IngestSummary",
    "SchemaValidationError",
    "SourceUnavailableError",
    "TruncatedInputError",
    "ingest_source",
]
