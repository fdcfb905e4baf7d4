"""Shared typed models.

This module defines the data models passed between the source reader,
decoders, transformer, worker pool, and the search-index sink.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal, Mapping

RawRecord = Mapping[str, Any]
SourceFraming = Literal["json_array", "bare_objects", "empty"]
InputFormat = Literal["json", "csv"]
PipelineState = Literal["running", "draining", "stopped", "cancelled"]


@dataclass(frozen=True)
class CanonicalDocument:
    """Fixed-shape person document written to the search index.

    Attributes:
        mobile: Primary phone number.
        name: Person name.
        father_name: Father's name.
        address: Primary address.
        alt_address: Secondary address, mirrored from ``address``.
        alt_mobile: Alternate phone number.
        person_id: Identity-document number supplied by the source.
        oid: External object id supplied by the source.
        email: Email address.
        year_of_registration: Supplied or augmented registration year.
        region: Region tag.
        internal_id: External identity used as the index ``_id``. Never persisted.
    """

    mobile: str = ""
    name: str = ""
    father_name: str = ""
    address: str = ""
    alt_address: str = ""
    alt_mobile: str = ""
    person_id: str = ""
    oid: str = ""
    email: str = ""
    year_of_registration: int = 0
    region: str = ""
    internal_id: str = ""

    def to_index_source(self) -> dict[str, Any]:
        """Return the ``_source`` payload for a bulk write."""
        return {
            "mobile": self.mobile,
            "name": self.name,
            "fname": self.father_name,
            "address": self.address,
            "alt_address": self.alt_address,
            "alt": self.alt_mobile,
            "id": self.person_id,
            "oid": self.oid,
            "email": self.email,
            "year_of_registration": self.year_of_registration,
            "region": self.region,
        }


@dataclass(frozen=True)
class IndexedDocument:
    """A canonical document paired with its deterministic index identity."""

    doc_id: str
    document: CanonicalDocument


@dataclass(frozen=True)
class IngestOptions:
    """Ingest command options.

    Attributes:
        source_uri: ``-``, a local path, or an ``s3://bucket/key`` URI.
        input_format: ``json`` for array/object streams, ``csv`` for delimited files.
        resume_offset: Number of already-ingested records to skip.
        batch_size: Optional override of the configured batch size.
        worker_multiplier: Optional override of workers per CPU.
        region: Optional override of the default region tag.
    """

    source_uri: str
    input_format: InputFormat = "json"
    resume_offset: int = 0
    batch_size: int | None = None
    worker_multiplier: int | None = None
    region: str | None = None


@dataclass(frozen=True)
class IngestSummary:
    """Final counters for one ingest run.

    Attributes:
        processed: Documents committed to the index.
        skipped_malformed: Records dropped as malformed.
        resume_offset: Records skipped by the resume filter.
        elapsed_seconds: Wall-clock run time.
        throughput: Committed documents per second.
        state: Terminal pipeline state.
        region: Default region tag applied to the run.
    """

    processed: int
    skipped_malformed: int
    resume_offset: int
    elapsed_seconds: float
    throughput: float
    state: PipelineState
    region: str
