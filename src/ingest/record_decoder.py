"""Streaming record decoders.

This module turns a source byte stream into a lazy, finite sequence of
raw records. JSON input is framed as one array or as concatenated bare
objects; CSV input is mapped through its header row. Malformed records
are reported to a callback and skipped, never raised.
"""

from __future__ import annotations

import csv
import io
import json
from typing import Any, Callable, Iterator, Protocol, Sequence

from core.constants import (
    CSV_REQUIRED_COLUMNS,
    CSV_REQUIRED_VALUES,
    MAX_JSON_SPAN_BYTES,
    READ_CHUNK_SIZE,
)
from core.errors import CensusIngestError, SchemaValidationError
from core.logging_config import get_logger
from core.types import InputFormat, RawRecord, SourceFraming
from ingest.format_sniffer import sniff_framing
from ingest.json_stream import ArrayElementScanner, BareObjectScanner, OversizedSpan, SpanScanner

_LOGGER = get_logger(__name__)

MalformedRecordHandler = Callable[[str, str], None]

_REPLACEMENT_CHARACTER = "\ufffd"


class RecordDecoder(Protocol):
    """Prepared decoder yielding raw records once."""

    def records(self) -> Iterator[RawRecord]:
        """Yield decoded records in source order."""

    def close(self) -> None:
        """Release the decoder without closing the source stream."""


class JsonRecordDecoder:
    """Decode JSON-array or bare-object input into raw records."""

    def __init__(
        self,
        stream: io.BufferedReader,
        on_malformed: MalformedRecordHandler,
        chunk_size: int = READ_CHUNK_SIZE,
    ) -> None:
        self._stream = stream
        self._on_malformed = on_malformed
        self._chunk_size = chunk_size
        self.framing: SourceFraming = sniff_framing(stream)
        _LOGGER.info("source_framing_detected", framing=self.framing)

    def records(self) -> Iterator[RawRecord]:
        """Yield one record per well-formed JSON object.

        Raises:
            TruncatedInputError: If an array source lacks its closing bracket.
        """
        if self.framing == "empty":
            _LOGGER.info("source_empty")
            return
        scanner = _build_scanner(self.framing)
        while True:
            chunk = self._stream.read(self._chunk_size)
            if not chunk:
                break
            for span in scanner.feed(chunk):
                record = _parse_object_span(span, self._on_malformed)
                if record is not None:
                    yield record
        for span in scanner.finish():
            record = _parse_object_span(span, self._on_malformed)
            if record is not None:
                yield record

    def close(self) -> None:
        """Nothing to release; the source stream belongs to the caller."""


class CsvRecordDecoder:
    """Decode header-mapped CSV rows into raw records."""

    def __init__(
        self,
        stream: io.BufferedReader,
        on_malformed: MalformedRecordHandler,
        required_columns: Sequence[str] = CSV_REQUIRED_COLUMNS,
        required_values: Sequence[str] = CSV_REQUIRED_VALUES,
    ) -> None:
        self._text = io.TextIOWrapper(stream, encoding="utf-8-sig", errors="replace", newline="")
        self._reader = csv.reader(self._text, skipinitialspace=True, strict=False)
        self._on_malformed = on_malformed
        self._required_columns = tuple(required_columns)
        self._required_values = tuple(required_values)
        self._header: list[str] | None = None
        self._detached = False

    def validate_header(self) -> list[str]:
        """Read the header row and check every required column is present.

        Returns:
            Header column names in file order.

        Raises:
            SchemaValidationError: If any required column is missing.
            CensusIngestError: If the header row cannot be parsed.
        """
        if self._header is not None:
            return self._header
        try:
            header = [name.strip() for name in next(self._reader)]
        except StopIteration:
            header = []
        except csv.Error as error:
            raise CensusIngestError(f"Failed to read CSV header: {error}.") from error
        missing = [column for column in self._required_columns if column not in header]
        if missing:
            raise SchemaValidationError(
                f"CSV header is missing required column(s): {', '.join(missing)}. "
                f"Required columns are {', '.join(self._required_columns)}.",
                missing_columns=missing,
            )
        _LOGGER.info("csv_header_validated", columns=header)
        self._header = header
        return header

    def records(self) -> Iterator[RawRecord]:
        """Yield one record per valid data row keyed by header name."""
        header = self.validate_header()
        column_index = {name: position for position, name in enumerate(header) if name}
        try:
            yield from self._iter_rows(header, column_index)
        finally:
            self.close()

    def close(self) -> None:
        """Detach the text wrapper so the byte stream stays open."""
        if self._detached:
            return
        self._detached = True
        self._text.detach()

    def _iter_rows(self, header: list[str], column_index: dict[str, int]) -> Iterator[RawRecord]:
        while True:
            try:
                row = next(self._reader)
            except StopIteration:
                return
            except csv.Error as error:
                self._on_malformed("csv_parse_error", f"line {self._reader.line_num}: {error}")
                continue
            if not row:
                continue
            if any(_REPLACEMENT_CHARACTER in field for field in row):
                self._on_malformed(
                    "csv_invalid_encoding",
                    f"line {self._reader.line_num}: bytes are not valid UTF-8",
                )
                continue
            if len(row) != len(header):
                self._on_malformed(
                    "csv_field_count",
                    f"line {self._reader.line_num}: expected {len(header)} fields, got {len(row)}",
                )
                continue
            record = {name: row[position] for name, position in column_index.items() if row[position]}
            missing = [name for name in self._required_values if not record.get(name)]
            if missing:
                self._on_malformed(
                    "csv_missing_value",
                    f"line {self._reader.line_num}: empty {', '.join(missing)}",
                )
                continue
            yield record


def open_decoder(
    stream: io.BufferedReader,
    input_format: InputFormat,
    on_malformed: MalformedRecordHandler,
) -> JsonRecordDecoder | CsvRecordDecoder:
    """Build a decoder and run its startup checks.

    JSON decoders sniff framing; CSV decoders validate the header, so
    schema problems surface before any index or worker is touched.
    """
    if input_format == "csv":
        decoder = CsvRecordDecoder(stream, on_malformed)
        try:
            decoder.validate_header()
        except BaseException:
            decoder.close()
            raise
        return decoder
    return JsonRecordDecoder(stream, on_malformed)


def _build_scanner(framing: SourceFraming) -> SpanScanner:
    if framing == "json_array":
        return ArrayElementScanner()
    return BareObjectScanner()


def _parse_object_span(span: bytes, on_malformed: MalformedRecordHandler) -> dict[str, Any] | None:
    """Parse one JSON span, reporting anything that is not an object."""
    if isinstance(span, OversizedSpan):
        on_malformed(
            "record_too_large",
            f"JSON value exceeds {MAX_JSON_SPAN_BYTES} bytes, starting {bytes(span)!r}",
        )
        return None
    if not span.strip():
        on_malformed("empty_element", "empty JSON array element")
        return None
    try:
        payload = json.loads(span)
    except (ValueError, RecursionError) as error:
        on_malformed("invalid_json", str(error))
        return None
    if not isinstance(payload, dict):
        on_malformed("not_an_object", f"expected JSON object, got {type(payload).__name__}")
        return None
    return payload
