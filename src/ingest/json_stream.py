"""Incremental JSON span scanners.

This module splits a chunked byte stream into the raw text of individual
JSON values without materializing the whole input. Both scanners are
explicit state machines that track string literals, so braces, brackets,
and commas inside quoted values never affect nesting depth.

A raw control byte (anything below 0x20, including newline) cannot appear
inside a valid JSON string. When one shows up while a string is open, the
scanner reports the value captured so far as a malformed span and
resynchronizes, so one unbalanced quote costs one record rather than the
rest of the file. Values larger than the span limit are reported as an
``OversizedSpan`` and the remainder of that value is discarded unbuffered.
"""

from __future__ import annotations

import re
from typing import Protocol

from core.constants import MAX_JSON_SPAN_BYTES, OVERSIZED_SPAN_PREVIEW_BYTES
from core.errors import TruncatedInputError
from core.logging_config import get_logger

_LOGGER = get_logger(__name__)

_QUOTE = ord('"')
_BACKSLASH = ord("\\")
_COMMA = ord(",")
_OPEN_BRACE = ord("{")
_CLOSE_BRACE = ord("}")
_OPEN_BRACKET = ord("[")
_CLOSE_BRACKET = ord("]")
_SPACE = ord(" ")

_OBJECT_TOKENS = re.compile(rb'[{}"\\\x00-\x1f]')
_ARRAY_TOKENS = re.compile(rb'[\[\]{}",\\\x00-\x1f]')

_TOKEN_STRUCTURAL = 0
_TOKEN_IGNORED = 1
_TOKEN_BROKEN_STRING = 2


class OversizedSpan(bytes):
    """Leading bytes of a JSON value that exceeded the span limit."""


class SpanScanner(Protocol):
    """Chunk-fed scanner emitting the raw bytes of complete JSON values."""

    def feed(self, chunk: bytes) -> list[bytes]:
        """Consume one chunk and return the spans completed inside it."""

    def finish(self) -> list[bytes]:
        """Signal end of input and return any trailing span."""


class _StringTracker:
    """Shared string-literal state for the span scanners."""

    def __init__(self, track_strings: bool = True) -> None:
        self.track_strings = track_strings
        self.in_string = False
        self.skip_until = 0
        self.carried_skip = 0

    def classify(self, token: int, index: int) -> int:
        """Update string state and say how the caller should treat the token."""
        if not self.track_strings:
            if token == _QUOTE or token == _BACKSLASH or token < _SPACE:
                return _TOKEN_IGNORED
            return _TOKEN_STRUCTURAL
        if self.in_string:
            if token < _SPACE:
                self.in_string = False
                return _TOKEN_BROKEN_STRING
            if token == _BACKSLASH:
                self.skip_until = index + 2
            elif token == _QUOTE:
                self.in_string = False
            return _TOKEN_IGNORED
        if token == _QUOTE:
            self.in_string = True
            return _TOKEN_IGNORED
        if token < _SPACE:
            return _TOKEN_IGNORED
        return _TOKEN_STRUCTURAL

    def begin_chunk(self) -> None:
        self.skip_until = self.carried_skip
        self.carried_skip = 0

    def end_chunk(self, chunk_length: int) -> None:
        self.carried_skip = max(0, self.skip_until - chunk_length)


class BareObjectScanner:
    """Split concatenated top-level JSON objects.

    States are *outside* (bytes are separators and ignored) and *inside*
    (capturing, with a brace depth counter). Capture starts at a ``{`` seen
    outside and ends when depth returns to zero or a string breaks.
    """

    def __init__(self, max_span_bytes: int = MAX_JSON_SPAN_BYTES) -> None:
        self._max_span_bytes = max_span_bytes
        self._inside = False
        self._discarding = False
        self._depth = 0
        self._strings = _StringTracker()
        self._captured = bytearray()

    def feed(self, chunk: bytes) -> list[bytes]:
        spans: list[bytes] = []
        capture_from = 0
        self._strings.begin_chunk()
        for match in _OBJECT_TOKENS.finditer(chunk):
            index = match.start()
            if index < self._strings.skip_until:
                continue
            token = chunk[index]
            if not self._inside:
                if token == _OPEN_BRACE:
                    self._inside = True
                    self._depth = 1
                    capture_from = index
                continue
            kind = self._strings.classify(token, index)
            if kind == _TOKEN_BROKEN_STRING:
                self._close(chunk[capture_from:index], spans)
            elif kind == _TOKEN_IGNORED:
                continue
            elif token == _OPEN_BRACE:
                self._depth += 1
            elif token == _CLOSE_BRACE:
                self._depth -= 1
                if self._depth == 0:
                    self._close(chunk[capture_from : index + 1], spans)
        if self._inside:
            self._capture(chunk[capture_from:], spans)
        self._strings.end_chunk(len(chunk))
        return spans

    def finish(self) -> list[bytes]:
        if not self._inside:
            return []
        spans = [] if self._discarding else [_bounded(self._captured, self._max_span_bytes)]
        self._reset()
        return spans

    def _capture(self, part: bytes, spans: list[bytes]) -> None:
        if self._discarding:
            return
        self._captured += part
        if len(self._captured) > self._max_span_bytes:
            spans.append(_oversized(self._captured))
            self._captured.clear()
            self._discarding = True

    def _close(self, tail: bytes, spans: list[bytes]) -> None:
        if not self._discarding:
            self._captured += tail
            spans.append(_bounded(self._captured, self._max_span_bytes))
        self._reset()

    def _reset(self) -> None:
        self._captured.clear()
        self._inside = False
        self._discarding = False
        self._depth = 0
        self._strings.in_string = False


class ArrayElementScanner:
    """Split the elements of one top-level JSON array.

    States are *before* (waiting for ``[``), *open* (capturing elements
    separated by commas at depth one), and *closed* (anything after the
    closing ``]`` is ignored). Only a ``]`` at depth one closes the array;
    a stray closer at depth one stays inside the current element, which
    then fails to parse. Empty elements such as the gap in ``[{},,{}]``
    are emitted as empty spans so callers can count them as malformed.
    After a broken string the scanner seeks the next element start, comma,
    or closing bracket without capturing.

    If input ends while the array is still open, the pending bytes are
    scanned once more with string tracking off. When that pass finds the
    closing ``]``, the desynchronized tail is split by depth alone and
    the array counts as closed; otherwise the input is truncated.
    """

    def __init__(
        self,
        max_span_bytes: int = MAX_JSON_SPAN_BYTES,
        track_strings: bool = True,
    ) -> None:
        self._max_span_bytes = max_span_bytes
        self._state = "before"
        self._depth = 0
        self._strings = _StringTracker(track_strings)
        self._element = bytearray()
        self._saw_separator = False
        self._discarding = False
        self._seeking = False

    @property
    def closed(self) -> bool:
        return self._state == "closed"

    def feed(self, chunk: bytes) -> list[bytes]:
        spans: list[bytes] = []
        if self._state == "closed":
            return spans
        capture_from = 0
        self._strings.begin_chunk()
        for match in _ARRAY_TOKENS.finditer(chunk):
            index = match.start()
            if index < self._strings.skip_until:
                continue
            token = chunk[index]
            if self._state == "before":
                if token == _OPEN_BRACKET:
                    self._state = "open"
                    self._depth = 1
                    capture_from = index + 1
                continue
            kind = self._strings.classify(token, index)
            if kind == _TOKEN_BROKEN_STRING:
                self._end_element(chunk[capture_from:index], spans)
                self._depth = 1
                self._seeking = True
            elif kind == _TOKEN_IGNORED:
                continue
            elif self._seeking:
                if token in (_OPEN_BRACE, _OPEN_BRACKET):
                    self._seeking = False
                    self._depth = 2
                    capture_from = index
                elif token == _COMMA:
                    self._seeking = False
                    self._saw_separator = True
                    capture_from = index + 1
                elif token == _CLOSE_BRACKET:
                    self._state = "closed"
                    break
            elif token in (_OPEN_BRACE, _OPEN_BRACKET):
                self._depth += 1
            elif token == _CLOSE_BRACKET and self._depth == 1:
                self._end_element(chunk[capture_from:index], spans, closing=True)
                self._state = "closed"
                break
            elif token in (_CLOSE_BRACE, _CLOSE_BRACKET):
                if self._depth > 1:
                    self._depth -= 1
            elif token == _COMMA and self._depth == 1:
                self._end_element(chunk[capture_from:index], spans)
                self._saw_separator = True
                capture_from = index + 1
        if self._state == "open" and not self._seeking:
            self._capture(chunk[capture_from:], spans)
        self._strings.end_chunk(len(chunk))
        return spans

    def finish(self) -> list[bytes]:
        """Confirm the array was closed.

        Returns:
            Spans recovered from a desynchronized tail, if any.

        Raises:
            TruncatedInputError: If input ended before the closing ``]``.
        """
        if self._state == "closed":
            return []
        if self._state == "open" and not self._discarding and self._strings.track_strings:
            recovered = self._rescan_by_depth()
            if recovered is not None:
                return recovered
        raise TruncatedInputError(
            "JSON array input ended before its closing ']'. "
            "The source is truncated; re-export it or resume from the last "
            "committed offset once the file is complete."
        )

    def _rescan_by_depth(self) -> list[bytes] | None:
        fallback = ArrayElementScanner(self._max_span_bytes, track_strings=False)
        fallback._state = "open"
        fallback._depth = 1
        fallback._saw_separator = self._saw_separator
        spans = fallback.feed(bytes(self._element))
        if not fallback.closed:
            return None
        _LOGGER.warning("json_array_tail_recovered", elements=len(spans))
        self._element.clear()
        self._state = "closed"
        return spans

    def _capture(self, part: bytes, spans: list[bytes]) -> None:
        if self._discarding:
            return
        self._element += part
        if len(self._element) > self._max_span_bytes:
            spans.append(_oversized(self._element))
            self._element.clear()
            self._discarding = True

    def _end_element(self, tail: bytes, spans: list[bytes], closing: bool = False) -> None:
        if self._discarding:
            self._discarding = False
        else:
            self._element += tail
            if not closing or self._saw_separator or self._element.strip():
                spans.append(_bounded(self._element, self._max_span_bytes))
        self._element.clear()


def _bounded(buffer: bytearray, limit: int) -> bytes:
    if len(buffer) > limit:
        return _oversized(buffer)
    return bytes(buffer)


def _oversized(buffer: bytearray) -> OversizedSpan:
    return OversizedSpan(bytes(buffer[:OVERSIZED_SPAN_PREVIEW_BYTES]))
