"""Input framing detection.

This module peeks at the first significant byte of a source stream
to choose between JSON-array and bare-object decoding.
"""

from __future__ import annotations

import io

from core.constants import JSON_WHITESPACE, UTF8_BOM
from core.types import SourceFraming


def sniff_framing(stream: io.BufferedReader) -> SourceFraming:
    """Detect how JSON records are framed in a stream.

    One leading UTF-8 byte-order mark and any JSON whitespace are consumed.
    The first significant byte itself is left unread for the decoder.

    Args:
        stream: Buffered binary stream positioned at the start of input.

    Returns:
        ``json_array`` when the first byte is ``[``, ``empty`` when the
        stream holds only whitespace, otherwise ``bare_objects``.
    """
    first_byte = peek_first_significant_byte(stream)
    if first_byte is None:
        return "empty"
    if first_byte == b"[":
        return "json_array"
    return "bare_objects"


def peek_first_significant_byte(stream: io.BufferedReader) -> bytes | None:
    """Return the first byte that is not a BOM or whitespace, without consuming it.

    Args:
        stream: Buffered binary stream.

    Returns:
        The peeked byte, or ``None`` at end of stream.
    """
    _skip_byte_order_mark(stream)
    while True:
        head = stream.peek(1)[:1]
        if not head:
            return None
        if head not in JSON_WHITESPACE:
            return head
        stream.read(1)


def _skip_byte_order_mark(stream: io.BufferedReader) -> None:
    if stream.peek(len(UTF8_BOM))[: len(UTF8_BOM)] == UTF8_BOM:
        stream.read(len(UTF8_BOM))
