"""Source stream readers for ingestion.

This module opens standard input, local files, or S3 objects as one
sequential binary stream. Callers use it as a context manager so the
underlying handle is released on every exit path.
"""

from __future__ import annotations

from contextlib import contextmanager
import io
from pathlib import Path
import sys
from typing import Any, BinaryIO, Iterator

from core.config import CensusConfig
from core.constants import READ_CHUNK_SIZE
from core.errors import CensusDependencyError, SourceUnavailableError
from core.logging_config import get_logger
from core.s3_uri import S3Location, is_s3_uri, parse_s3_uri

_LOGGER = get_logger(__name__)

STDIN_SOURCE = "-"


@contextmanager
def open_source(source_uri: str, config: CensusConfig) -> Iterator[io.BufferedReader]:
    """Open a source descriptor as a buffered binary stream.

    Args:
        source_uri: ``-`` for stdin, ``s3://bucket/key``, or a local path.
        config: Runtime configuration for S3 session defaults.

    Yields:
        A buffered reader supporting ``read`` and ``peek``.

    Raises:
        SourceUnavailableError: If the source cannot be opened.
    """
    stream, release = _resolve_source(source_uri, config)
    try:
        yield stream
    finally:
        release()


def _resolve_source(source_uri: str, config: CensusConfig) -> tuple[io.BufferedReader, Any]:
    if source_uri == STDIN_SOURCE:
        _LOGGER.info("source_opened", kind="stdin")
        return _wrap_stream(sys.stdin.buffer), _noop_release
    if is_s3_uri(source_uri):
        location = parse_s3_uri(source_uri)
        body = _open_s3_object(location, config)
        _LOGGER.info("source_opened", kind="s3", uri=location.uri())
        return _wrap_stream(body), body.close
    stream = _open_local_file(Path(source_uri).expanduser())
    _LOGGER.info("source_opened", kind="file", path=source_uri)
    return stream, stream.close


def _open_local_file(source_path: Path) -> io.BufferedReader:
    """Open a local file for buffered binary reads.

    Raises:
        SourceUnavailableError: If path is missing or unreadable.
    """
    if not source_path.is_file():
        raise SourceUnavailableError(
            f"Failed to read source at {source_path}: file does not exist. "
            "Provide an existing file, an s3:// URI, or '-' for stdin."
        )
    try:
        return open(source_path, "rb", buffering=READ_CHUNK_SIZE)
    except OSError as error:
        raise SourceUnavailableError(
            f"Failed to open source at {source_path}: {error.strerror}."
        ) from error


def _open_s3_object(location: S3Location, config: CensusConfig) -> Any:
    """Fetch an S3 object body as a streaming handle.

    Raises:
        SourceUnavailableError: If the object cannot be fetched.
    """
    s3_client = _create_s3_client(config)
    try:
        response = s3_client.get_object(Bucket=location.bucket, Key=location.key)
    except Exception as error:
        raise SourceUnavailableError(
            f"Failed to fetch {location.uri()}: {error}. "
            "Check the bucket, key, and AWS credentials."
        ) from error
    _LOGGER.info(
        "s3_object_stream_opened",
        uri=location.uri(),
        content_length=response.get("ContentLength"),
    )
    return response["Body"]


def _create_s3_client(config: CensusConfig) -> Any:
    """Create a boto3 S3 client.

    Args:
        config: Runtime config containing optional profile, region, and keys.

    Returns:
        Boto3 S3 client.

    Raises:
        CensusDependencyError: If boto3 is missing.
    """
    try:
        import boto3
    except ImportError as error:
        raise CensusDependencyError(
            "S3 support requires boto3, but it is not installed. "
            "Install boto3 to ingest from s3:// sources."
        ) from error
    session = boto3.session.Session(**_build_boto3_session_kwargs(config))
    return session.client("s3")


def _build_boto3_session_kwargs(config: CensusConfig) -> dict[str, str]:
    """Build boto3 Session kwargs from config."""
    kwargs: dict[str, str] = {}
    if config.s3_profile:
        kwargs["profile_name"] = config.s3_profile
    if config.s3_region:
        kwargs["region_name"] = config.s3_region
    if config.aws_access_key_id and config.aws_secret_access_key:
        kwargs["aws_access_key_id"] = config.aws_access_key_id
        kwargs["aws_secret_access_key"] = config.aws_secret_access_key
    return kwargs


def _wrap_stream(handle: Any) -> io.BufferedReader:
    """Give any ``read(size)`` object a buffered, peekable interface."""
    if isinstance(handle, io.BufferedReader):
        return handle
    return io.BufferedReader(_ReadableAdapter(handle), buffer_size=READ_CHUNK_SIZE)


def _noop_release() -> None:
    """Leave process-owned streams such as stdin open."""


class _ReadableAdapter(io.RawIOBase):
    """Raw IO view over objects that only expose ``read(size)``."""

    def __init__(self, handle: BinaryIO) -> None:
        self._handle = handle

    def readable(self) -> bool:
        return True

    def readinto(self, buffer: Any) -> int:
        data = self._handle.read(len(buffer))
        if not data:
            return 0
        size = len(data)
        buffer[:size] = data
        return size
