"""S3 URI parsing helpers.

This module centralizes object-storage URI parsing for source readers.
It keeps URI validation behavior consistent across the codebase.
"""

from __future__ import annotations

from dataclasses import dataclass

from core.errors import SourceUnavailableError

S3_SCHEME = "s3://"


@dataclass(frozen=True)
class S3Location:
    """Parsed S3 object location."""

    bucket: str
    key: str

    def uri(self) -> str:
        """Return the canonical ``s3://bucket/key`` form."""
        return f"{S3_SCHEME}{self.bucket}/{self.key}"


def is_s3_uri(value: str) -> bool:
    """Return whether a source descriptor names an S3 object."""
    return value.startswith(S3_SCHEME)


def parse_s3_uri(uri: str) -> S3Location:
    """Parse and validate an S3 object URI.

    Args:
        uri: URI in format ``s3://bucket/key``.

    Returns:
        Parsed bucket and key pair.

    Raises:
        SourceUnavailableError: If bucket or key segment is missing.
    """
    stripped_uri = uri.removeprefix(S3_SCHEME)
    if "/" not in stripped_uri:
        _raise_uri_error(uri)
    bucket, key = stripped_uri.split("/", 1)
    if not bucket or not key:
        _raise_uri_error(uri)
    return S3Location(bucket=bucket, key=key)


def _raise_uri_error(uri: str) -> None:
    """Raise the invalid URI error.

    Raises:
        SourceUnavailableError: Always.
    """
    raise SourceUnavailableError(
        f"Invalid S3 URI '{uri}': expected s3://bucket/key. "
        "Provide both bucket and key."
    )
