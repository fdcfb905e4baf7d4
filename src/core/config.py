"""Runtime configuration model for Census.

This module owns all environment variable parsing and validation.
Other modules consume a typed config object instead of raw env reads.
"""

from __future__ import annotations

from dataclasses import dataclass
import os
import re

from dotenv import find_dotenv, load_dotenv

from core.constants import (
    DEFAULT_BULK_MAX_ATTEMPTS,
    DEFAULT_BULK_RETRY_BASE_SECONDS,
    DEFAULT_INGEST_BATCH_SIZE,
    DEFAULT_OPENSEARCH_ENDPOINT,
    DEFAULT_OPENSEARCH_INDEX,
    DEFAULT_OPENSEARCH_TIMEOUT_SECONDS,
    DEFAULT_QUEUE_CAPACITY,
    DEFAULT_REGION,
    DEFAULT_S3_REGION,
    DEFAULT_WORKER_MULTIPLIER,
    MAX_INGEST_BATCH_SIZE,
    MAX_WORKER_MULTIPLIER,
    MIN_INGEST_BATCH_SIZE,
    MIN_WORKER_MULTIPLIER,
)
from core.errors import CensusConfigError
from core.logging_config import get_logger

_LOGGER = get_logger(__name__)

_DURATION_PATTERN = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(ms|s|m|h)?\s*$")
_DURATION_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}
_TRUE_VALUES = ("1", "true", "yes", "on")
_FALSE_VALUES = ("0", "false", "no", "off")


@dataclass(frozen=True)
class CensusConfig:
    """Validated runtime configuration.

    Attributes:
        opensearch_endpoint: Base URL of the OpenSearch cluster.
        opensearch_index: Index receiving bulk writes.
        opensearch_user: Optional basic-auth user.
        opensearch_password: Optional basic-auth password.
        opensearch_verify_certs: Whether TLS certificates are verified.
        opensearch_timeout_seconds: Per-request client timeout.
        bulk_max_attempts: Attempts per batch before the run is failed.
        bulk_retry_base_seconds: Base of the exponential retry backoff.
        ingest_batch_size: Documents per bulk request.
        ingest_worker_multiplier: Workers per available CPU.
        ingest_queue_capacity: Bound of the producer/worker queue.
        default_region: Region tag for records that carry none.
        augment_registration_year: Fill missing registration years randomly.
        s3_region: AWS region for object-storage sources.
        s3_profile: Optional AWS profile for boto3 session initialization.
        aws_access_key_id: Optional explicit AWS access key.
        aws_secret_access_key: Optional explicit AWS secret key.
    """

    opensearch_endpoint: str
    opensearch_index: str
    opensearch_user: str | None
    opensearch_password: str | None
    opensearch_verify_certs: bool
    opensearch_timeout_seconds: int
    bulk_max_attempts: int
    bulk_retry_base_seconds: float
    ingest_batch_size: int
    ingest_worker_multiplier: int
    ingest_queue_capacity: int
    default_region: str
    augment_registration_year: bool
    s3_region: str | None
    s3_profile: str | None
    aws_access_key_id: str | None
    aws_secret_access_key: str | None

    @classmethod
    def from_env(cls, load_dotenv_file: bool = True) -> "CensusConfig":
        """Build config from process environment variables.

        Args:
            load_dotenv_file: Load a ``.env`` file from the working directory
                first. Variables already present in the environment win.

        Returns:
            A validated config object.

        Raises:
            CensusConfigError: If environment values are invalid.
        """
        if load_dotenv_file:
            _load_dotenv_file()
        return cls(
            opensearch_endpoint=_read_required("OPENSEARCH_ENDPOINT", DEFAULT_OPENSEARCH_ENDPOINT),
            opensearch_index=_read_required("OPENSEARCH_INDEX", DEFAULT_OPENSEARCH_INDEX),
            opensearch_user=_read_optional("OPENSEARCH_MASTER_USER"),
            opensearch_password=_read_optional("OPENSEARCH_MASTER_PASSWORD"),
            opensearch_verify_certs=_read_flag("OPENSEARCH_VERIFY_CERTS", True),
            opensearch_timeout_seconds=_read_positive_int(
                "OPENSEARCH_TIMEOUT_SEC", DEFAULT_OPENSEARCH_TIMEOUT_SECONDS
            ),
            bulk_max_attempts=max(
                1, _read_int("OPENSEARCH_BULK_MAX_ATTEMPTS", DEFAULT_BULK_MAX_ATTEMPTS)
            ),
            bulk_retry_base_seconds=_read_duration(
                "OPENSEARCH_BULK_RETRY_BASE", DEFAULT_BULK_RETRY_BASE_SECONDS
            ),
            ingest_batch_size=clamp_int(
                _read_int("INGEST_BATCH_SIZE", DEFAULT_INGEST_BATCH_SIZE),
                MIN_INGEST_BATCH_SIZE,
                MAX_INGEST_BATCH_SIZE,
            ),
            ingest_worker_multiplier=clamp_int(
                _read_int("INGEST_WORKER_MULTIPLIER", DEFAULT_WORKER_MULTIPLIER),
                MIN_WORKER_MULTIPLIER,
                MAX_WORKER_MULTIPLIER,
            ),
            ingest_queue_capacity=_read_positive_int(
                "INGEST_QUEUE_CAPACITY", DEFAULT_QUEUE_CAPACITY
            ),
            default_region=_read_required("INGEST_DEFAULT_REGION", DEFAULT_REGION),
            augment_registration_year=_read_flag("INGEST_AUGMENT_YEAR", True),
            s3_region=os.getenv("AWS_REGION", DEFAULT_S3_REGION) or None,
            s3_profile=_read_optional("AWS_PROFILE"),
            aws_access_key_id=_read_optional("AWS_ACCESS_KEY_ID"),
            aws_secret_access_key=_read_optional("AWS_SECRET_ACCESS_KEY"),
        )


def clamp_int(value: int, minimum: int, maximum: int) -> int:
    """Clamp an integer into the inclusive ``[minimum, maximum]`` range."""
    return max(minimum, min(maximum, value))


def parse_duration_seconds(raw_value: str) -> float:
    """Parse a duration such as ``500ms``, ``2s``, ``1m`` or ``3`` into seconds.

    Args:
        raw_value: Duration text. A bare number is read as seconds.

    Returns:
        Duration in seconds.

    Raises:
        ValueError: If the value is not a recognised duration.
    """
    match = _DURATION_PATTERN.match(raw_value)
    if match is None:
        raise ValueError(f"unrecognised duration '{raw_value}'")
    amount = float(match.group(1))
    unit = match.group(2) or "s"
    return amount * _DURATION_UNITS[unit]


def _read_optional(name: str) -> str | None:
    value = os.getenv(name, "").strip()
    return value or None


def _read_required(name: str, default: str) -> str:
    value = os.getenv(name, "").strip()
    return value or default


def _read_int(name: str, default: int) -> int:
    """Read an integer environment value.

    Raises:
        CensusConfigError: If value cannot be parsed into int.
    """
    raw_value = os.getenv(name, "").strip()
    if not raw_value:
        return default
    try:
        return int(raw_value)
    except ValueError as error:
        raise CensusConfigError(
            f"Invalid {name} value: expected integer, got '{raw_value}'. "
            f"Set {name} to a numeric value."
        ) from error


def _read_positive_int(name: str, default: int) -> int:
    value = _read_int(name, default)
    if value <= 0:
        raise CensusConfigError(
            f"Invalid {name} value: expected a positive integer, got {value}."
        )
    return value


def _read_duration(name: str, default: float) -> float:
    """Read a duration environment value in seconds.

    Raises:
        CensusConfigError: If value is not a duration.
    """
    raw_value = os.getenv(name, "").strip()
    if not raw_value:
        return default
    try:
        return parse_duration_seconds(raw_value)
    except ValueError as error:
        raise CensusConfigError(
            f"Invalid {name} value: {error}. Use forms like 500ms, 2s or 1m."
        ) from error


def _read_flag(name: str, default: bool) -> bool:
    """Read a boolean environment flag.

    Raises:
        CensusConfigError: If value is not a recognised boolean.
    """
    raw_value = os.getenv(name, "").strip().lower()
    if not raw_value:
        return default
    if raw_value in _TRUE_VALUES:
        return True
    if raw_value in _FALSE_VALUES:
        return False
    raise CensusConfigError(
        f"Invalid {name} value: expected one of {_TRUE_VALUES + _FALSE_VALUES}, "
        f"got '{raw_value}'."
    )


def _load_dotenv_file() -> None:
    """Load ``.env`` from the working directory or its parents, if any."""
    dotenv_path = find_dotenv(usecwd=True)
    if not dotenv_path:
        _LOGGER.debug("dotenv_not_found")
        return
    load_dotenv(dotenv_path, override=False)
    _LOGGER.debug("dotenv_loaded", path=dotenv_path)
