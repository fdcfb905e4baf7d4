"""Unit tests for core config parsing."""

from __future__ import annotations

import os

import pytest

from core.config import CensusConfig, parse_duration_seconds
from core.errors import CensusConfigError

_CONFIG_VARIABLES = (
    "OPENSEARCH_ENDPOINT",
    "OPENSEARCH_INDEX",
    "OPENSEARCH_VERIFY_CERTS",
    "OPENSEARCH_BULK_MAX_ATTEMPTS",
    "OPENSEARCH_BULK_RETRY_BASE",
    "INGEST_BATCH_SIZE",
    "INGEST_WORKER_MULTIPLIER",
    "INGEST_QUEUE_CAPACITY",
    "INGEST_DEFAULT_REGION",
    "INGEST_AUGMENT_YEAR",
)


@pytest.fixture(autouse=True)
def _clean_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    # Registering a value first makes teardown remove anything .env loading sets.
    for name in _CONFIG_VARIABLES:
        monkeypatch.setenv(name, "unset")
        monkeypatch.delenv(name)


def test_from_env_uses_defaults() -> None:
    """Config should fall back to documented defaults."""
    config = CensusConfig.from_env(load_dotenv_file=False)

    assert config.opensearch_endpoint == "http://localhost:9200"
    assert config.opensearch_index == "people-dev-0001"
    assert config.ingest_batch_size == 7500
    assert config.ingest_worker_multiplier == 2
    assert config.bulk_max_attempts == 5
    assert config.bulk_retry_base_seconds == 2.0
    assert config.default_region == "delhi-ncr"
    assert config.augment_registration_year is True


def test_from_env_clamps_batch_size_and_multiplier(monkeypatch: pytest.MonkeyPatch) -> None:
    """Out-of-range batch sizes and multipliers should be clamped."""
    monkeypatch.setenv("INGEST_BATCH_SIZE", "10")
    monkeypatch.setenv("INGEST_WORKER_MULTIPLIER", "64")

    config = CensusConfig.from_env(load_dotenv_file=False)

    assert (config.ingest_batch_size, config.ingest_worker_multiplier) == (1000, 16)


def test_from_env_raises_for_invalid_batch_size(monkeypatch: pytest.MonkeyPatch) -> None:
    """Config should fail for non-numeric batch size."""
    monkeypatch.setenv("INGEST_BATCH_SIZE", "lots")

    with pytest.raises(CensusConfigError):
        CensusConfig.from_env(load_dotenv_file=False)

    assert os.getenv("INGEST_BATCH_SIZE") == "lots"


def test_from_env_reads_retry_base_duration(monkeypatch: pytest.MonkeyPatch) -> None:
    """Retry base should accept duration strings."""
    monkeypatch.setenv("OPENSEARCH_BULK_RETRY_BASE", "500ms")

    config = CensusConfig.from_env(load_dotenv_file=False)

    assert config.bulk_retry_base_seconds == pytest.approx(0.5)


def test_from_env_raises_for_invalid_flag(monkeypatch: pytest.MonkeyPatch) -> None:
    """Boolean flags should reject unrecognised values."""
    monkeypatch.setenv("INGEST_AUGMENT_YEAR", "maybe")

    with pytest.raises(CensusConfigError):
        CensusConfig.from_env(load_dotenv_file=False)


def test_from_env_disables_year_augmentation(monkeypatch: pytest.MonkeyPatch) -> None:
    """A false flag value should disable registration year augmentation."""
    monkeypatch.setenv("INGEST_AUGMENT_YEAR", "0")

    config = CensusConfig.from_env(load_dotenv_file=False)

    assert config.augment_registration_year is False


def test_from_env_loads_dotenv_without_overriding(
    tmp_path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """A .env file should fill unset variables only."""
    (tmp_path / ".env").write_text(
        "OPENSEARCH_INDEX=people-from-dotenv\nINGEST_DEFAULT_REGION=mumbai\n",
        encoding="utf-8",
    )
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("INGEST_DEFAULT_REGION", "pune")

    config = CensusConfig.from_env()

    assert (config.opensearch_index, config.default_region) == ("people-from-dotenv", "pune")


@pytest.mark.parametrize(
    ("raw_value", "expected"),
    [("2s", 2.0), ("250ms", 0.25), ("1m", 60.0), ("3", 3.0), ("1.5s", 1.5)],
)
def test_parse_duration_seconds_reads_units(raw_value: str, expected: float) -> None:
    """Duration strings should convert to seconds for every unit."""
    assert parse_duration_seconds(raw_value) == pytest.approx(expected)


def test_parse_duration_seconds_rejects_garbage() -> None:
    """Unparseable durations should raise ValueError."""
    with pytest.raises(ValueError):
        parse_duration_seconds("soon")
