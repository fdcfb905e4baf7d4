"""Core constants used across Census modules.

This module centralizes non-domain-specific constants.
Keeping values here avoids magic literals in business logic.
"""

from __future__ import annotations

DEFAULT_OPENSEARCH_ENDPOINT = "http://localhost:9200"
DEFAULT_OPENSEARCH_INDEX = "people-dev-0001"
DEFAULT_OPENSEARCH_TIMEOUT_SECONDS = 120
DEFAULT_BULK_MAX_ATTEMPTS = 5
DEFAULT_BULK_RETRY_BASE_SECONDS = 2.0
BULK_RETRY_JITTER_SECONDS = 1.0
BULK_FAILURE_SAMPLE_SIZE = 5
NON_FATAL_BULK_ERROR_TYPES = ("version_conflict_engine_exception",)

DEFAULT_INGEST_BATCH_SIZE = 7500
MIN_INGEST_BATCH_SIZE = 1000
MAX_INGEST_BATCH_SIZE = 50000
DEFAULT_WORKER_MULTIPLIER = 2
MIN_WORKER_MULTIPLIER = 1
MAX_WORKER_MULTIPLIER = 16
DEFAULT_QUEUE_CAPACITY = 10000
QUEUE_POLL_SECONDS = 0.5

DEFAULT_REGION = "delhi-ncr"
DEFAULT_S3_REGION = "us-east-1"
REGISTRATION_YEAR_CHOICES = (2022, 2023, 2024)

INDEX_TEMPLATE_NAME = "people_v1"
INDEX_TEMPLATE_FILE_NAME = "people_v1.json"
BULK_LOAD_INDEX_SETTINGS = {
    "number_of_shards": 6,
    "number_of_replicas": 0,
    "refresh_interval": "-1",
}
SERVING_INDEX_SETTINGS = {
    "number_of_replicas": 1,
    "refresh_interval": "1s",
}

READ_CHUNK_SIZE = 1024 * 1024
UTF8_BOM = b"\xef\xbb\xbf"
JSON_WHITESPACE = b" \t\r\n"
MAX_JSON_SPAN_BYTES = 16 * 1024 * 1024
OVERSIZED_SPAN_PREVIEW_BYTES = 64

CSV_REQUIRED_COLUMNS = ("mobile", "name", "fname", "address", "id")
CSV_REQUIRED_VALUES = ("mobile", "name", "id")

PROGRESS_LOG_EVERY = 10000
MONITOR_INTERVAL_SECONDS = 30.0
MALFORMED_LOG_FIRST = 100
MALFORMED_LOG_EVERY = 10000

IDENTITY_SEPARATOR = "|"
IDENTITY_HASH_ALGORITHM = "sha1"
