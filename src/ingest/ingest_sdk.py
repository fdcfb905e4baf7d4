"""Python SDK for ingest operations.

This module exposes a high-level client that binds runtime configuration
to ingest runs and index lifecycle calls.
"""

from __future__ import annotations

import threading

from core.config import CensusConfig
from core.types import IngestOptions, IngestSummary
from ingest.pipeline import IngestPipelineRunner
from search_index.opensearch_client import create_opensearch_client
from search_index.people_index import PeopleIndex


class CensusClient:
    """Primary SDK entry point for bulk index loads."""

    def __init__(self, config: CensusConfig | None = None) -> None:
        """Create SDK client.

        Args:
            config: Optional runtime configuration.
        """
        self._config = config or CensusConfig.from_env()

    @property
    def config(self) -> CensusConfig:
        return self._config

    def ingest(
        self,
        options: IngestOptions,
        cancel_event: threading.Event | None = None,
    ) -> IngestSummary:
        """Stream one source into the configured index.

        Args:
            options: Source and per-run overrides.
            cancel_event: Optional shared cancellation signal.

        Returns:
            Final counters of the completed run.

        Raises:
            CensusIngestError: If the source cannot be read or decoded.
            CensusIndexError: If the index cannot be prepared.
            BulkWriteError: If a batch exhausts its retries.
            IngestCancelledError: If the run was cancelled.
        """
        return self.runner(options, cancel_event).run()

    def runner(
        self,
        options: IngestOptions,
        cancel_event: threading.Event | None = None,
    ) -> IngestPipelineRunner:
        """Build a runner the caller can cancel while it runs."""
        return IngestPipelineRunner(options, self._config, cancel_event=cancel_event)

    def index(self) -> PeopleIndex:
        """Return a lifecycle handle for the configured index."""
        client = create_opensearch_client(self._config)
        return PeopleIndex(client, self._config.opensearch_index)
