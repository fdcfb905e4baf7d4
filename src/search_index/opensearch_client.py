"""OpenSearch client construction."""

from __future__ import annotations

from opensearchpy import OpenSearch

from core.config import CensusConfig


def create_opensearch_client(config: CensusConfig) -> OpenSearch:
    """Create an OpenSearch client from runtime configuration.

    Transport-level retries are disabled; batch retries are owned by
    the bulk submitter so attempt counts and backoff stay predictable.
    """
    http_auth = None
    if config.opensearch_user and config.opensearch_password:
        http_auth = (config.opensearch_user, config.opensearch_password)
    return OpenSearch(
        hosts=[config.opensearch_endpoint],
        http_auth=http_auth,
        verify_certs=config.opensearch_verify_certs,
        ssl_show_warn=False,
        timeout=config.opensearch_timeout_seconds,
        max_retries=0,
        retry_on_timeout=False,
        http_compress=True,
    )
