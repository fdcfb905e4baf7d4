"""Search-index sink.

This package owns the OpenSearch client, index lifecycle tuning,
and retrying bulk writes.
"""
