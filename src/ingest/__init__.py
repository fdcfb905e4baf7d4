"""Bulk ingestion pipeline.

This package streams raw person records from a source, decodes and
normalizes them, and hands batches to the search index writer.
"""
