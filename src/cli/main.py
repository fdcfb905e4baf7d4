"""Census CLI entry points.
This module exposes commands for bulk loading person records into OpenSearch.
It maps argparse commands onto SDK calls.
"""

from __future__ import annotations

import argparse
import sys
from dataclasses import replace
from typing import Sequence

from cli.ingest_command import (
    EXIT_FAILED,
    add_ingest_command,
    add_ingest_csv_command,
    run_ingest_command,
)
from core.config import CensusConfig
from core.errors import CensusConfigError
from ingest.ingest_sdk import CensusClient


def build_parser() -> argparse.ArgumentParser:
    """Build the top-level CLI parser.

    Returns:
        Configured argument parser.
    """
    parser = argparse.ArgumentParser(prog="census", description="Census bulk ingest CLI")
    parser.add_argument("--index", help="Override OPENSEARCH_INDEX for this command")
    parser.add_argument("--endpoint", help="Override OPENSEARCH_ENDPOINT for this command")
    subparsers = parser.add_subparsers(dest="command", required=True)
    add_ingest_command(subparsers)
    add_ingest_csv_command(subparsers)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run the census CLI.

    Args:
        argv: Optional argument vector.

    Returns:
        Process exit code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        client = _build_client(args.index, args.endpoint)
    except CensusConfigError as error:
        print(f"config_error={error}", file=sys.stderr)
        return EXIT_FAILED
    if args.command == "ingest":
        return run_ingest_command(client, args, "json")
    if args.command == "ingest-csv":
        return run_ingest_command(client, args, "csv")
    parser.error(f"Unsupported command: {args.command}")
    return 2


def _build_client(index: str | None, endpoint: str | None) -> CensusClient:
    """Build SDK client with optional index and endpoint overrides.

    Args:
        index: Optional index name override.
        endpoint: Optional endpoint override.

    Returns:
        Configured SDK client.
    """
    config = CensusConfig.from_env()
    if index:
        config = replace(config, opensearch_index=index)
    if endpoint:
        config = replace(config, opensearch_endpoint=endpoint)
    return CensusClient(config)
