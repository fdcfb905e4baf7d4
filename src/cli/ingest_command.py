"""Ingest command wiring for the census CLI."""

from __future__ import annotations

import argparse
import signal
import sys
from typing import Any, Callable

from core.errors import CensusError, IngestCancelledError
from core.logging_config import get_logger
from core.types import IngestOptions, IngestSummary, InputFormat
from ingest.ingest_sdk import CensusClient
from ingest.pipeline import IngestPipelineRunner

_LOGGER = get_logger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_INTERRUPTED = 130

_HANDLED_SIGNALS = (signal.SIGINT, signal.SIGTERM)


def add_ingest_command(subparsers: Any) -> None:
    """Register ingest subcommand."""
    parser = subparsers.add_parser(
        "ingest",
        help="Bulk load a JSON array or concatenated JSON objects",
    )
    parser.add_argument("source", help="Source file, '-' for stdin, or s3://bucket/key")
    _add_run_arguments(parser)


def add_ingest_csv_command(subparsers: Any) -> None:
    """Register ingest-csv subcommand."""
    parser = subparsers.add_parser("ingest-csv", help="Bulk load a delimited file with a header row")
    parser.add_argument("--file", required=True, dest="source", help="CSV file path or s3:// URI")
    _add_run_arguments(parser)


def run_ingest_command(
    client: CensusClient,
    args: argparse.Namespace,
    input_format: InputFormat,
) -> int:
    """Run one ingest and print its summary.

    Returns:
        ``0`` on success, ``1`` on failure, ``130`` when interrupted.
    """
    options = IngestOptions(
        source_uri=args.source,
        input_format=input_format,
        resume_offset=args.resume,
        batch_size=args.batch,
        worker_multiplier=args.workers_multiplier,
        region=args.region,
    )
    runner = client.runner(options)
    restore_signals = _install_signal_handlers(runner)
    try:
        runner.run()
        exit_code = EXIT_OK
    except IngestCancelledError as error:
        print(f"ingest_cancelled={error}", file=sys.stderr)
        exit_code = EXIT_INTERRUPTED
    except CensusError as error:
        print(f"ingest_error={error}", file=sys.stderr)
        exit_code = EXIT_FAILED
    finally:
        restore_signals()
    if runner.summary is not None:
        print(render_summary(runner.summary))
    return exit_code


def render_summary(summary: IngestSummary) -> str:
    """Render final counters as ``key=value`` lines."""
    return "\n".join(
        (
            f"processed={summary.processed}",
            f"skipped_malformed={summary.skipped_malformed}",
            f"resume_offset={summary.resume_offset}",
            f"elapsed_seconds={summary.elapsed_seconds:.2f}",
            f"docs_per_sec={summary.throughput:.2f}",
            f"state={summary.state}",
            f"region={summary.region}",
        )
    )


def _add_run_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--resume",
        type=_non_negative_int,
        default=0,
        help="Skip this many already-ingested records",
    )
    parser.add_argument("--batch", type=_positive_int, help="Documents per bulk request")
    parser.add_argument(
        "--workers-multiplier",
        type=_positive_int,
        help="Worker threads per available CPU",
    )
    parser.add_argument("--region", help="Region tag for records that carry none")


def _install_signal_handlers(runner: IngestPipelineRunner) -> Callable[[], None]:
    """Route SIGINT and SIGTERM to runner cancellation until restored."""
    previous: dict[int, Any] = {}

    def handle_signal(signum: int, _frame: Any) -> None:
        _LOGGER.warning("ingest_signal_received", signal=signal.Signals(signum).name)
        runner.cancel()

    for signum in _HANDLED_SIGNALS:
        try:
            previous[signum] = signal.signal(signum, handle_signal)
        except ValueError:
            # Handlers can only be installed from the main thread.
            _LOGGER.debug("ingest_signal_handler_skipped", signal=signal.Signals(signum).name)

    def restore() -> None:
        for signum, handler in previous.items():
            signal.signal(signum, handler)

    return restore


def _non_negative_int(raw_value: str) -> int:
    value = int(raw_value)
    if value < 0:
        raise argparse.ArgumentTypeError("must be zero or greater")
    return value


def _positive_int(raw_value: str) -> int:
    value = int(raw_value)
    if value < 1:
        raise argparse.ArgumentTypeError("must be at least 1")
    return value
