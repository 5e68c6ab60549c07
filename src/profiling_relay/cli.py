"""
Command line interface

``profiling-relay sync`` drains the configured buffer once and
``profiling-relay clear`` empties it. Configuration comes from the
``PROFILING_RELAY_*`` environment variables.

Run ``sync`` from a scheduler that prevents overlapping runs; two concurrent
drains of the same buffer can deliver a trace more than once.
"""

import argparse
import sys
from typing import Optional, Sequence

from . import __version__
from .config import RelayConfig
from .delivery import ChunkReport, DrainEngine, HTTPSender, Sender
from .errors import ConfigurationError, StorageError
from .logger import configure_logging
from .storage import create_buffer

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="profiling-relay",
        description="Deliver buffered profiling traces to the collector",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--log-format", choices=("json", "plain"), default="plain", help="Log output format"
    )
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=LOG_LEVELS,
        default="WARNING",
        help="Log level (default: WARNING)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sync_p = sub.add_parser("sync", help="Send all buffered traces to the collector")
    sync_p.add_argument(
        "--chunk-size",
        type=int,
        default=None,
        help="Traces per chunk (default: PROFILING_RELAY_CHUNK_SIZE or 100)",
    )
    sync_p.add_argument(
        "--no-transaction",
        action="store_true",
        help="Do not wrap the pass in a storage transaction",
    )

    sub.add_parser("clear", help="Delete all buffered traces")
    return parser


def _print_error(message: str) -> None:
    print(message, file=sys.stderr)


def cmd_sync(config: RelayConfig, args: argparse.Namespace, sender: Optional[Sender]) -> int:
    buffer = create_buffer(config)
    if buffer is None:
        _print_error("Sending mode is 'sync'; no buffering strategy configured.")
        return 1

    with buffer:
        print(f"Syncing traces from {buffer.kind} to the collector...")
        sender = sender or HTTPSender(config.sending)
        engine = DrainEngine(
            chunk_size=args.chunk_size or config.sending.chunk_size,
            use_transaction=not args.no_transaction,
        )

        def report_chunk(chunk: ChunkReport) -> None:
            print(f"Synced {chunk.count} traces, from trace {chunk.first_id} to {chunk.last_id}")

        report = engine.drain(buffer, sender, on_chunk=report_chunk)

    if report.unsent_at_start == 0:
        print("No unsent traces found, nothing to sync!")
        return 0

    if not report.ok:
        _print_error(f"Error during sync: {report.error}")
        if report.salvaged:
            _print_error(
                f"Salvaged {report.salvaged} traces synced before the failure "
                f"(trace {report.chunks[-1].first_id} to {report.chunks[-1].last_id})"
            )
        _print_error(f"Synced {report.synced} traces in total before halting.")
        return 1

    print(f"Sync complete: {report.synced} traces synced.")
    return 0


def cmd_clear(config: RelayConfig) -> int:
    buffer = create_buffer(config)
    if buffer is None:
        _print_error("No buffering strategy configured.")
        return 1

    with buffer:
        buffer.clear()
    print("All buffered traces have been cleared.")
    return 0


def main(
    argv: Optional[Sequence[str]] = None,
    config: Optional[RelayConfig] = None,
    sender: Optional[Sender] = None,
) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_format, args.log_level)

    try:
        config = config or RelayConfig.from_env()
        if args.command == "sync":
            if args.chunk_size is not None and args.chunk_size < 1:
                parser.error("--chunk-size must be at least 1")
            return cmd_sync(config, args, sender)
        if args.command == "clear":
            return cmd_clear(config)
    except ConfigurationError as exc:
        _print_error(f"Configuration error: {exc}")
        return 2
    except StorageError as exc:
        _print_error(f"Storage error: {exc}")
        return 1

    parser.error(f"Unknown command: {args.command}")
    return 2
