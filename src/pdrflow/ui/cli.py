from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from pdrflow import __version__
from pdrflow.app import (
    build_services,
    consume_files,
    consume_manifests,
    discover_manifests,
    ingest_manifest_file,
)
from pdrflow.config import ConfigurationError, configure_logging, get_ingest_config
from pdrflow.config.ingest import DEFAULT_VISIBILITY_TIMEOUT

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

    from pdrflow.app import IngestServices

log = logging.getLogger(__name__)


def _positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"expected a positive integer, got {value}")
    return number


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Discover and ingest PDR manifests")
    parser.add_argument("--verbose", action="store_true", help="Log at DEBUG level")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    subparsers = parser.add_subparsers(dest="command", required=True)

    discover = subparsers.add_parser("discover", help="Discover and queue new manifests")
    target = discover.add_mutually_exclusive_group(required=True)
    target.add_argument("--provider", type=str, help="Provider whose endpoint is listed")
    target.add_argument(
        "--collection",
        type=str,
        help="Collection whose provider is listed; manifests are bound to it",
    )

    files = subparsers.add_parser("consume-files", help="Stage queued granule files")
    files.add_argument(
        "--concurrency",
        type=_positive_int,
        default=None,
        help="Messages received and processed per iteration (defaults to config)",
    )

    manifests = subparsers.add_parser("consume-manifests", help="Parse queued manifests")
    manifests.add_argument(
        "--num-messages",
        type=_positive_int,
        default=1,
        help="Manifests received per iteration (default: %(default)s)",
    )
    manifests.add_argument(
        "--concurrency",
        type=_positive_int,
        default=None,
        help="File groups dispatched concurrently (defaults to config)",
    )

    for consumer in (files, manifests):
        consumer.add_argument(
            "--visibility-timeout",
            type=int,
            default=None,
            help=f"Seconds a received message stays hidden (default: {DEFAULT_VISIBILITY_TIMEOUT})",
        )
        consumer.add_argument(
            "--max-iterations",
            type=int,
            default=-1,
            help="Empty polls tolerated before stopping; -1 runs forever (default: %(default)s)",
        )

    ingest = subparsers.add_parser("parse", help="Record and dispatch a local manifest file")
    ingest.add_argument("path", type=Path, help="Manifest file to dispatch")
    ingest.add_argument("--provider", type=str, required=True, help="Provider of the manifest")
    ingest.add_argument("--collection", type=str, help="Collection all granules belong to")
    ingest.add_argument("--concurrency", type=_positive_int, default=None)

    args = parser.parse_args(list(argv))
    if getattr(args, "max_iterations", -1) < -1:
        raise ValueError("--max-iterations must be -1 or greater")
    return args


async def _run(args: argparse.Namespace, services: IngestServices) -> None:
    config = services.config
    visibility_timeout = getattr(args, "visibility_timeout", None)
    if visibility_timeout is None:
        visibility_timeout = config.visibility_timeout
    if args.command == "discover":
        result = await discover_manifests(
            services, provider_name=args.provider, collection_name=args.collection
        )
        log.info(
            "Discovery finished: listed=%s, queued=%s, failed=%s",
            result.listed,
            len(result.queued),
            len(result.failed),
        )
    elif args.command == "consume-files":
        await consume_files(
            services,
            concurrency=args.concurrency or config.concurrency,
            visibility_timeout=visibility_timeout,
            max_iterations=args.max_iterations,
        )
    elif args.command == "consume-manifests":
        await consume_manifests(
            services,
            num_messages=args.num_messages,
            visibility_timeout=visibility_timeout,
            concurrency=args.concurrency,
            max_iterations=args.max_iterations,
        )
    elif args.command == "parse":
        result = await ingest_manifest_file(
            services,
            args.path,
            provider_name=args.provider,
            collection_name=args.collection,
            concurrency=args.concurrency,
        )
        if result.failed:
            raise RuntimeError(f"Manifest {result.manifest_name} failed: {result.error}")
        log.info(
            "Dispatched %s: granules=%s, skipped=%s, files=%s",
            result.manifest_name,
            result.granules_queued,
            result.granules_skipped,
            result.files_queued,
        )
    else:
        raise ValueError(f"Unsupported command: {args.command}")


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    try:
        parsed_args = _parse_args(argv if argv is not None else sys.argv[1:])
        configure_logging(level=logging.DEBUG if parsed_args.verbose else logging.INFO)
        services = build_services(get_ingest_config())
    except (ValueError, ConfigurationError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(2)

    try:
        asyncio.run(_run(parsed_args, services))
    except Exception as e:  # noqa: BLE001
        log.debug("Fatal error during ingest", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    print("\nClosed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
