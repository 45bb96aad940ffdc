"""
Command line entry point.

    ledger-aggregator serve [--rpc-url URL] [--local-address HOST:PORT]
    ledger-aggregator run   [--rpc-url URL]
    ledger-aggregator poll  [--rpc-url URL]
"""

import argparse
import asyncio
import ipaddress
import os
import signal
import sys
from typing import List, Optional, Tuple

import structlog
from pydantic import ValidationError

from ledger_aggregator.core.config import get_settings
from ledger_aggregator.core.logging import configure_logging
from ledger_aggregator.transactions.poller import TransactionPoller

logger = structlog.get_logger()


def parse_bind_address(value: str) -> Tuple[str, int]:
    """
    Split a HOST:PORT bind address.

    IPv6 hosts are written in brackets, e.g. [::1]:8000.

    Raises:
        ValueError: If the host is not an IP address or the port is invalid
    """
    host, sep, port_text = value.rpartition(":")
    if not sep or not host:
        raise ValueError(f"Expected HOST:PORT, got {value!r}")

    host = host[1:-1] if host.startswith("[") and host.endswith("]") else host
    ipaddress.ip_address(host)

    port = int(port_text)
    if not 0 <= port <= 65535:
        raise ValueError(f"Port out of range: {port}")
    return host, port


def print_result(result: dict):
    """Pretty print a single cycle result."""
    print("\n=== Ingestion Cycle ===\n")
    print(f"Run ID: {result['run_id']}")
    print(f"Status: {result['status']}")
    print(f"Cursor: {result.get('cursor') or 'None'}")
    if result.get("error"):
        print(f"Error: {result['error']}")
    else:
        print(f"Listed: {result['signatures_listed']}")
        print(f"Stored: {result['records_stored']}")
        print(f"Skipped: {result['records_skipped']}")
        print(f"Duration: {result['duration_seconds']:.2f}s")
    print()


async def poll_command() -> int:
    """Run a single ingestion cycle and print its outcome."""
    poller = TransactionPoller()
    try:
        result = await poller.poll_once()
    finally:
        await poller.client.close()
    print_result(result)
    return 0 if result["status"] != "failed" else 1


async def run_command() -> int:
    """Run the ingestion loop until SIGINT or SIGTERM."""
    poller = TransactionPoller()
    stop = asyncio.Event()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:
            pass

    await poller.start()
    try:
        await stop.wait()
    finally:
        await poller.stop()
        await poller.client.close()
    return 0


def serve_command(local_address: str) -> int:
    """Serve the query API; the app lifespan runs the ingestion loop."""
    import uvicorn

    host, port = parse_bind_address(local_address)
    logger.info("cli.serving", host=host, port=port)
    uvicorn.run("ledger_aggregator.main:app", host=host, port=port)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ledger-aggregator",
        description="Ingest ledger transactions and serve them over HTTP.",
    )
    parser.add_argument("--rpc-url", help="Ledger JSON-RPC URL (overrides RPC_URL)")
    parser.add_argument(
        "--local-address", help="HOST:PORT for the query API (overrides LOCAL_ADDRESS)"
    )
    parser.add_argument(
        "command",
        choices=["serve", "run", "poll"],
        help="serve: API and ingestion, run: ingestion only, poll: one cycle",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)

    if args.rpc_url:
        os.environ["RPC_URL"] = args.rpc_url
    if args.local_address:
        os.environ["LOCAL_ADDRESS"] = args.local_address
    get_settings.cache_clear()

    try:
        settings = get_settings()
        parse_bind_address(settings.LOCAL_ADDRESS)
    except (ValidationError, ValueError) as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 2

    configure_logging(settings.ENV, settings.DEBUG)
    logger.info("cli.starting", command=args.command, rpc_url=str(settings.RPC_URL))

    try:
        if args.command == "serve":
            return serve_command(settings.LOCAL_ADDRESS)
        if args.command == "run":
            return asyncio.run(run_command())
        return asyncio.run(poll_command())
    except KeyboardInterrupt:
        print("\nInterrupted.")
        return 130


if __name__ == "__main__":
    sys.exit(main())
