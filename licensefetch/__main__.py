"""licensefetch CLI — license checks and x402-aware fetches from the shell.

Usage:
    python -m licensefetch check URL [URL ...]     Check licenses, print summary
    python -m licensefetch fetch URL [URL ...]     Check, fetch (paying if needed),
                                                   log usage, print report
"""

from __future__ import annotations

import argparse
import asyncio
import signal
import sys
from typing import Awaitable, Callable

import structlog

from licensefetch.config.settings import LedgerSettings, get_settings
from licensefetch.factory import build_pipeline
from licensefetch.schemas.enums import Distribution, LicenseStage, PaymentMethod
from licensefetch.services.pipeline import AcquisitionPipeline
from licensefetch.services.rendering import (
    format_license_info,
    format_results,
    format_session_summary,
)
from licensefetch.utils.logging import configure_logging

logger = structlog.get_logger()


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="licensefetch",
        description="License-aware content fetching against a licensing ledger",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Logging level (default: LICENSEFETCH_LOG_LEVEL or INFO)",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Render logs as JSON instead of console output",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # check
    check = subparsers.add_parser("check", help="Batch-check licenses for URLs")
    check.add_argument("urls", nargs="+", metavar="URL")

    # fetch
    fetch = subparsers.add_parser(
        "fetch", help="Check licenses, fetch URLs with x402 support, and log usage"
    )
    fetch.add_argument("urls", nargs="+", metavar="URL")
    fetch.add_argument(
        "--stage",
        choices=[s.value for s in LicenseStage],
        default=None,
        help="Usage stage (default: DEFAULT_STAGE or infer)",
    )
    fetch.add_argument(
        "--distribution",
        choices=[d.value for d in Distribution],
        default=None,
        help="Distribution (default: DEFAULT_DISTRIBUTION or private)",
    )
    fetch.add_argument(
        "--estimated-tokens",
        type=int,
        default=None,
        help="Token estimate used when a 402 paywall is encountered",
    )
    fetch.add_argument(
        "--max-chars",
        type=int,
        default=None,
        help="Max characters kept per fetched document",
    )
    fetch.add_argument(
        "--payment-method",
        choices=[m.value for m in PaymentMethod],
        default=None,
        help="Ledger settlement method (default: account_balance)",
    )

    return parser.parse_args(argv)


async def _cmd_check(pipeline: AcquisitionPipeline, args: argparse.Namespace) -> int:
    """Print one license line per URL and the session summary."""
    service = pipeline.license_service
    licenses = await service.check_license_batch(args.urls)

    for license in licenses.values():
        print(license.url)
        print(f"  {format_license_info(license)}")
        if license.error:
            print(f"  License Error: {license.error}")
    print(format_session_summary(service.get_session_summary()))

    return 1 if all(license.error for license in licenses.values()) else 0


async def _cmd_fetch(pipeline: AcquisitionPipeline, args: argparse.Namespace) -> int:
    """Run the full pipeline with direct fetch and print the report."""
    results = await pipeline.process(
        args.urls,
        fetch=True,
        stage=LicenseStage(args.stage) if args.stage else None,
        distribution=Distribution(args.distribution) if args.distribution else None,
        estimated_tokens=args.estimated_tokens,
        max_chars=args.max_chars,
        payment_method=PaymentMethod(args.payment_method) if args.payment_method else None,
    )
    print(format_results(results, pipeline.license_service.get_session_summary()))

    failed = [r for r in results if r.fetched is None or r.fetched.status == 0]
    return 1 if len(failed) == len(results) else 0


async def _run(
    command: Callable[[AcquisitionPipeline, argparse.Namespace], Awaitable[int]],
    args: argparse.Namespace,
    settings: LedgerSettings,
) -> int:
    """Run a command, cancelling in-flight work on SIGTERM, always closing clients."""
    pipeline = build_pipeline(settings)
    task = asyncio.current_task()
    loop = asyncio.get_running_loop()
    if task is not None and sys.platform != "win32":
        loop.add_signal_handler(signal.SIGTERM, task.cancel)

    try:
        return await command(pipeline, args)
    finally:
        await pipeline.close()
        logger.debug("Shutdown complete")


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    settings = get_settings()
    level = args.log_level or settings.log_level
    configure_logging(json_output=args.json_logs, level=level)

    commands = {
        "check": _cmd_check,
        "fetch": _cmd_fetch,
    }
    command = commands.get(args.command)
    if command is None:
        print(f"Unknown command: {args.command}", file=sys.stderr)
        return 1

    try:
        return asyncio.run(_run(command, args, settings))
    except (KeyboardInterrupt, asyncio.CancelledError):
        return 130


if __name__ == "__main__":
    sys.exit(main())
