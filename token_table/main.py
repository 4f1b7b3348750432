#!/usr/bin/env python3
"""
Token Table - live-updating table of new, final-stretch and migrated tokens.

Usage:
    python -m token_table.main --interval 3 --count 20

    Or with real rows:
    python -m token_table.main --tokens-file tokens.json
    python -m token_table.main --source-url https://example.com/tokens.json

Controls:
    1/2/3 - Switch tab        t - Next tab
    s     - Next sort column  d - Flip sort direction
    /     - Filter            esc - Leave filter box
    up/down - Select row      b - Quick buy selected token
    q     - Quit
"""

from __future__ import annotations

import argparse
import asyncio
import random
import sys

from loguru import logger

from .datafeed.sources import JsonTokenSource, RandomTokenSource, TokenSource
from .engine.live_table import LiveTokenTable, TableConfig, TabController
from .engine.scheduler import AsyncioScheduler
from .types import Category


def setup_logging(log_file: str | None, level: str = "INFO") -> None:
    """
    Route loguru output to a file.

    The default stderr sink is removed because it would draw over the TUI.
    """
    logger.remove()
    if log_file:
        logger.add(log_file, level=level.upper(), rotation="10 MB", enqueue=False)


async def build_source(args: argparse.Namespace) -> TokenSource:
    """Pick the initial data source from CLI flags."""
    if args.source_url:
        return await JsonTokenSource.fetch(args.source_url)
    if args.tokens_file:
        return JsonTokenSource.from_file(args.tokens_file)
    rng = random.Random(args.seed) if args.seed is not None else None
    return RandomTokenSource(count=args.count, rng=rng)


def build_config(args: argparse.Namespace) -> TableConfig:
    return TableConfig(
        load_delay_sec=args.load_delay,
        mutation_interval_sec=args.interval,
        highlight_window_ms=args.highlight_ms,
    )


async def main(args: argparse.Namespace) -> None:
    """Main entry point - loads the source, then runs engine and UI on one loop."""

    # Import here to avoid slow startup for --help
    from .ui.table_view import run_ui

    print("Starting Token Table...")
    print(f"  Update interval: {args.interval}s")
    print(f"  Highlight window: {args.highlight_ms:.0f}ms")
    print()

    source = await build_source(args)
    rng = random.Random(args.seed) if args.seed is not None else None

    table = LiveTokenTable(
        source,
        AsyncioScheduler(),
        rng=rng,
        config=build_config(args),
        tabs=TabController(Category(args.category)),
    )

    try:
        # Run UI (blocks until quit); the app starts the engine on mount
        await run_ui(table)
    finally:
        table.stop()


def positive_float(value: str) -> float:
    number = float(value)
    if not number > 0:
        raise argparse.ArgumentTypeError(f"must be greater than 0, got {value}")
    return number


def non_negative_float(value: str) -> float:
    number = float(value)
    if not number >= 0:
        raise argparse.ArgumentTypeError(f"must be 0 or more, got {value}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Token Table - live token discovery table",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python -m token_table.main
    python -m token_table.main --category migrated --interval 1
    python -m token_table.main --tokens-file tokens.json --log-file table.log
        """
    )

    parser.add_argument(
        "--category",
        choices=[c.value for c in Category],
        default=Category.NEW_PAIRS.value,
        help="Tab shown at startup (default: new-pairs)"
    )

    parser.add_argument(
        "--interval",
        type=positive_float,
        default=3.0,
        help="Seconds between feed updates (default: 3)"
    )

    parser.add_argument(
        "--load-delay",
        type=non_negative_float,
        default=0.8,
        help="Simulated initial load latency in seconds (default: 0.8)"
    )

    parser.add_argument(
        "--highlight-ms",
        type=positive_float,
        default=500.0,
        help="How long a changed cell stays highlighted (default: 500)"
    )

    parser.add_argument(
        "--count",
        type=int,
        default=20,
        help="Random tokens per category (default: 20)"
    )

    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Seed for the random generator and feed"
    )

    source = parser.add_mutually_exclusive_group()
    source.add_argument(
        "--tokens-file",
        help="JSON file with tokens keyed by category"
    )
    source.add_argument(
        "--source-url",
        help="HTTP endpoint returning tokens keyed by category"
    )

    parser.add_argument(
        "--log-file",
        default=None,
        help="Write logs to this file (default: no logging)"
    )

    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Log level for --log-file (default: INFO)"
    )

    return parser


def cli() -> None:
    """CLI entry point."""
    args = build_parser().parse_args()
    setup_logging(args.log_file, args.log_level)

    try:
        asyncio.run(main(args))
    except KeyboardInterrupt:
        print("\nShutdown requested.")
        sys.exit(0)


if __name__ == "__main__":
    cli()
