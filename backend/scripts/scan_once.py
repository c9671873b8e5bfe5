#!/usr/bin/env python3
"""
One-shot momentum scan
======================

Seeds history over REST, runs a single evaluation pass and prints the
actionable signals as JSON. No WebSocket connection is opened.

Usage:
    # Scan the configured watch-list
    python scripts/scan_once.py

    # Scan specific symbols, shorts only
    python scripts/scan_once.py --symbols BTCUSDT,ETHUSDT --direction short

    # Include every evaluated symbol, not just actionable ones
    python scripts/scan_once.py --all
"""

import argparse
import asyncio
import logging
import os
import sys

import orjson

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.clients import BinanceRestClient
from app.config import get_settings
from app.services import SignalBoard, SignalScanner, seed_history
from app.watchlist import load_watchlist
from core.bar_store import BarStore
from core.evaluator import SignalEvaluator
from core.models import Direction

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s",
)
logging.getLogger("httpx").setLevel(logging.WARNING)
logger = logging.getLogger(__name__)


def parse_symbols(value: str) -> list[str]:
    symbols = [s.strip().upper() for s in value.split(",") if s.strip()]
    if not symbols:
        raise argparse.ArgumentTypeError("at least one symbol is required")
    return symbols


async def main() -> int:
    parser = argparse.ArgumentParser(
        description="Run one momentum scan and print the signal board",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--symbols", type=parse_symbols, help="Comma-separated symbols")
    parser.add_argument("--watchlist", help="Path to a watchlist.yaml file")
    parser.add_argument(
        "--direction",
        choices=[d.value for d in Direction],
        help="Only print one direction",
    )
    parser.add_argument(
        "--all",
        action="store_true",
        help="Print every evaluation result, including NoSignal",
    )
    args = parser.parse_args()

    settings = get_settings()
    watchlist = load_watchlist(args.watchlist or settings.watchlist_file or None)
    symbols = args.symbols or watchlist.resolve_symbols(settings.symbols)

    store = BarStore(max_length=settings.history_limit)
    board = SignalBoard(symbols)
    scanner = SignalScanner(
        store=store,
        board=board,
        symbols=symbols,
        primary_timeframe=settings.primary_timeframe,
        reference_timeframe=settings.reference_timeframe,
        evaluator=SignalEvaluator(watchlist.evaluator),
    )

    rest_client = BinanceRestClient(settings.rest_base_url)
    try:
        await seed_history(
            rest_client,
            store,
            symbols,
            [settings.primary_timeframe, settings.reference_timeframe],
            limit=settings.history_limit,
            max_concurrent=settings.bootstrap_concurrency,
        )
    finally:
        await rest_client.close()

    snapshot = await scanner.refresh_all()
    direction = Direction(args.direction) if args.direction else None

    if args.all:
        results = [
            signal.model_dump(mode="json")
            for signal in snapshot.signals.values()
            if direction is None or signal.direction == direction
        ]
        sys.stdout.write(orjson.dumps(results, option=orjson.OPT_INDENT_2).decode() + "\n")
    else:
        sys.stdout.write(snapshot.to_json(direction).decode() + "\n")
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
