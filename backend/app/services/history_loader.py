"""Historical bar bootstrap over REST.

Seeds the BarStore for every watched symbol and both timeframes before the
live stream takes over. Failures are per (symbol, timeframe): they are logged
and skipped, and the symbol evaluates to NoSignal until the stream fills it.
"""

import asyncio
import logging

from app.clients.binance_rest import BinanceRestClient
from core.bar_store import BarStore

logger = logging.getLogger(__name__)


async def seed_history(
    rest_client: BinanceRestClient,
    store: BarStore,
    symbols: list[str],
    timeframes: list[str],
    limit: int = 500,
    max_concurrent: int = 8,
) -> dict[str, dict[str, int]]:
    """Fetch recent bars for every symbol/timeframe pair in parallel.

    Args:
        rest_client: REST client used for the kline requests
        store: Store to seed
        symbols: Watched trading pairs
        timeframes: Intervals to seed (primary and reference)
        limit: Bars per request
        max_concurrent: Max concurrent requests

    Returns:
        Nested dict: {symbol: {timeframe: bars_seeded}}, failed pairs omitted
    """
    results: dict[str, dict[str, int]] = {}
    semaphore = asyncio.Semaphore(max_concurrent)

    async def load_one(symbol: str, timeframe: str) -> tuple[str, str, int]:
        async with semaphore:
            bars = await rest_client.get_klines(symbol, timeframe, limit=limit)
        return symbol, timeframe, store.seed(symbol, timeframe, bars)

    pairs = [(symbol, timeframe) for symbol in symbols for timeframe in timeframes]
    task_results = await asyncio.gather(
        *(load_one(symbol, timeframe) for symbol, timeframe in pairs),
        return_exceptions=True,
    )

    for (symbol, timeframe), result in zip(pairs, task_results):
        if isinstance(result, Exception):
            logger.error(f"History load failed for {symbol} {timeframe}: {result}")
        else:
            _, _, count = result
            results.setdefault(symbol, {})[timeframe] = count

    loaded = sum(len(tfs) for tfs in results.values())
    logger.info("Seeded history for %d/%d symbol-timeframe pairs", loaded, len(pairs))
    return results
