"""Main application entry point."""

import asyncio
import logging
import signal

from app.clients import BinanceRestClient, ReconnectPolicy
from app.clients.binance_ws_kline import Connector
from app.config import Settings, get_settings
from app.services import (
    Scheduler,
    SignalBoard,
    SignalScanner,
    StreamIngestor,
    seed_history,
)
from app.watchlist import WatchlistConfig, load_watchlist
from core.bar_store import BarStore
from core.evaluator import SignalEvaluator

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s - %(levelname)s - %(message)s",
    )
    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("picows").setLevel(logging.WARNING)


class ScannerApp:
    """Wires the bar store, ingestion, evaluation and scheduling together.

    Startup:
    1. Seed both timeframes for every symbol over REST
    2. Run a full evaluation pass
    3. Start the live stream (per-symbol consumers + reconnecting socket)
    4. Start the safety-net scheduler

    Shutdown closes the socket, cancels pending reconnects and consumers,
    cancels the scheduler, then closes the HTTP client.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        watchlist: WatchlistConfig | None = None,
        rest_client: BinanceRestClient | None = None,
        connector: Connector | None = None,
    ):
        self.settings = settings or get_settings()
        if watchlist is None:
            watchlist = load_watchlist(self.settings.watchlist_file or None)
        self.symbols = watchlist.resolve_symbols(self.settings.symbols)

        self.store = BarStore(max_length=self.settings.history_limit)
        self.board = SignalBoard(self.symbols)
        self.scanner = SignalScanner(
            store=self.store,
            board=self.board,
            symbols=self.symbols,
            primary_timeframe=self.settings.primary_timeframe,
            reference_timeframe=self.settings.reference_timeframe,
            evaluator=SignalEvaluator(watchlist.evaluator),
        )
        self.rest_client = rest_client or BinanceRestClient(self.settings.rest_base_url)
        self.ingestor = StreamIngestor(
            store=self.store,
            scanner=self.scanner,
            ws_url=self.settings.ws_base_url,
            symbols=self.symbols,
            primary_timeframe=self.settings.primary_timeframe,
            reference_timeframe=self.settings.reference_timeframe,
            stream_reference=self.settings.stream_reference_timeframe,
            policy=ReconnectPolicy(
                base_delay=self.settings.reconnect_base_delay,
                max_delay=self.settings.reconnect_max_delay,
            ),
            connector=connector,
        )
        self.scheduler = Scheduler(
            self.scanner.refresh_all,
            interval=self.settings.scan_interval_seconds,
            name="safety-net scan",
        )

    async def start(self) -> None:
        logger.info(
            "Starting momentum scanner: %d symbols, %s primary / %s reference",
            len(self.symbols),
            self.settings.primary_timeframe,
            self.settings.reference_timeframe,
        )
        await seed_history(
            self.rest_client,
            self.store,
            self.symbols,
            [self.settings.primary_timeframe, self.settings.reference_timeframe],
            limit=self.settings.history_limit,
            max_concurrent=self.settings.bootstrap_concurrency,
        )
        await self.scanner.refresh_all()
        await self.ingestor.start()
        await self.scheduler.start()

    async def stop(self) -> None:
        logger.info("Shutting down...")
        await self.ingestor.stop()
        await self.scheduler.stop()
        await self.rest_client.close()
        logger.info("Shutdown complete")


async def run(app: ScannerApp | None = None) -> None:
    """Run until SIGINT/SIGTERM."""
    app = app or ScannerApp()
    stop_event = asyncio.Event()

    loop = asyncio.get_running_loop()
    installed = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
            installed.append(sig)
        except NotImplementedError:
            # Windows event loops have no signal handler support
            pass

    try:
        await app.start()
        await stop_event.wait()
    finally:
        await app.stop()
        for sig in installed:
            loop.remove_signal_handler(sig)


def main() -> None:
    configure_logging(get_settings().log_level)
    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
