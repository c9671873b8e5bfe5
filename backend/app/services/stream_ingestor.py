"""Live bar ingestion from the multiplexed kline stream.

Pipeline:
1. The WebSocket listener decodes each frame into a KlineEvent
2. publish() routes the event onto its symbol's queue
3. One consumer task per symbol drains the queue in arrival order and is
   the only writer of that symbol's series in the BarStore
4. A closed primary-timeframe bar triggers re-evaluation of that symbol;
   forming bars and reference-timeframe bars only update the store
"""

import asyncio
import logging

from app.clients.binance_ws_kline import BinanceKlineStream, Connector, KlineEvent
from app.clients.reconnect import ReconnectPolicy
from app.services.scanner import SignalScanner
from core.bar_store import BarStore, UpsertResult

logger = logging.getLogger(__name__)


class StreamIngestor:
    """Merges streamed bars into the BarStore and triggers evaluation."""

    def __init__(
        self,
        store: BarStore,
        scanner: SignalScanner,
        ws_url: str,
        symbols: list[str],
        primary_timeframe: str = "1h",
        reference_timeframe: str = "4h",
        stream_reference: bool = True,
        policy: ReconnectPolicy | None = None,
        connector: Connector | None = None,
    ):
        self.store = store
        self.scanner = scanner
        self.symbols = list(symbols)
        self.primary_timeframe = primary_timeframe
        self.reference_timeframe = reference_timeframe
        self.stream_reference = stream_reference

        stream_kwargs = {"connector": connector} if connector is not None else {}
        self.stream = BinanceKlineStream(
            ws_url,
            on_event=self.publish,
            policy=policy,
            **stream_kwargs,
        )
        for symbol in self.symbols:
            self.stream.add_stream(symbol, primary_timeframe)
            if stream_reference:
                self.stream.add_stream(symbol, reference_timeframe)

        self._queues: dict[str, asyncio.Queue[KlineEvent]] = {
            symbol: asyncio.Queue() for symbol in self.symbols
        }
        self._consumers: dict[str, asyncio.Task] = {}
        self._running = False

        # Counters for status reporting
        self.events_applied = 0
        self.events_rejected = 0

    @property
    def is_running(self) -> bool:
        return self._running

    def publish(self, event: KlineEvent) -> None:
        """Route a decoded event onto its symbol's queue (event loop thread)."""
        queue = self._queues.get(event.symbol)
        if queue is None:
            logger.debug("Dropped event for unwatched symbol %s", event.symbol)
            return
        queue.put_nowait(event)

    async def start(self) -> None:
        """Start per-symbol consumers, then the stream connection."""
        if self._running:
            return
        self._running = True
        for symbol, queue in self._queues.items():
            self._consumers[symbol] = asyncio.create_task(
                self._consume(symbol, queue), name=f"ingest-{symbol}"
            )
        await self.stream.start()
        logger.info(
            "Stream ingestion started for %d symbols (%d streams)",
            len(self.symbols),
            len(self.stream.streams),
        )

    async def stop(self) -> None:
        """Close the stream and cancel all consumers."""
        self._running = False
        await self.stream.stop()

        for task in self._consumers.values():
            task.cancel()
        if self._consumers:
            await asyncio.gather(*self._consumers.values(), return_exceptions=True)
        self._consumers.clear()
        logger.info("Stream ingestion stopped")

    async def drain(self) -> None:
        """Wait until every queued event has been applied."""
        await asyncio.gather(*(queue.join() for queue in self._queues.values()))

    async def _consume(self, symbol: str, queue: asyncio.Queue[KlineEvent]) -> None:
        while True:
            event = await queue.get()
            try:
                await self.apply(event)
            except Exception as e:
                logger.error(f"Failed to apply bar for {symbol}: {e}")
            finally:
                queue.task_done()

    async def apply(self, event: KlineEvent) -> UpsertResult | None:
        """Merge one event into the store; evaluate on a closed primary bar."""
        timeframe = event.timeframe or self.primary_timeframe
        if timeframe not in (self.primary_timeframe, self.reference_timeframe):
            logger.debug("Dropped %s bar for untracked timeframe %s", event.symbol, timeframe)
            return None

        result = self.store.upsert(event.symbol, timeframe, event.bar, event.is_final)
        if result == UpsertResult.REJECTED:
            self.events_rejected += 1
            return result

        self.events_applied += 1
        if event.is_final and timeframe == self.primary_timeframe:
            await self.scanner.refresh_symbol(event.symbol)
        return result
