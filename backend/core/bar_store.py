"""Bounded per-symbol, per-timeframe bar storage.

Each (symbol, timeframe) pair owns a BarSeries: bars strictly increasing by
open time, capped at ``max_length`` with the oldest bar evicted on overflow.
The most recent bar may still be forming and is replaced in place by live
updates until a final update seals it.

Writes for one symbol must come from a single writer (the ingestion consumer
for that symbol). Readers receive tuple snapshots.
"""

import logging
from collections import deque
from enum import Enum
from typing import Iterable

from core.models import Bar

logger = logging.getLogger(__name__)

DEFAULT_MAX_LENGTH = 500


class UpsertResult(str, Enum):
    """Outcome of a BarStore.upsert call."""

    APPENDED = "appended"
    REPLACED = "replaced"
    REJECTED = "rejected"


class BarSeries:
    """Ordered, bounded bar sequence for one (symbol, timeframe) pair."""

    __slots__ = ("symbol", "timeframe", "_bars", "_last_forming")

    def __init__(self, symbol: str, timeframe: str, max_length: int):
        self.symbol = symbol
        self.timeframe = timeframe
        self._bars: deque[Bar] = deque(maxlen=max_length)
        # True while the last bar's interval has not closed yet
        self._last_forming = False

    @property
    def last_forming(self) -> bool:
        return self._last_forming

    def upsert(self, bar: Bar, is_final: bool) -> UpsertResult:
        if self._bars:
            last = self._bars[-1]
            if bar.open_time < last.open_time:
                logger.warning(
                    "Rejected out-of-order bar for %s %s: %s is before last %s",
                    self.symbol, self.timeframe, bar.open_time, last.open_time,
                )
                return UpsertResult.REJECTED

            if bar.open_time == last.open_time:
                if not self._last_forming:
                    logger.warning(
                        "Rejected duplicate bar for %s %s at %s (already closed)",
                        self.symbol, self.timeframe, bar.open_time,
                    )
                    return UpsertResult.REJECTED
                self._bars[-1] = bar
                self._last_forming = not is_final
                return UpsertResult.REPLACED

        self._bars.append(bar)
        self._last_forming = not is_final
        return UpsertResult.APPENDED

    def reset(self, bars: Iterable[Bar], last_forming: bool) -> int:
        """Replace the whole series, dropping out-of-order and duplicate bars."""
        ordered: dict = {}
        for bar in bars:
            ordered[bar.open_time] = bar
        self._bars.clear()
        self._bars.extend(ordered[key] for key in sorted(ordered))
        self._last_forming = last_forming and bool(self._bars)
        return len(self._bars)

    def snapshot(self) -> tuple[Bar, ...]:
        return tuple(self._bars)

    def __len__(self) -> int:
        return len(self._bars)


class BarStore:
    """Owner of every BarSeries in the process.

    Usage:
        store = BarStore(max_length=500)
        store.seed("BTCUSDT", "1h", history)
        store.upsert("BTCUSDT", "1h", bar, is_final=False)
        bars = store.series("BTCUSDT", "1h")
    """

    def __init__(self, max_length: int = DEFAULT_MAX_LENGTH):
        if max_length < 1:
            raise ValueError(f"max_length must be positive, got {max_length}")
        self.max_length = max_length
        # {symbol: {timeframe: BarSeries}}
        self._series: dict[str, dict[str, BarSeries]] = {}

    def _get_or_create(self, symbol: str, timeframe: str) -> BarSeries:
        by_timeframe = self._series.setdefault(symbol, {})
        series = by_timeframe.get(timeframe)
        if series is None:
            series = BarSeries(symbol, timeframe, self.max_length)
            by_timeframe[timeframe] = series
        return series

    def upsert(
        self,
        symbol: str,
        timeframe: str,
        bar: Bar,
        is_final: bool,
    ) -> UpsertResult:
        """Merge one bar into a series.

        - same open time as a still-forming last bar: replaced in place
          (sealed when ``is_final``)
        - newer open time: appended, oldest bar evicted beyond ``max_length``
        - older open time, or an update for an already closed bar: rejected
          and logged; callers need not handle it
        """
        return self._get_or_create(symbol, timeframe).upsert(bar, is_final)

    def seed(
        self,
        symbol: str,
        timeframe: str,
        bars: Iterable[Bar],
        last_forming: bool = True,
    ) -> int:
        """Replace a series with historical bars.

        The exchange returns the in-progress bar as the last element of a
        history request, so by default it stays open for live replacement.

        Returns:
            Number of bars kept
        """
        count = self._get_or_create(symbol, timeframe).reset(bars, last_forming)
        logger.debug("Seeded %d bars for %s %s", count, symbol, timeframe)
        return count

    def series(self, symbol: str, timeframe: str) -> tuple[Bar, ...]:
        """Snapshot of a series; empty for unknown symbols or timeframes."""
        series = self._series.get(symbol, {}).get(timeframe)
        if series is None:
            return ()
        return series.snapshot()

    def closes(self, symbol: str, timeframe: str) -> list[float]:
        return [bar.close for bar in self.series(symbol, timeframe)]

    def symbols(self) -> list[str]:
        return list(self._series)

    def __contains__(self, symbol: str) -> bool:
        return symbol in self._series
