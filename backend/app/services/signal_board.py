"""Aggregated signal collection read by the presentation layer.

The board never mutates a published snapshot. Every update builds a new
mapping and swaps the snapshot reference in a single assignment, so readers
either see the complete old state or the complete new one.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Awaitable, Callable, Iterable, Mapping

import orjson

from core.models import ACTIONABLE_SIGNALS, Direction, Signal, SignalData

logger = logging.getLogger(__name__)

BoardKey = tuple[str, Direction]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class BoardSnapshot:
    """Immutable view of the latest signal per (symbol, direction)."""

    signals: Mapping[BoardKey, Signal] = field(default_factory=lambda: MappingProxyType({}))
    order: tuple[str, ...] = ()
    updated_at: datetime = field(default_factory=_utcnow)

    def get(self, symbol: str, direction: Direction) -> Signal | None:
        return self.signals.get((symbol, direction))

    def actionable(self, direction: Direction | None = None) -> list[SignalData]:
        """Valid, almost and risky signals: longs first, then shorts.

        Within each direction signals follow the watch-list order.
        """
        directions = [direction] if direction else [Direction.LONG, Direction.SHORT]
        result: list[SignalData] = []
        for side in directions:
            for symbol in self.order:
                signal = self.signals.get((symbol, side))
                if isinstance(signal, ACTIONABLE_SIGNALS):
                    result.append(signal)
        return result

    def to_json(self, direction: Direction | None = None) -> bytes:
        """Serialize actionable signals for the presentation layer."""
        return orjson.dumps(
            {
                "updated_at": self.updated_at,
                "signals": [s.model_dump(mode="json") for s in self.actionable(direction)],
            }
        )


# Type alias for board update callback
BoardCallback = Callable[[BoardSnapshot], Awaitable[None]]


class SignalBoard:
    """Owner of the aggregated signal collection."""

    def __init__(self, symbols: Iterable[str] = ()):
        self._snapshot = BoardSnapshot(order=tuple(symbols))
        self._callbacks: list[BoardCallback] = []

    def snapshot(self) -> BoardSnapshot:
        return self._snapshot

    def on_update(self, callback: BoardCallback) -> None:
        """Register a callback invoked after every swap."""
        self._callbacks.append(callback)

    async def update_symbol(self, symbol: str, signals: Iterable[Signal]) -> BoardSnapshot:
        """Supersede the signals of one symbol, keeping every other entry."""
        current = self._snapshot
        merged = dict(current.signals)
        for signal in signals:
            merged[(signal.symbol, signal.direction)] = signal

        order = current.order if symbol in current.order else current.order + (symbol,)
        return await self._swap(BoardSnapshot(MappingProxyType(merged), order, _utcnow()))

    async def replace_all(
        self,
        results: Mapping[str, Iterable[Signal]],
    ) -> BoardSnapshot:
        """Replace the whole board with a fresh evaluation pass."""
        fresh: dict[BoardKey, Signal] = {}
        for signals in results.values():
            for signal in signals:
                fresh[(signal.symbol, signal.direction)] = signal

        order = self._snapshot.order + tuple(
            s for s in results if s not in self._snapshot.order
        )
        return await self._swap(BoardSnapshot(MappingProxyType(fresh), order, _utcnow()))

    async def _swap(self, snapshot: BoardSnapshot) -> BoardSnapshot:
        self._snapshot = snapshot

        for callback in self._callbacks:
            try:
                await callback(snapshot)
            except Exception as e:
                logger.error(f"Board update callback error: {e}")

        return snapshot
