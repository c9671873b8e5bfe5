"""Price bar (candlestick) data model.

Bars are on the hot path (every stream message produces one), so they use
a slotted frozen dataclass with float prices instead of a Pydantic model.
"""

from dataclasses import dataclass
from datetime import datetime, timezone


@dataclass(slots=True, frozen=True)
class Bar:
    """OHLCV bar for one fixed time interval."""

    open_time: datetime
    open: float
    high: float
    low: float
    close: float
    volume: float

    @property
    def is_bullish(self) -> bool:
        """Check if this is a bullish (green) candle."""
        return self.close > self.open

    @property
    def is_bearish(self) -> bool:
        """Check if this is a bearish (red) candle."""
        return self.close < self.open

    @property
    def body_size(self) -> float:
        """Get the absolute size of the candle body."""
        return abs(self.close - self.open)

    @property
    def range_size(self) -> float:
        """Get the full range (high - low) of the candle."""
        return self.high - self.low

    @property
    def lower_wick(self) -> float:
        return min(self.open, self.close) - self.low

    @property
    def upper_wick(self) -> float:
        return self.high - max(self.open, self.close)


def timestamp_ms_to_datetime(value: int | float) -> datetime:
    """Convert an exchange millisecond timestamp to an aware UTC datetime."""
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
