"""Trend and candlestick pattern classifiers.

The long and short sides deliberately use different trend tests:
- trend_direction(): slope of highs and lows (last minus first) must both be
  positive for an up-trend
- downtrend(): highs and lows must be non-increasing on every step of the
  window (lower highs and lower lows)
"""

from enum import Enum
from typing import Sequence

from core.models import Bar, Direction


class Trend(str, Enum):
    UP = "up"
    DOWN = "down"


def trend_direction(bars: Sequence[Bar], lookback: int = 10) -> Trend:
    """Long-side trend test over the most recent ``lookback`` bars."""
    window = bars[-lookback:]
    if not window:
        return Trend.DOWN
    high_slope = window[-1].high - window[0].high
    low_slope = window[-1].low - window[0].low
    return Trend.UP if high_slope > 0 and low_slope > 0 else Trend.DOWN


def downtrend(bars: Sequence[Bar], lookback: int = 10) -> Trend:
    """Short-side trend test: lower highs and lower lows on every step."""
    window = bars[-lookback:]
    if not window:
        return Trend.UP
    lower_highs = all(
        cur.high <= prev.high for prev, cur in zip(window, window[1:])
    )
    lower_lows = all(
        cur.low <= prev.low for prev, cur in zip(window, window[1:])
    )
    return Trend.DOWN if lower_highs and lower_lows else Trend.UP


def is_bullish_engulfing(prev: Bar, cur: Bar) -> bool:
    """Red bar followed by a green bar whose body contains it."""
    return (
        prev.is_bearish
        and cur.is_bullish
        and cur.open <= prev.close
        and cur.close >= prev.open
    )


def is_hammer(bar: Bar) -> bool:
    body = bar.body_size
    return (
        bar.range_size > 3 * body
        and bar.lower_wick > 2 * body
        and bar.upper_wick < 0.3 * body
    )


def bullish_pattern(bars: Sequence[Bar]) -> bool:
    """Green close, bullish engulfing, or hammer on the latest bar."""
    if len(bars) < 2:
        return False
    prev, cur = bars[-2], bars[-1]
    return cur.is_bullish or is_bullish_engulfing(prev, cur) or is_hammer(cur)


def liquidity_grab_rejected(bar: Bar) -> bool:
    """Return False while the bar still looks like an active stop hunt.

    A long lower wick (more than twice the body) with a bearish close means
    price is still hunting below support; anything else passes, including a
    long lower wick with a bullish close (the grab was rejected).
    """
    if bar.lower_wick > bar.body_size * 2 and bar.is_bearish:
        return False
    return True


def stop_hunt_score(
    bar: Bar,
    recent_extreme: float,
    side: Direction = Direction.LONG,
    tolerance: float = 0.005,
) -> int:
    """
    Score how much the bar looks like a stop hunt against ``side``.

    Components:
    - +40 dominant wick on the risk side (at least twice the body)
    - +20 close confirming the rejection direction
    - +20 wick touched the recent extreme (within ``tolerance``) and the
      close reclaimed it
    - +20 hammer shape (long side only)

    Args:
        bar: Latest bar
        recent_extreme: Recent support low (long) or resistance high (short)
        side: Direction of the trade being considered
        tolerance: Relative distance that still counts as touching the extreme

    Returns:
        Score in [0, 100]
    """
    body = bar.body_size
    score = 0

    if side == Direction.LONG:
        wick = bar.lower_wick
        if wick > 0 and wick >= 2 * body:
            score += 40
        if bar.is_bullish:
            score += 20
        if bar.low <= recent_extreme * (1 + tolerance) and bar.close > recent_extreme:
            score += 20
        if is_hammer(bar):
            score += 20
    else:
        wick = bar.upper_wick
        if wick > 0 and wick >= 2 * body:
            score += 40
        if bar.is_bearish:
            score += 20
        if bar.high >= recent_extreme * (1 - tolerance) and bar.close < recent_extreme:
            score += 20

    return min(score, 100)
