"""Momentum indicators for signal evaluation.

All functions are pure and recompute from scratch on every call. Series are
bounded by the bar store's retention limit, so there is no incremental state
to keep in sync.
"""

from typing import Iterator, Sequence

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view

from core.models import EvaluatorConfig, IndicatorSnapshot


def _rsi_value(avg_gain: float, avg_loss: float) -> float:
    if avg_loss == 0:
        return 100.0
    if avg_gain == 0:
        return 0.0
    rs = avg_gain / avg_loss
    return 100.0 - 100.0 / (1.0 + rs)


def rsi(closes: Sequence[float], period: int = 14) -> Iterator[float]:
    """
    Calculate Wilder's Relative Strength Index.

    The first value is seeded with the simple average of the first ``period``
    gains and losses; every later value uses Wilder smoothing
    ``avg = (prev_avg * (period - 1) + current) / period``.

    Args:
        closes: Sequence of close prices
        period: RSI period

    Yields:
        RSI values in [0, 100], aligned to the tail of ``closes``
        (``len(closes) - period`` values in total, none if fewer than
        ``period + 1`` closes are given)
    """
    if period < 1:
        raise ValueError(f"RSI period must be positive, got {period}")
    if len(closes) < period + 1:
        return

    gains = 0.0
    losses = 0.0
    for i in range(1, period + 1):
        delta = closes[i] - closes[i - 1]
        if delta > 0:
            gains += delta
        else:
            losses -= delta

    avg_gain = gains / period
    avg_loss = losses / period
    yield _rsi_value(avg_gain, avg_loss)

    for i in range(period + 1, len(closes)):
        delta = closes[i] - closes[i - 1]
        gain = delta if delta > 0 else 0.0
        loss = -delta if delta < 0 else 0.0
        avg_gain = (avg_gain * (period - 1) + gain) / period
        avg_loss = (avg_loss * (period - 1) + loss) / period
        yield _rsi_value(avg_gain, avg_loss)


def sma_of_series(series: Sequence[float], window: int = 14) -> float | None:
    """Arithmetic mean of the last ``window`` values, or None if too short."""
    if window < 1 or len(series) < window:
        return None
    return float(np.mean(np.asarray(series[-window:], dtype=np.float64)))


def cmo(closes: Sequence[float], period: int = 14) -> list[float]:
    """
    Calculate a Chande Momentum Oscillator series.

    For each window of ``period`` consecutive closes the positive deltas are
    summed into ``up`` and the negative deltas into ``down`` (as a positive
    magnitude). Each value is ``100 * (up - down) / (up + down)``, with the
    divisor replaced by 1 when the window has no movement at all.

    Args:
        closes: Sequence of close prices
        period: Window length in closes

    Returns:
        ``len(closes) - period + 1`` values in [-100, 100]
        (empty if fewer than ``period`` closes)
    """
    if period < 2:
        raise ValueError(f"CMO period must be at least 2, got {period}")
    if len(closes) < period:
        return []

    arr = np.asarray(closes, dtype=np.float64)
    deltas = np.diff(arr)
    up = np.where(deltas > 0, deltas, 0.0)
    down = np.where(deltas < 0, -deltas, 0.0)

    # A window of `period` closes holds `period - 1` deltas
    up_sums = sliding_window_view(up, period - 1).sum(axis=1)
    down_sums = sliding_window_view(down, period - 1).sum(axis=1)

    total = up_sums + down_sums
    divisor = np.where(total == 0, 1.0, total)
    return (100.0 * (up_sums - down_sums) / divisor).tolist()


class IndicatorCalculator:
    """Builds an IndicatorSnapshot from a primary/reference close pair.

    RSI and its SMA come from the slower reference timeframe, CMO from the
    primary evaluation timeframe.
    """

    def __init__(
        self,
        rsi_period: int = 14,
        rsi_sma_window: int = 14,
        cmo_period: int = 14,
    ):
        self.rsi_period = rsi_period
        self.rsi_sma_window = rsi_sma_window
        self.cmo_period = cmo_period

    @classmethod
    def from_config(cls, config: EvaluatorConfig) -> "IndicatorCalculator":
        return cls(
            rsi_period=config.rsi_period,
            rsi_sma_window=config.rsi_sma_window,
            cmo_period=config.cmo_period,
        )

    def snapshot(
        self,
        primary_closes: Sequence[float],
        reference_closes: Sequence[float],
    ) -> IndicatorSnapshot | None:
        """
        Calculate indicators for the latest bar only.

        Returns:
            IndicatorSnapshot, or None if RSI, its SMA or CMO is unavailable
        """
        rsi_series = list(rsi(reference_closes, self.rsi_period))
        rsi_sma = sma_of_series(rsi_series, self.rsi_sma_window)
        cmo_series = cmo(primary_closes, self.cmo_period)

        if not rsi_series or rsi_sma is None or not cmo_series:
            return None

        return IndicatorSnapshot(
            rsi=rsi_series[-1],
            rsi_previous=rsi_series[-2] if len(rsi_series) >= 2 else None,
            rsi_sma=rsi_sma,
            cmo=cmo_series[-1],
            cmo_previous=cmo_series[-2] if len(cmo_series) >= 2 else None,
        )
