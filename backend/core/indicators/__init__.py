"""Technical indicators (pure math, no I/O)."""

from core.indicators.indicators import (
    rsi,
    sma_of_series,
    cmo,
    IndicatorCalculator,
)

__all__ = [
    "rsi",
    "sma_of_series",
    "cmo",
    "IndicatorCalculator",
]
