"""Evaluation rule configuration."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class EvaluatorConfig(BaseModel):
    """Rule constants for the long/short momentum evaluation."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    # Minimum history before a symbol is evaluated at all
    min_primary_bars: int = 30
    min_reference_closes: int = 20

    # Indicator periods
    rsi_period: int = 14
    rsi_sma_window: int = 14
    cmo_period: int = 14

    # Pattern windows
    trend_lookback: int = 10
    level_lookback: int = 20

    # Long side
    rsi_overbought: float = 80.0
    rsi_cross_tolerance: float = 0.98  # RSI within 2% below its SMA
    cmo_long_low: float = -100.0
    cmo_long_high: float = -60.0
    support_tolerance: float = 1.005
    long_valid_score: int = 7

    # Short side
    rsi_oversold: float = 20.0
    cmo_short_low: float = 50.0
    cmo_short_high: float = 100.0
    cmo_short_turn_from: float = 90.0
    resistance_tolerance: float = 0.995

    # Grades
    strong_score: int = 9

    # Risk override
    stop_hunt_threshold: int = 70

    # Trade levels
    long_target_mult: float = 1.03
    long_stop_mult: float = 0.99
    short_target_mult: float = 0.97
    short_stop_mult: float = 1.01
    price_decimals: int = 4
