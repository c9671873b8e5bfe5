"""Data models."""

from core.models.bar import Bar, timestamp_ms_to_datetime
from core.models.config import EvaluatorConfig
from core.models.signal import (
    ACTIONABLE_SIGNALS,
    AlmostSignal,
    Direction,
    FlagSet,
    Grade,
    IndicatorSnapshot,
    NoSignal,
    RiskySignal,
    Signal,
    SignalData,
    ValidSignal,
)

__all__ = [
    "Bar",
    "timestamp_ms_to_datetime",
    "EvaluatorConfig",
    "ACTIONABLE_SIGNALS",
    "AlmostSignal",
    "Direction",
    "FlagSet",
    "Grade",
    "IndicatorSnapshot",
    "NoSignal",
    "RiskySignal",
    "Signal",
    "SignalData",
    "ValidSignal",
]
