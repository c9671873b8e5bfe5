"""Multi-factor long/short signal evaluation.

This module is pure business logic with no I/O dependencies. Every call is a
function of (primary bars, reference closes) and builds a fresh Signal.

Long side (flag count, 0-10 scale):
- trend, momentum, oscillator, pattern, support, liquidity
- score = round(10 * true_flags / 6); trend is a hard gate
- valid at score >= 7

Short side (weighted sum, out of 10):
- score = 3 * trend + 3 * momentum + 3 * oscillator + 1 * resistance
- valid needs trend, momentum and oscillator; "almost" misses only the
  oscillator

The two sides intentionally use different scoring scales and trend tests.

Both sides share the stop-hunt risk override: a signal that qualifies (long
score >= 7, short valid or almost) but whose stop-hunt score is at or above
the threshold becomes a RiskySignal without trade levels. Anything that does
not qualify stays NoSignal whatever its stop-hunt score.
"""

import logging
import math
from typing import Sequence

from core.indicators import IndicatorCalculator
from core.models import (
    AlmostSignal,
    Bar,
    Direction,
    EvaluatorConfig,
    FlagSet,
    Grade,
    IndicatorSnapshot,
    NoSignal,
    RiskySignal,
    Signal,
    ValidSignal,
)
from core.patterns import (
    Trend,
    bullish_pattern,
    downtrend,
    liquidity_grab_rejected,
    stop_hunt_score,
    trend_direction,
)

logger = logging.getLogger(__name__)

# (note when true, note when false), in evaluation order
_LONG_NOTES: dict[str, tuple[str, str]] = {
    "trend": ("Up-trend confirmed", "Up-trend not confirmed"),
    "momentum": ("RSI above or crossing its SMA and rising", "RSI momentum not confirmed"),
    "oscillator": ("CMO turning up from oversold zone", "CMO not turning up from oversold zone"),
    "pattern": ("Bullish candle pattern", "No bullish candle pattern"),
    "support": ("Price at support", "Price away from support"),
    "liquidity": ("No stop-hunt in progress", "Possible stop-hunt, wait"),
}

_SHORT_NOTES: dict[str, tuple[str, str]] = {
    "trend": ("Downtrend confirmed", "Downtrend not confirmed"),
    "momentum": ("RSI below SMA and falling", "RSI not below SMA and falling"),
    "oscillator": ("CMO U-turn from top zone", "No CMO U-turn from top zone"),
    "resistance": ("Near resistance zone", "Away from resistance zone"),
}

_SHORT_WEIGHTS = {"trend": 3, "momentum": 3, "oscillator": 3, "resistance": 1}


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _notes_for(flags: FlagSet, table: dict[str, tuple[str, str]]) -> list[str]:
    return [table[name][0] if flags[name] else table[name][1] for name in table]


class SignalEvaluator:
    """Stateless evaluator turning a series pair into long/short signals."""

    def __init__(self, config: EvaluatorConfig | None = None):
        self.config = config or EvaluatorConfig()
        self.indicator_calc = IndicatorCalculator.from_config(self.config)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def evaluate(
        self,
        symbol: str,
        primary: Sequence[Bar],
        reference_closes: Sequence[float],
    ) -> tuple[Signal, Signal]:
        """Evaluate both directions, sharing one indicator snapshot.

        Returns:
            Tuple of (long_signal, short_signal)
        """
        snapshot, reason = self._snapshot(primary, reference_closes)
        if snapshot is None:
            return (
                NoSignal(symbol=symbol, direction=Direction.LONG, reason=reason),
                NoSignal(symbol=symbol, direction=Direction.SHORT, reason=reason),
            )
        return (
            self._evaluate_long(symbol, primary, snapshot),
            self._evaluate_short(symbol, primary, snapshot),
        )

    def evaluate_long(
        self,
        symbol: str,
        primary: Sequence[Bar],
        reference_closes: Sequence[float],
    ) -> Signal:
        snapshot, reason = self._snapshot(primary, reference_closes)
        if snapshot is None:
            return NoSignal(symbol=symbol, direction=Direction.LONG, reason=reason)
        return self._evaluate_long(symbol, primary, snapshot)

    def evaluate_short(
        self,
        symbol: str,
        primary: Sequence[Bar],
        reference_closes: Sequence[float],
    ) -> Signal:
        snapshot, reason = self._snapshot(primary, reference_closes)
        if snapshot is None:
            return NoSignal(symbol=symbol, direction=Direction.SHORT, reason=reason)
        return self._evaluate_short(symbol, primary, snapshot)

    # ------------------------------------------------------------------
    # Gates
    # ------------------------------------------------------------------

    def _snapshot(
        self,
        primary: Sequence[Bar],
        reference_closes: Sequence[float],
    ) -> tuple[IndicatorSnapshot | None, str]:
        """
        Compute the indicator snapshot behind both evaluations.

        Returns:
            (snapshot, "") when evaluation can proceed, otherwise
            (None, reason) with the reason reported on the NoSignal
        """
        cfg = self.config
        if len(primary) < cfg.min_primary_bars:
            return None, f"insufficient history: {len(primary)}/{cfg.min_primary_bars} primary bars"
        if len(reference_closes) < cfg.min_reference_closes:
            return None, (
                f"insufficient history: {len(reference_closes)}/"
                f"{cfg.min_reference_closes} reference closes"
            )

        snapshot = self.indicator_calc.snapshot(
            [bar.close for bar in primary], reference_closes
        )
        if snapshot is None:
            return None, "indicators unavailable"
        return snapshot, ""

    # ------------------------------------------------------------------
    # Long side
    # ------------------------------------------------------------------

    def _evaluate_long(
        self,
        symbol: str,
        primary: Sequence[Bar],
        snap: IndicatorSnapshot,
    ) -> Signal:
        cfg = self.config
        last = primary[-1]

        rsi_rising = snap.rsi_previous is not None and snap.rsi > snap.rsi_previous
        rsi_above_sma = snap.rsi > snap.rsi_sma
        about_to_cross = (
            snap.rsi_previous is not None
            and snap.rsi_previous < snap.rsi_sma
            and snap.rsi >= snap.rsi_sma * cfg.rsi_cross_tolerance
        )
        cmo_rising = snap.cmo_previous is not None and snap.cmo > snap.cmo_previous

        support_low = min(bar.low for bar in primary[-cfg.level_lookback:])

        flags: FlagSet = {
            "trend": trend_direction(primary, cfg.trend_lookback) == Trend.UP,
            "momentum": (
                (rsi_above_sma or about_to_cross)
                and rsi_rising
                and snap.rsi < cfg.rsi_overbought
            ),
            "oscillator": cfg.cmo_long_low <= snap.cmo <= cfg.cmo_long_high and cmo_rising,
            "pattern": bullish_pattern(primary),
            "support": last.low <= support_low * cfg.support_tolerance,
            "liquidity": liquidity_grab_rejected(last),
        }
        notes = _notes_for(flags, _LONG_NOTES)

        if not flags["trend"]:
            return NoSignal(
                symbol=symbol,
                direction=Direction.LONG,
                reason="trend gate failed",
                notes=tuple(notes),
                flags=flags,
            )

        score = _round_half_up(10 * sum(flags.values()) / len(flags))
        if score < cfg.long_valid_score:
            return NoSignal(
                symbol=symbol,
                direction=Direction.LONG,
                reason=f"score {score} below {cfg.long_valid_score}",
                notes=tuple(notes),
                flags=flags,
            )

        hunt = stop_hunt_score(
            last, support_low, Direction.LONG, tolerance=cfg.support_tolerance - 1
        )
        common = dict(
            symbol=symbol,
            direction=Direction.LONG,
            score=score,
            stop_hunt_probability=hunt,
            rsi=snap.rsi,
            rsi_sma=snap.rsi_sma,
            cmo=snap.cmo,
            updated_at=last.open_time,
            flags=flags,
        )

        if hunt >= cfg.stop_hunt_threshold:
            notes.append(f"Stop-hunt risk {hunt}%, wait for confirmation")
            logger.debug("%s long vetoed by stop-hunt score %d", symbol, hunt)
            return RiskySignal(notes=tuple(notes), **common)

        entry = last.close
        return ValidSignal(
            grade=Grade.STRONG if score >= cfg.strong_score else Grade.GOOD,
            notes=tuple(notes),
            entry=entry,
            target=round(entry * cfg.long_target_mult, cfg.price_decimals),
            stop=round(entry * cfg.long_stop_mult, cfg.price_decimals),
            **common,
        )

    # ------------------------------------------------------------------
    # Short side
    # ------------------------------------------------------------------

    def _evaluate_short(
        self,
        symbol: str,
        primary: Sequence[Bar],
        snap: IndicatorSnapshot,
    ) -> Signal:
        cfg = self.config
        last = primary[-1]

        rsi_falling = snap.rsi_previous is not None and snap.rsi < snap.rsi_previous
        not_oversold = snap.rsi > cfg.rsi_oversold
        cmo_u_turn = (
            snap.cmo_previous is not None
            and snap.cmo < snap.cmo_previous
            and snap.cmo_previous > cfg.cmo_short_turn_from
        )

        resistance_high = max(bar.high for bar in primary[-cfg.level_lookback:])

        flags: FlagSet = {
            "trend": downtrend(primary, cfg.trend_lookback) == Trend.DOWN,
            "momentum": snap.rsi < snap.rsi_sma and rsi_falling and not_oversold,
            "oscillator": cfg.cmo_short_low <= snap.cmo <= cfg.cmo_short_high and cmo_u_turn,
            "resistance": last.high >= resistance_high * cfg.resistance_tolerance,
        }
        notes = _notes_for(flags, _SHORT_NOTES)
        if not flags["momentum"] and not not_oversold:
            notes[1] = "RSI oversold or turning up"

        score = sum(weight for name, weight in _SHORT_WEIGHTS.items() if flags[name])
        valid = flags["trend"] and flags["momentum"] and flags["oscillator"]
        almost = flags["trend"] and flags["momentum"] and not flags["oscillator"]

        if not flags["trend"]:
            return NoSignal(
                symbol=symbol,
                direction=Direction.SHORT,
                reason="trend not confirmed",
                notes=tuple(notes),
                flags=flags,
            )

        if not (valid or almost):
            return NoSignal(
                symbol=symbol,
                direction=Direction.SHORT,
                reason="momentum not confirmed",
                notes=tuple(notes),
                flags=flags,
            )

        hunt = stop_hunt_score(
            last, resistance_high, Direction.SHORT, tolerance=1 - cfg.resistance_tolerance
        )
        common = dict(
            symbol=symbol,
            direction=Direction.SHORT,
            score=score,
            stop_hunt_probability=hunt,
            rsi=snap.rsi,
            rsi_sma=snap.rsi_sma,
            cmo=snap.cmo,
            updated_at=last.open_time,
            flags=flags,
        )

        if hunt >= cfg.stop_hunt_threshold:
            notes.append(f"Stop-hunt risk {hunt}%, wait for confirmation")
            logger.debug("%s short vetoed by stop-hunt score %d", symbol, hunt)
            return RiskySignal(notes=tuple(notes), **common)

        entry = last.close
        levels = dict(
            entry=entry,
            target=round(entry * cfg.short_target_mult, cfg.price_decimals),
            stop=round(entry * cfg.short_stop_mult, cfg.price_decimals),
        )
        if valid:
            grade = Grade.STRONG if score >= cfg.strong_score else Grade.GOOD
            return ValidSignal(grade=grade, notes=tuple(notes), **levels, **common)
        return AlmostSignal(grade=Grade.ALMOST, notes=tuple(notes), **levels, **common)
