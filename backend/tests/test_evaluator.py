"""Tests for SignalEvaluator long/short decision rules."""

import math
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from core.evaluator import SignalEvaluator
from core.models import (
    AlmostSignal,
    Bar,
    Direction,
    Grade,
    IndicatorSnapshot,
    NoSignal,
    RiskySignal,
    ValidSignal,
)

BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)
REFERENCE_CLOSES = [100.0] * 30

# Momentum and oscillator both true on the long side
LONG_SNAPSHOT = IndicatorSnapshot(rsi=55.0, rsi_previous=50.0, rsi_sma=52.0, cmo=-70.0, cmo_previous=-80.0)
# Momentum and oscillator both false on the long side
FLAT_SNAPSHOT = IndicatorSnapshot(rsi=45.0, rsi_previous=50.0, rsi_sma=52.0, cmo=0.0, cmo_previous=-5.0)
# Momentum and oscillator both true on the short side
SHORT_SNAPSHOT = IndicatorSnapshot(rsi=40.0, rsi_previous=45.0, rsi_sma=50.0, cmo=85.0, cmo_previous=95.0)


def bar_at(index: int, open_price: float, high: float, low: float, close: float) -> Bar:
    return Bar(
        open_time=BASE_TIME + timedelta(hours=index),
        open=open_price,
        high=high,
        low=low,
        close=close,
        volume=1.0,
    )


def long_bars(last: tuple[float, float, float, float] = (100.6, 102.0, 100.2, 101.5)) -> list[Bar]:
    """29 flat filler bars followed by ``last`` as (open, high, low, close)."""
    bars = [bar_at(i, 100.4, 101.0, 100.0, 100.6) for i in range(29)]
    bars.append(bar_at(29, *last))
    return bars


def short_bars(last: tuple[float, float, float, float] | None = None) -> list[Bar]:
    """20 flat bars, then 10 bars with strictly lower highs and lows."""
    bars = [bar_at(i, 109.8, 110.0, 108.0, 108.2) for i in range(20)]
    for k in range(10):
        high = 110.0 - 0.01 * k
        low = 108.0 - 0.01 * k
        bars.append(bar_at(20 + k, high - 0.2, high, low, low + 0.2))
    if last is not None:
        bars[-1] = bar_at(29, *last)
    return bars


def make_evaluator(snapshot: IndicatorSnapshot | None) -> SignalEvaluator:
    evaluator = SignalEvaluator()
    evaluator.indicator_calc = MagicMock()
    evaluator.indicator_calc.snapshot.return_value = snapshot
    return evaluator


class TestGates:
    """Tests for shared history and indicator gates."""

    def test_insufficient_primary_history(self):
        evaluator = make_evaluator(LONG_SNAPSHOT)

        long_signal, short_signal = evaluator.evaluate("BTCUSDT", long_bars()[:10], REFERENCE_CLOSES)

        assert isinstance(long_signal, NoSignal)
        assert isinstance(short_signal, NoSignal)
        assert long_signal.reason == "insufficient history: 10/30 primary bars"
        assert short_signal.direction == Direction.SHORT
        evaluator.indicator_calc.snapshot.assert_not_called()

    def test_insufficient_reference_history(self):
        evaluator = make_evaluator(LONG_SNAPSHOT)

        signal = evaluator.evaluate_long("BTCUSDT", long_bars(), [100.0] * 19)

        assert isinstance(signal, NoSignal)
        assert "19/20 reference closes" in signal.reason

    def test_indicators_unavailable(self):
        evaluator = make_evaluator(None)

        signal = evaluator.evaluate_short("BTCUSDT", short_bars(), REFERENCE_CLOSES)

        assert isinstance(signal, NoSignal)
        assert signal.reason == "indicators unavailable"

    def test_gate_returns_snapshot_or_reason(self):
        evaluator = make_evaluator(LONG_SNAPSHOT)

        assert evaluator._snapshot(long_bars(), REFERENCE_CLOSES) == (LONG_SNAPSHOT, "")
        assert evaluator._snapshot(long_bars()[:5], REFERENCE_CLOSES) == (
            None,
            "insufficient history: 5/30 primary bars",
        )

    def test_snapshot_receives_primary_closes(self):
        evaluator = make_evaluator(LONG_SNAPSHOT)
        bars = long_bars()

        evaluator.evaluate("BTCUSDT", bars, REFERENCE_CLOSES)

        evaluator.indicator_calc.snapshot.assert_called_once_with(
            [bar.close for bar in bars], REFERENCE_CLOSES
        )


class TestLongSide:
    """Tests for the long-side flag count."""

    def test_all_flags_strong_signal(self):
        evaluator = make_evaluator(LONG_SNAPSHOT)

        signal = evaluator.evaluate_long("BTCUSDT", long_bars(), REFERENCE_CLOSES)

        assert isinstance(signal, ValidSignal)
        assert signal.score == 10
        assert signal.grade == Grade.STRONG
        assert signal.valid is True
        assert all(signal.flags.values())
        assert signal.entry == 101.5
        assert signal.target == pytest.approx(104.545)
        assert signal.stop == pytest.approx(100.485)
        assert signal.stop_hunt_probability == 40
        assert signal.updated_at == BASE_TIME + timedelta(hours=29)

    def test_four_flags_rounds_to_good(self):
        """4 of 6 flags -> 6.67 -> 7, the lowest valid score."""
        evaluator = make_evaluator(FLAT_SNAPSHOT)

        signal = evaluator.evaluate_long("BTCUSDT", long_bars(), REFERENCE_CLOSES)

        assert isinstance(signal, ValidSignal)
        assert signal.score == 7
        assert signal.grade == Grade.GOOD
        assert signal.flags["momentum"] is False
        assert signal.flags["oscillator"] is False

    def test_low_score_is_no_signal(self):
        """Last low above support leaves 3 of 6 flags -> score 5."""
        evaluator = make_evaluator(FLAT_SNAPSHOT)

        signal = evaluator.evaluate_long(
            "BTCUSDT", long_bars((100.8, 102.0, 100.6, 101.5)), REFERENCE_CLOSES
        )

        assert isinstance(signal, NoSignal)
        assert signal.reason == "score 5 below 7"
        assert signal.flags["support"] is False
        assert "Price away from support" in signal.notes

    def test_trend_gate(self):
        """A failed trend yields NoSignal even when every other flag holds."""
        evaluator = make_evaluator(LONG_SNAPSHOT)

        signal = evaluator.evaluate_long(
            "BTCUSDT", long_bars((100.4, 100.9, 100.2, 100.8)), REFERENCE_CLOSES
        )

        assert isinstance(signal, NoSignal)
        assert signal.reason == "trend gate failed"
        assert signal.flags["trend"] is False
        assert signal.notes[0] == "Up-trend not confirmed"

    def test_stop_hunt_override(self):
        """Score 10 but a stop-hunt score of 80 vetoes the trade."""
        evaluator = make_evaluator(LONG_SNAPSHOT)

        signal = evaluator.evaluate_long(
            "BTCUSDT", long_bars((101.0, 101.3, 100.2, 101.2)), REFERENCE_CLOSES
        )

        assert isinstance(signal, RiskySignal)
        assert signal.valid is False
        assert signal.grade == Grade.RISKY
        assert signal.score == 10
        assert signal.stop_hunt_probability == 80
        assert signal.entry is None
        assert signal.notes[-1] == "Stop-hunt risk 80%, wait for confirmation"

    def test_stop_hunt_ignored_below_valid_score(self):
        """A hammer away from support scores 80 on stop-hunt but only 5 overall."""
        evaluator = make_evaluator(FLAT_SNAPSHOT)

        signal = evaluator.evaluate_long(
            "BTCUSDT", long_bars((101.2, 101.32, 100.7, 101.3)), REFERENCE_CLOSES
        )

        assert isinstance(signal, NoSignal)
        assert signal.reason == "score 5 below 7"
        assert signal.flags["support"] is False
        assert not any(note.startswith("Stop-hunt risk") for note in signal.notes)

    def test_rsi_about_to_cross(self):
        """RSI just under its SMA but within tolerance and rising counts."""
        snapshot = IndicatorSnapshot(rsi=51.5, rsi_previous=48.0, rsi_sma=52.0, cmo=-70.0, cmo_previous=-80.0)
        evaluator = make_evaluator(snapshot)

        signal = evaluator.evaluate_long("BTCUSDT", long_bars(), REFERENCE_CLOSES)

        assert signal.flags["momentum"] is True

    def test_overbought_rsi_fails_momentum(self):
        snapshot = IndicatorSnapshot(rsi=85.0, rsi_previous=80.0, rsi_sma=70.0, cmo=-70.0, cmo_previous=-80.0)
        evaluator = make_evaluator(snapshot)

        signal = evaluator.evaluate_long("BTCUSDT", long_bars(), REFERENCE_CLOSES)

        assert signal.flags["momentum"] is False

    def test_one_note_per_flag(self):
        evaluator = make_evaluator(FLAT_SNAPSHOT)

        signal = evaluator.evaluate_long("BTCUSDT", long_bars(), REFERENCE_CLOSES)

        assert len(signal.notes) == 6


class TestShortSide:
    """Tests for the short-side weighted score."""

    def test_valid_short(self):
        evaluator = make_evaluator(SHORT_SNAPSHOT)

        signal = evaluator.evaluate_short("BTCUSDT", short_bars(), REFERENCE_CLOSES)

        assert isinstance(signal, ValidSignal)
        assert signal.direction == Direction.SHORT
        assert signal.score == 10
        assert signal.grade == Grade.STRONG
        entry = signal.entry
        assert entry == pytest.approx(108.11)
        assert signal.target == pytest.approx(round(entry * 0.97, 4))
        assert signal.stop == pytest.approx(round(entry * 1.01, 4))

    def test_almost_short(self):
        """Trend and momentum without an oscillator turn."""
        snapshot = IndicatorSnapshot(rsi=40.0, rsi_previous=45.0, rsi_sma=50.0, cmo=40.0, cmo_previous=45.0)
        evaluator = make_evaluator(snapshot)

        signal = evaluator.evaluate_short("BTCUSDT", short_bars(), REFERENCE_CLOSES)

        assert isinstance(signal, AlmostSignal)
        assert signal.almost is True
        assert signal.valid is False
        assert signal.score == 7
        assert signal.grade == Grade.ALMOST
        assert signal.entry is not None

    def test_short_without_momentum(self):
        snapshot = IndicatorSnapshot(rsi=55.0, rsi_previous=50.0, rsi_sma=50.0, cmo=85.0, cmo_previous=95.0)
        evaluator = make_evaluator(snapshot)

        signal = evaluator.evaluate_short("BTCUSDT", short_bars(), REFERENCE_CLOSES)

        assert isinstance(signal, NoSignal)
        assert signal.reason == "momentum not confirmed"

    def test_oversold_note(self):
        snapshot = IndicatorSnapshot(rsi=15.0, rsi_previous=20.0, rsi_sma=30.0, cmo=85.0, cmo_previous=95.0)
        evaluator = make_evaluator(snapshot)

        signal = evaluator.evaluate_short("BTCUSDT", short_bars(), REFERENCE_CLOSES)

        assert signal.flags["momentum"] is False
        assert "RSI oversold or turning up" in signal.notes

    def test_trend_not_confirmed(self):
        """A single higher high in the window breaks the downtrend."""
        evaluator = make_evaluator(SHORT_SNAPSHOT)

        signal = evaluator.evaluate_short("BTCUSDT", long_bars(), REFERENCE_CLOSES)

        assert isinstance(signal, NoSignal)
        assert signal.reason == "trend not confirmed"
        assert signal.flags["trend"] is False

    def test_stop_hunt_override(self):
        evaluator = make_evaluator(SHORT_SNAPSHOT)

        signal = evaluator.evaluate_short(
            "BTCUSDT", short_bars((108.3, 109.91, 107.91, 108.1)), REFERENCE_CLOSES
        )

        assert isinstance(signal, RiskySignal)
        assert signal.stop_hunt_probability == 80
        assert signal.target is None

    def test_stop_hunt_ignored_for_trend_only_short(self):
        """Resistance rejection without momentum stays NoSignal."""
        snapshot = IndicatorSnapshot(rsi=55.0, rsi_previous=50.0, rsi_sma=52.0, cmo=0.0, cmo_previous=-5.0)
        evaluator = make_evaluator(snapshot)

        signal = evaluator.evaluate_short(
            "BTCUSDT", short_bars((109.0, 109.9, 107.9, 108.8)), REFERENCE_CLOSES
        )

        assert isinstance(signal, NoSignal)
        assert signal.reason == "momentum not confirmed"
        assert signal.flags == {
            "trend": True,
            "momentum": False,
            "oscillator": False,
            "resistance": True,
        }


class TestEvaluate:
    """Tests for the combined evaluation entry point."""

    def test_returns_long_and_short(self):
        evaluator = make_evaluator(LONG_SNAPSHOT)

        long_signal, short_signal = evaluator.evaluate("BTCUSDT", long_bars(), REFERENCE_CLOSES)

        assert long_signal.direction == Direction.LONG
        assert short_signal.direction == Direction.SHORT
        assert evaluator.indicator_calc.snapshot.call_count == 1

    def test_real_indicators(self):
        """End to end with computed indicators: results are well formed."""
        evaluator = SignalEvaluator()
        bars = [
            bar_at(
                i,
                100 + 3 * math.sin(i / 4),
                101 + 3 * math.sin(i / 4) + 0.5,
                99 + 3 * math.sin(i / 4) - 0.5,
                100 + 3 * math.sin((i + 1) / 4),
            )
            for i in range(120)
        ]
        reference = [100 + 5 * math.sin(i / 5) for i in range(60)]

        for signal in evaluator.evaluate("ETHUSDT", bars, reference):
            assert signal.symbol == "ETHUSDT"
            if not isinstance(signal, NoSignal):
                assert 0 <= signal.score <= 10
                assert 0 <= signal.stop_hunt_probability <= 100
