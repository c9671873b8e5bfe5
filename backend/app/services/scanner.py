"""Evaluation orchestration over the bar store."""

import logging

from app.services.signal_board import BoardSnapshot, SignalBoard
from core.bar_store import BarStore
from core.evaluator import SignalEvaluator
from core.models import ACTIONABLE_SIGNALS, Direction, NoSignal, Signal

logger = logging.getLogger(__name__)


class SignalScanner:
    """Runs the evaluator for watched symbols and publishes to the board.

    The scanner owns no state of its own: bars come from the BarStore and
    results go to the SignalBoard.
    """

    def __init__(
        self,
        store: BarStore,
        board: SignalBoard,
        symbols: list[str],
        primary_timeframe: str = "1h",
        reference_timeframe: str = "4h",
        evaluator: SignalEvaluator | None = None,
    ):
        self.store = store
        self.board = board
        self.symbols = list(symbols)
        self.primary_timeframe = primary_timeframe
        self.reference_timeframe = reference_timeframe
        self.evaluator = evaluator or SignalEvaluator()

    def evaluate_symbol(self, symbol: str) -> tuple[Signal, Signal]:
        """Evaluate both directions for one symbol from the current store."""
        primary = self.store.series(symbol, self.primary_timeframe)
        reference_closes = self.store.closes(symbol, self.reference_timeframe)
        return self.evaluator.evaluate(symbol, primary, reference_closes)

    async def refresh_symbol(self, symbol: str) -> BoardSnapshot:
        """Re-evaluate one symbol after its primary bar closed."""
        signals = self.evaluate_symbol(symbol)
        for signal in signals:
            if isinstance(signal, ACTIONABLE_SIGNALS):
                logger.info(
                    "%s %s %s score=%d grade=%s",
                    signal.symbol,
                    signal.direction.value,
                    signal.kind,
                    signal.score,
                    signal.grade.value,
                )
        return await self.board.update_symbol(symbol, signals)

    async def refresh_all(self) -> BoardSnapshot:
        """Re-evaluate every watched symbol and swap the whole board.

        A symbol whose evaluation raises is logged and recorded as NoSignal
        so one bad series cannot block the rest of the pass.
        """
        results: dict[str, tuple[Signal, Signal]] = {}
        for symbol in self.symbols:
            try:
                results[symbol] = self.evaluate_symbol(symbol)
            except Exception as e:
                logger.error(f"Evaluation failed for {symbol}: {e}")
                results[symbol] = (
                    NoSignal(symbol=symbol, direction=Direction.LONG, reason="evaluation error"),
                    NoSignal(symbol=symbol, direction=Direction.SHORT, reason="evaluation error"),
                )

        snapshot = await self.board.replace_all(results)
        logger.info(
            "Evaluated %d symbols: %d actionable signals",
            len(results),
            len(snapshot.actionable()),
        )
        return snapshot
