"""Business services."""

from app.services.history_loader import seed_history
from app.services.scanner import SignalScanner
from app.services.scheduler import Scheduler
from app.services.signal_board import BoardSnapshot, SignalBoard
from app.services.stream_ingestor import StreamIngestor

__all__ = [
    "seed_history",
    "SignalScanner",
    "Scheduler",
    "BoardSnapshot",
    "SignalBoard",
    "StreamIngestor",
]
