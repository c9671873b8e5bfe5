"""Connection lifecycle state machine with exponential reconnect backoff.

States:
    DISCONNECTED -> CONNECTING -> CONNECTED -> RECONNECTING -> CONNECTING -> ...
    any state -> CLOSED (terminal)

Delay before reconnect attempt ``n`` (0-based retry count) is
``min(max_delay, 2**n * base_delay)``. A successful CONNECTED transition
resets the retry count.
"""

import logging
from enum import Enum

logger = logging.getLogger(__name__)


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"
    CLOSED = "closed"


class InvalidTransition(RuntimeError):
    """Raised on a transition the state machine does not allow."""


class ReconnectPolicy:
    """Tracks connection state and computes reconnect delays."""

    def __init__(self, base_delay: float = 1.0, max_delay: float = 30.0):
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.state = ConnectionState.DISCONNECTED
        self.retry_count = 0

    @property
    def is_closed(self) -> bool:
        return self.state == ConnectionState.CLOSED

    def delay_for(self, retry_count: int) -> float:
        """Backoff delay in seconds for a given retry count."""
        return min(self.max_delay, (2 ** retry_count) * self.base_delay)

    def _transition(self, allowed: tuple[ConnectionState, ...], target: ConnectionState) -> bool:
        if self.state == ConnectionState.CLOSED:
            return False
        if self.state not in allowed:
            raise InvalidTransition(f"{self.state.value} -> {target.value}")
        logger.debug("Connection state %s -> %s", self.state.value, target.value)
        self.state = target
        return True

    def on_connecting(self) -> bool:
        return self._transition(
            (ConnectionState.DISCONNECTED, ConnectionState.RECONNECTING),
            ConnectionState.CONNECTING,
        )

    def on_connected(self) -> bool:
        if self._transition((ConnectionState.CONNECTING,), ConnectionState.CONNECTED):
            self.retry_count = 0
            return True
        return False

    def on_connection_lost(self) -> float | None:
        """Record a failure or unexpected closure.

        Returns:
            Seconds to wait before the next attempt, or None once closed
        """
        if not self._transition(
            (ConnectionState.CONNECTING, ConnectionState.CONNECTED),
            ConnectionState.RECONNECTING,
        ):
            return None
        delay = self.delay_for(self.retry_count)
        self.retry_count += 1
        return delay

    def close(self) -> None:
        self.state = ConnectionState.CLOSED
