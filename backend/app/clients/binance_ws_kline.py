"""Binance WebSocket client for real-time bar updates using picows.

One combined-stream connection carries every watched ``<symbol>@kline_<tf>``
stream. Decoded events are handed to a single callback on the event loop;
reconnection follows ReconnectPolicy.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

import orjson
from picows import ws_connect, WSFrame, WSTransport, WSListener, WSMsgType, WSCloseCode

from app.clients.reconnect import ConnectionState, ReconnectPolicy
from core.models import Bar, timestamp_ms_to_datetime

logger = logging.getLogger(__name__)

# Binance rejects oversized SUBSCRIBE requests, so streams are sent in chunks
SUBSCRIBE_CHUNK = 200


@dataclass(slots=True, frozen=True)
class KlineEvent:
    """One decoded bar update."""

    symbol: str
    timeframe: str | None  # None when the payload carries no interval
    bar: Bar
    is_final: bool


# Type alias for event callback (called on the event loop thread)
KlineEventCallback = Callable[[KlineEvent], None]

Connector = Callable[..., Awaitable[Any]]


def stream_name(symbol: str, timeframe: str) -> str:
    return f"{symbol.lower()}@kline_{timeframe}"


def parse_kline_message(message: str | bytes) -> KlineEvent | None:
    """Decode a bare or ``{stream, data}``-wrapped kline event.

    Returns None for subscription acks, non-kline events and malformed
    payloads; they are dropped without error.
    """
    try:
        data = orjson.loads(message)
    except orjson.JSONDecodeError:
        logger.debug("Dropped non-JSON message: %.80r", message)
        return None

    if not isinstance(data, dict):
        return None
    if "stream" in data and isinstance(data.get("data"), dict):
        data = data["data"]

    if data.get("e") != "kline":
        return None

    try:
        k = data["k"]
        bar = Bar(
            open_time=timestamp_ms_to_datetime(int(k["t"])),
            open=float(k["o"]),
            high=float(k["h"]),
            low=float(k["l"]),
            close=float(k["c"]),
            volume=float(k["v"]),
        )
        return KlineEvent(
            symbol=str(data["s"]).upper(),
            timeframe=k.get("i"),
            bar=bar,
            is_final=bool(k["x"]),
        )
    except (KeyError, TypeError, ValueError) as e:
        logger.debug("Dropped malformed kline payload: %s", e)
        return None


class BinanceKlineListener(WSListener):
    """picows listener for the combined kline stream."""

    def __init__(
        self,
        streams: list[str],
        on_event: KlineEventCallback,
        on_connected: Callable[[], None],
        on_disconnected: Callable[[], None],
        loop: asyncio.AbstractEventLoop,
    ):
        self._streams = streams
        self._on_event = on_event
        self._on_connected = on_connected
        self._on_disconnected = on_disconnected
        self._transport: WSTransport | None = None
        # Store loop at init time; picows callbacks may run from other threads
        self._loop = loop

    def on_ws_connected(self, transport: WSTransport):
        """Called when WebSocket connection is established."""
        self._transport = transport
        logger.info("picows: kline WebSocket connected")

        if self._streams:
            self.send_subscribe(self._streams)

        self._loop.call_soon_threadsafe(self._on_connected)

    def on_ws_disconnected(self, transport: WSTransport):
        """Called when WebSocket is disconnected."""
        logger.info("picows: kline WebSocket disconnected")
        self._transport = None
        self._loop.call_soon_threadsafe(self._on_disconnected)

    def on_ws_frame(self, transport: WSTransport, frame: WSFrame):
        """Called when a new frame is received."""
        if frame.msg_type == WSMsgType.TEXT:
            event = parse_kline_message(frame.get_payload_as_utf8_text())
            if event is not None:
                self._loop.call_soon_threadsafe(self._on_event, event)
        elif frame.msg_type == WSMsgType.PING:
            transport.send_pong(frame.get_payload_as_bytes())

    def send_subscribe(self, streams: list[str]) -> None:
        """Send subscription requests in chunks."""
        if not self._transport:
            return

        for start in range(0, len(streams), SUBSCRIBE_CHUNK):
            chunk = streams[start:start + SUBSCRIBE_CHUNK]
            msg = {
                "method": "SUBSCRIBE",
                "params": chunk,
                "id": int(time.time() * 1000) + start,
            }
            self._transport.send(WSMsgType.TEXT, orjson.dumps(msg))
        logger.info("Subscribed to %d kline streams", len(streams))

    def disconnect(self) -> None:
        """Disconnect the WebSocket."""
        if self._transport:
            self._transport.send_close(WSCloseCode.OK)
            self._transport.disconnect()


class BinanceKlineStream:
    """Multiplexed kline subscription with reconnect-with-backoff.

    Usage:
        stream = BinanceKlineStream(url, on_event=handle)
        stream.add_stream("BTCUSDT", "1h")
        await stream.start()
        ...
        await stream.stop()
    """

    def __init__(
        self,
        ws_url: str,
        on_event: KlineEventCallback,
        policy: ReconnectPolicy | None = None,
        connector: Connector = ws_connect,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.ws_url = ws_url
        self.policy = policy or ReconnectPolicy()
        self._on_event = on_event
        self._connect = connector
        self._sleep = sleep
        self._streams: list[str] = []
        self._task: asyncio.Task | None = None
        self._listener: BinanceKlineListener | None = None
        self._disconnected = asyncio.Event()

    @property
    def state(self) -> ConnectionState:
        return self.policy.state

    @property
    def streams(self) -> list[str]:
        return list(self._streams)

    def add_stream(self, symbol: str, timeframe: str) -> None:
        """Add a symbol/timeframe stream, subscribing at once if connected."""
        name = stream_name(symbol, timeframe)
        if name in self._streams:
            return
        self._streams.append(name)
        if self._listener and self.state == ConnectionState.CONNECTED:
            self._listener.send_subscribe([name])

    async def start(self) -> None:
        """Start the connection loop in the background."""
        if self._task is not None:
            return
        self._task = asyncio.create_task(self._run(), name="kline-stream")

    async def stop(self) -> None:
        """Close the connection and cancel any pending reconnect."""
        self.policy.close()
        if self._listener:
            self._listener.disconnect()
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Kline stream closed")

    def _handle_connected(self) -> None:
        self.policy.on_connected()

    def _handle_disconnected(self) -> None:
        self._disconnected.set()

    async def _run(self) -> None:
        """Main loop: connect, wait for disconnection, back off, repeat."""
        while not self.policy.is_closed:
            if not self.policy.on_connecting():
                break
            try:
                await self._connect_and_wait()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Kline stream error: {e}")

            delay = self.policy.on_connection_lost()
            if delay is None:
                break
            logger.info(
                f"Reconnecting kline stream in {delay:.0f}s "
                f"(retry {self.policy.retry_count})"
            )
            await self._sleep(delay)

    async def _connect_and_wait(self) -> None:
        """Connect to the WebSocket and wait for disconnection."""
        self._disconnected.clear()
        loop = asyncio.get_running_loop()

        def listener_factory():
            self._listener = BinanceKlineListener(
                streams=list(self._streams),
                on_event=self._on_event,
                on_connected=self._handle_connected,
                on_disconnected=self._handle_disconnected,
                loop=loop,
            )
            return self._listener

        logger.info(f"Connecting to {self.ws_url}")
        await self._connect(
            listener_factory,
            self.ws_url,
            enable_auto_ping=True,
            auto_ping_idle_timeout=30,
            auto_ping_reply_timeout=10,
        )

        await self._disconnected.wait()
