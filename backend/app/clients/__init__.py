"""Exchange clients."""

from app.clients.binance_rest import BinanceRestClient, RateLimiter, parse_kline_row
from app.clients.binance_ws_kline import (
    BinanceKlineStream,
    KlineEvent,
    parse_kline_message,
    stream_name,
)
from app.clients.reconnect import ConnectionState, InvalidTransition, ReconnectPolicy

__all__ = [
    "BinanceRestClient",
    "RateLimiter",
    "parse_kline_row",
    "BinanceKlineStream",
    "KlineEvent",
    "parse_kline_message",
    "stream_name",
    "ConnectionState",
    "InvalidTransition",
    "ReconnectPolicy",
]
