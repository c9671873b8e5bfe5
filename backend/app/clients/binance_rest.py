"""Binance REST API client for fetching historical bars."""

import asyncio
from typing import Any, Sequence

import httpx

from core.models import Bar, timestamp_ms_to_datetime

MAX_KLINE_LIMIT = 1000


class RateLimiter:
    """Simple rate limiter for API calls."""

    def __init__(self, calls_per_minute: int = 1200):
        self.calls_per_minute = calls_per_minute
        self.interval = 60.0 / calls_per_minute
        self.last_call = 0.0
        self._lock = asyncio.Lock()

    async def acquire(self) -> None:
        """Wait if necessary to respect rate limit."""
        async with self._lock:
            loop = asyncio.get_running_loop()
            wait_time = self.last_call + self.interval - loop.time()
            if wait_time > 0:
                await asyncio.sleep(wait_time)
            self.last_call = loop.time()


def parse_kline_row(row: Sequence[Any]) -> Bar:
    """Convert one kline array ``[openTime, open, high, low, close, volume, ...]``.

    Prices arrive as numeric strings; only indices 0-5 are consumed.
    """
    return Bar(
        open_time=timestamp_ms_to_datetime(int(row[0])),
        open=float(row[1]),
        high=float(row[2]),
        low=float(row[3]),
        close=float(row[4]),
        volume=float(row[5]),
    )


class BinanceRestClient:
    """Binance spot REST API client."""

    def __init__(
        self,
        base_url: str = "https://api.binance.com/api/v3",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url
        self.timeout = timeout
        self.rate_limiter = RateLimiter()
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def _request(
        self, method: str, endpoint: str, params: dict[str, Any] | None = None
    ) -> Any:
        """Make an API request with rate limiting."""
        await self.rate_limiter.acquire()
        client = await self._get_client()
        response = await client.request(method, endpoint, params=params)
        response.raise_for_status()
        return response.json()

    async def get_klines(
        self,
        symbol: str,
        interval: str,
        limit: int = 500,
    ) -> list[Bar]:
        """
        Fetch the most recent bars for a symbol.

        Args:
            symbol: Trading pair (e.g., "BTCUSDT")
            interval: Bar interval (e.g., "1h", "4h")
            limit: Number of bars (max 1000)

        Returns:
            Bars in ascending open-time order; the last one is usually
            still forming

        Raises:
            httpx.HTTPStatusError: on a non-2xx response
        """
        params: dict[str, Any] = {
            "symbol": symbol,
            "interval": interval,
            "limit": min(limit, MAX_KLINE_LIMIT),
        }
        data = await self._request("GET", "/klines", params)
        return [parse_kline_row(row) for row in data]
