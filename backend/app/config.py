"""Application configuration."""

from functools import lru_cache
from typing import Iterable

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_WATCHLIST = [
    "BTCUSDT", "ETHUSDT", "BNBUSDT", "SOLUSDT", "ADAUSDT", "DOGEUSDT", "XRPUSDT",
    "DOTUSDT", "LTCUSDT", "BCHUSDT", "LINKUSDT", "XLMUSDT", "ATOMUSDT", "FILUSDT",
    "TRXUSDT", "ETCUSDT", "AAVEUSDT", "UNIUSDT", "NEARUSDT", "AVAXUSDT",
]


def normalise_symbols(symbols: Iterable[str]) -> list[str]:
    """Upper-case and strip symbols, dropping duplicates in order.

    Stream events carry upper-case symbols, so every watch-list source goes
    through here.
    """
    seen: dict[str, None] = {}
    for symbol in symbols:
        symbol = symbol.strip().upper()
        if not symbol:
            raise ValueError("symbols must not contain empty entries")
        seen.setdefault(symbol, None)
    return list(seen)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="SCANNER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Watch-list (overridable by the YAML watch-list file)
    symbols: list[str] = DEFAULT_WATCHLIST
    watchlist_file: str = ""

    # Timeframes: primary drives evaluation, reference only sources RSI
    primary_timeframe: str = "1h"
    reference_timeframe: str = "4h"
    history_limit: int = 500

    # Binance spot endpoints
    rest_base_url: str = "https://api.binance.com/api/v3"
    ws_base_url: str = "wss://stream.binance.com:9443/stream"

    # Streaming
    stream_reference_timeframe: bool = True
    reconnect_base_delay: float = 1.0
    reconnect_max_delay: float = 30.0

    # Safety-net re-evaluation period
    scan_interval_seconds: float = 3600.0

    # Concurrent REST requests while seeding history
    bootstrap_concurrency: int = 8

    log_level: str = "INFO"

    @field_validator("symbols")
    @classmethod
    def _normalise_symbols(cls, value: list[str]) -> list[str]:
        return normalise_symbols(value)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
