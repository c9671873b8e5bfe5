"""Watch-list configuration loaded from watchlist.yaml.

Supports:
- Overriding the watched symbols from settings
- Overriding any evaluation rule constant under ``evaluator:``
- Backward compatible: no YAML file = settings symbols, default rules

Example:
    symbols: [BTCUSDT, ETHUSDT]
    evaluator:
      stop_hunt_threshold: 80
"""

import logging
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, field_validator

from app.config import normalise_symbols
from core.models import EvaluatorConfig

logger = logging.getLogger(__name__)


class WatchlistConfig(BaseModel):
    """Top-level watchlist.yaml configuration."""

    model_config = ConfigDict(extra="forbid")

    symbols: list[str] = []
    evaluator: EvaluatorConfig = EvaluatorConfig()

    @field_validator("symbols")
    @classmethod
    def _normalise_symbols(cls, value: list[str]) -> list[str]:
        return normalise_symbols(value)

    def resolve_symbols(self, default: list[str]) -> list[str]:
        """Symbols from the file, or normalised ``default`` when the file lists none."""
        return list(self.symbols) if self.symbols else normalise_symbols(default)


_DEFAULT_PATH = Path(__file__).parent.parent / "watchlist.yaml"


def load_watchlist(path: Path | str | None = None) -> WatchlistConfig:
    """Load watch-list config from YAML file.

    Falls back to defaults if the file doesn't exist. Invalid content raises
    ValueError (pydantic ValidationError).
    """
    config_path = Path(path) if path else _DEFAULT_PATH

    if not config_path.exists():
        logger.info("No watch-list file at %s, using settings defaults", config_path)
        return WatchlistConfig()

    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    if not isinstance(raw, dict):
        raise ValueError(f"{config_path} must contain a mapping, got {type(raw).__name__}")

    config = WatchlistConfig(**raw)
    logger.info(
        "Loaded watch-list config from %s: %d symbols",
        config_path,
        len(config.symbols),
    )
    return config
