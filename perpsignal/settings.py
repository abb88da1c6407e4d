"""Process settings and YAML configuration loading.

Environment (``PERPSIGNAL_*`` or ``.env``) names where the YAML files live;
the YAML files hold the engine configuration and strategy definitions:

    # perpsignal.yaml
    indicators:
      rsi_period: 14
      ema_extra_periods: [12, 26, 200]
    weights: {momentum: 0.25, trend: 0.30, volatility: 0.15, volume: 0.15, perp: 0.15}
    risk: {sl_atr_mult: 1.2, tp_atr_mult: 2.0}

    # strategies.yaml
    strategies:
      - name: rsi_bounce
        symbol: BTCUSDT
        method: Sum
        thresholds: {long_min: 1, short_max: -1}
        rule: {type: Condition, indicator: Rsi, comparison: SignalState, signal_state: Oversold}
"""

import logging
from functools import lru_cache
from pathlib import Path

import yaml
from dotenv import load_dotenv
from pydantic import ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from perpsignal.engine.rules import validate_strategy
from perpsignal.errors import InvalidStrategyConfiguration
from perpsignal.models.config import EngineConfig
from perpsignal.models.strategy import Strategy

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Process settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="PERPSIGNAL_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    config_path: Path = Path("perpsignal.yaml")
    strategies_path: Path = Path("strategies.yaml")
    log_level: str = "INFO"
    max_workers: int | None = None


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def _read_yaml(path: Path) -> dict:
    load_dotenv(path.parent / ".env", override=False)
    with open(path) as f:
        raw = yaml.safe_load(f) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"{path}: expected a mapping at the top level")
    return raw


def load_engine_config(path: Path | None = None) -> EngineConfig:
    """Load the engine configuration from YAML.

    Falls back to defaults if the file doesn't exist.

    Raises:
        pydantic.ValidationError: If a value is out of range or inconsistent.
    """
    config_path = path or get_settings().config_path
    if not config_path.exists():
        logger.info("No engine config found at %s, using defaults", config_path)
        return EngineConfig()

    config = EngineConfig(**_read_yaml(config_path))
    logger.info(
        "Loaded engine config from %s: weights total %.2f, SL/TP x%.2f/x%.2f",
        config_path,
        config.weights.total,
        config.risk.sl_atr_mult,
        config.risk.tp_atr_mult,
    )
    return config


def parse_strategy(raw: dict, source: str = "strategy") -> Strategy:
    """Parse and validate one strategy definition.

    Raises:
        InvalidStrategyConfiguration: If the definition does not parse or fails
            validation.
    """
    try:
        strategy = Strategy.model_validate(raw)
    except ValidationError as e:
        raise InvalidStrategyConfiguration(f"{source}: {e}") from e
    return validate_strategy(strategy)


def load_strategies(path: Path | None = None) -> list[Strategy]:
    """Load every strategy in a YAML file (``strategies:`` list).

    Returns an empty list if the file doesn't exist.
    """
    strategies_path = path or get_settings().strategies_path
    if not strategies_path.exists():
        logger.info("No strategy file found at %s", strategies_path)
        return []

    entries = _read_yaml(strategies_path).get("strategies") or []
    strategies = [
        parse_strategy(entry, f"{strategies_path}[{i}]") for i, entry in enumerate(entries)
    ]
    logger.info(
        "Loaded %d strategies from %s: %s",
        len(strategies),
        strategies_path,
        ", ".join(s.name for s in strategies) or "(none)",
    )
    return strategies
