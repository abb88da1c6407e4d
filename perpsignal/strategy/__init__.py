"""Strategy storage and built-in presets."""

from perpsignal.strategy.registry import (
    StrategyRegistry,
    StrategyVersion,
    create_preset,
    list_presets,
    register_preset,
)
from perpsignal.strategy import presets  # noqa: F401  registers built-in presets

__all__ = [
    "StrategyRegistry",
    "StrategyVersion",
    "create_preset",
    "list_presets",
    "register_preset",
]
