"""Strategy storage and built-in presets.

Usage:
    @register_preset("my_preset")
    def my_preset(symbol: str) -> Strategy:
        ...

    strategy = create_preset("my_preset", symbol="BTCUSDT")
    presets = list_presets()

    registry = StrategyRegistry()
    version = registry.register(strategy)
    current = registry.get(strategy.name)
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Callable, Mapping

from perpsignal.engine.rules import validate_strategy
from perpsignal.models.strategy import Strategy

logger = logging.getLogger(__name__)

# Global preset registry: preset_name -> factory(symbol, **kwargs) -> Strategy
_PRESETS: dict[str, Callable[..., Strategy]] = {}


def register_preset(name: str):
    """Decorator to register a strategy factory under a given name.

    Args:
        name: Unique preset name (e.g., 'trend_following').

    Returns:
        Decorator that registers the factory and returns it unchanged.

    Raises:
        ValueError: If a preset with the same name is already registered.
    """

    def decorator(factory):
        if name in _PRESETS:
            raise ValueError(
                f"Preset '{name}' is already registered by {_PRESETS[name].__name__}"
            )
        _PRESETS[name] = factory
        logger.debug("Registered preset: %s -> %s", name, factory.__name__)
        return factory

    return decorator


def create_preset(name: str, symbol: str, **kwargs: Any) -> Strategy:
    """Build and validate a preset strategy for ``symbol``.

    Raises:
        KeyError: If no preset is registered under the given name.
        InvalidStrategyConfiguration: If the factory produced a malformed strategy.
    """
    factory = _PRESETS.get(name)
    if factory is None:
        available = ", ".join(sorted(_PRESETS.keys())) or "(none)"
        raise KeyError(f"Unknown preset '{name}'. Available: {available}")
    return validate_strategy(factory(symbol, **kwargs))


def list_presets() -> list[str]:
    """Return a sorted list of registered preset names."""
    return sorted(_PRESETS.keys())


@dataclass(frozen=True, slots=True)
class StrategyVersion:
    strategy: Strategy
    version: int


class StrategyRegistry:
    """Versioned, copy-on-write store of validated strategies.

    Writers build a new mapping and swap it in under a lock; readers take the
    current mapping without locking. A strategy handed to an in-flight
    evaluation is never mutated by a later ``register``.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._entries: Mapping[str, StrategyVersion] = MappingProxyType({})

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def register(self, strategy: Strategy) -> int:
        """Validate and store ``strategy`` under its name; returns the new version.

        Raises:
            InvalidStrategyConfiguration: If the strategy is malformed (the
                previous version, if any, stays current).
        """
        validate_strategy(strategy)
        with self._lock:
            previous = self._entries.get(strategy.name)
            version = previous.version + 1 if previous else 1
            entries = dict(self._entries)
            entries[strategy.name] = StrategyVersion(strategy, version)
            self._entries = MappingProxyType(entries)

        logger.info("Registered strategy %s v%d for %s", strategy.name, version, strategy.symbol)
        return version

    def get(self, name: str) -> Strategy:
        """Current version of a strategy.

        Raises:
            KeyError: If no strategy is registered under the given name.
        """
        entry = self._entries.get(name)
        if entry is None:
            available = ", ".join(sorted(self._entries)) or "(none)"
            raise KeyError(f"Unknown strategy '{name}'. Available: {available}")
        return entry.strategy

    def version(self, name: str) -> int:
        entry = self._entries.get(name)
        return entry.version if entry else 0

    def names(self) -> list[str]:
        return sorted(self._entries)

    def snapshot(self) -> Mapping[str, Strategy]:
        """Consistent read-only view of every current strategy."""
        entries = self._entries
        return MappingProxyType({name: e.strategy for name, e in entries.items()})

    def remove(self, name: str) -> None:
        with self._lock:
            if name not in self._entries:
                raise KeyError(f"Unknown strategy '{name}'")
            entries = dict(self._entries)
            del entries[name]
            self._entries = MappingProxyType(entries)
        logger.info("Removed strategy %s", name)
