"""Exception taxonomy for the signal core.

Only two errors ever reach a caller of an evaluation:

- ``MalformedCandleSequence``: the candle input is unusable, nothing is computed.
- ``InvalidStrategyConfiguration``: the strategy failed validation and is refused.

``InsufficientHistory`` is raised by indicator code and recovered locally by the
snapshot builder, which simply leaves the indicator out of the snapshot.
"""

from __future__ import annotations


class PerpsignalError(Exception):
    """Base class for all errors raised by perpsignal."""


class InsufficientHistory(PerpsignalError):
    """An indicator needs a longer candle window than was supplied."""

    def __init__(self, indicator: str, required: int, available: int):
        self.indicator = indicator
        self.required = required
        self.available = available
        super().__init__(
            f"{indicator} needs {required} candles, only {available} available"
        )


class InvalidStrategyConfiguration(PerpsignalError):
    """A strategy's rule tree or thresholds are malformed."""

    def __init__(self, message: str, path: str | None = None):
        self.path = path
        if path:
            message = f"{message} (at {path})"
        super().__init__(message)


class MalformedCandleSequence(PerpsignalError):
    """The candle input violates ordering or value constraints."""

    def __init__(self, message: str, index: int | None = None):
        self.index = index
        if index is not None:
            message = f"candle[{index}]: {message}"
        super().__init__(message)
