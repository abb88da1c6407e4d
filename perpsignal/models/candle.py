"""Candle (OHLCV bar) models and the validated candle sequence."""

from __future__ import annotations

import math
from datetime import datetime, timedelta
from typing import Iterator, Sequence, overload

import numpy as np
from pydantic import BaseModel, ConfigDict

from perpsignal.errors import MalformedCandleSequence


class Candle(BaseModel):
    """OHLCV bar for one fixed interval.

    ``funding_rate`` and ``open_interest`` are optional perpetual-market metrics
    sampled at the candle close.
    """

    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    open: float
    high: float
    low: float
    close: float
    volume: float
    funding_rate: float | None = None
    open_interest: float | None = None

    @property
    def is_bullish(self) -> bool:
        """Check if this is a bullish (green) candle."""
        return self.close > self.open

    @property
    def is_bearish(self) -> bool:
        """Check if this is a bearish (red) candle."""
        return self.close < self.open

    @property
    def body_size(self) -> float:
        """Get the absolute size of the candle body."""
        return abs(self.close - self.open)

    @property
    def range_size(self) -> float:
        """Get the full range (high - low) of the candle."""
        return self.high - self.low

    @property
    def typical_price(self) -> float:
        """Get the typical price (high + low + close) / 3."""
        return (self.high + self.low + self.close) / 3


def _check_candle(index: int, candle: Candle) -> None:
    if candle.timestamp.utcoffset() is None:
        raise MalformedCandleSequence("timestamp must be timezone-aware", index)
    prices = (candle.open, candle.high, candle.low, candle.close)
    if not all(math.isfinite(p) for p in prices) or not math.isfinite(candle.volume):
        raise MalformedCandleSequence("non-finite price or volume", index)
    if min(prices) <= 0:
        raise MalformedCandleSequence("prices must be positive", index)
    if candle.volume < 0:
        raise MalformedCandleSequence("volume must be non-negative", index)
    if candle.high < candle.low:
        raise MalformedCandleSequence(
            f"high {candle.high} below low {candle.low}", index
        )
    if candle.funding_rate is not None and not math.isfinite(candle.funding_rate):
        raise MalformedCandleSequence("non-finite funding rate", index)
    if candle.open_interest is not None and (
        not math.isfinite(candle.open_interest) or candle.open_interest < 0
    ):
        raise MalformedCandleSequence("open interest must be a non-negative number", index)


def _readonly(values: list[float]) -> np.ndarray:
    arr = np.asarray(values, dtype=np.float64)
    arr.setflags(write=False)
    return arr


class CandleSeries:
    """Immutable, validated, time-ordered sequence of candles.

    Construction rejects the whole input (``MalformedCandleSequence``) on the
    first bad candle, so every consumer downstream can assume clean data.
    Column arrays are read-only float64 numpy views built once per series.
    """

    __slots__ = (
        "_candles",
        "timestamps",
        "opens",
        "highs",
        "lows",
        "closes",
        "volumes",
        "funding_rates",
        "open_interests",
    )

    def __init__(self, candles: Sequence[Candle]):
        candles = tuple(candles)
        if not candles:
            raise MalformedCandleSequence("candle sequence is empty")

        prev_ts: datetime | None = None
        for i, candle in enumerate(candles):
            _check_candle(i, candle)
            if prev_ts is not None and candle.timestamp <= prev_ts:
                raise MalformedCandleSequence(
                    f"timestamp {candle.timestamp.isoformat()} is not after "
                    f"{prev_ts.isoformat()}",
                    i,
                )
            prev_ts = candle.timestamp

        self._candles = candles
        self.timestamps = _readonly([c.timestamp.timestamp() for c in candles])
        self.opens = _readonly([c.open for c in candles])
        self.highs = _readonly([c.high for c in candles])
        self.lows = _readonly([c.low for c in candles])
        self.closes = _readonly([c.close for c in candles])
        self.volumes = _readonly([c.volume for c in candles])
        self.funding_rates = _readonly(
            [c.funding_rate if c.funding_rate is not None else np.nan for c in candles]
        )
        self.open_interests = _readonly(
            [c.open_interest if c.open_interest is not None else np.nan for c in candles]
        )

    def __len__(self) -> int:
        return len(self._candles)

    def __iter__(self) -> Iterator[Candle]:
        return iter(self._candles)

    @overload
    def __getitem__(self, index: int) -> Candle: ...

    @overload
    def __getitem__(self, index: slice) -> "CandleSeries": ...

    def __getitem__(self, index):
        if isinstance(index, slice):
            return CandleSeries(self._candles[index])
        return self._candles[index]

    @property
    def candles(self) -> tuple[Candle, ...]:
        return self._candles

    @property
    def last(self) -> Candle:
        return self._candles[-1]

    @property
    def first(self) -> Candle:
        return self._candles[0]

    @property
    def interval(self) -> timedelta | None:
        """Nominal bar interval (median spacing), None for a single candle."""
        if len(self._candles) < 2:
            return None
        seconds = np.diff(self.timestamps)
        return timedelta(seconds=float(np.median(seconds)))

    def window(self, length: int) -> "CandleSeries":
        """Return the most recent ``length`` candles."""
        if length <= 0:
            raise ValueError("window length must be positive")
        return CandleSeries(self._candles[-length:])

    def slice(self, start: int, stop: int | None = None) -> "CandleSeries":
        return CandleSeries(self._candles[start:stop])

    def prefix(self, length: int) -> "CandleSeries":
        """Return the first ``length`` candles (history as of candle ``length-1``)."""
        if length <= 0:
            raise ValueError("prefix length must be positive")
        return CandleSeries(self._candles[:length])

    def upto(self, timestamp: datetime) -> "CandleSeries":
        """Return all candles at or before ``timestamp`` (an evaluation instant)."""
        candles = tuple(c for c in self._candles if c.timestamp <= timestamp)
        if not candles:
            raise MalformedCandleSequence(
                f"no candles at or before {timestamp.isoformat()}"
            )
        return CandleSeries(candles)

    def has_perp_metrics(self) -> bool:
        return bool(
            np.any(~np.isnan(self.funding_rates)) or np.any(~np.isnan(self.open_interests))
        )


def as_series(candles: "CandleSeries | Sequence[Candle]") -> CandleSeries:
    """Accept either a raw candle sequence or an already validated series."""
    if isinstance(candles, CandleSeries):
        return candles
    return CandleSeries(candles)
