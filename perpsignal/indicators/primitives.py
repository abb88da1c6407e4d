"""NumPy building blocks shared by the indicator families.

Every array function takes a 1-D sequence of floats and returns a float64
array of the same length, with NaN wherever the window is not yet full.
Inputs that start with a NaN run (e.g. a MACD line fed into its signal EMA)
are seeded from the first valid value.
"""

from typing import Sequence

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view

from perpsignal.errors import InsufficientHistory
from perpsignal.models.indicators import IndicatorId


def require_history(indicator: IndicatorId, available: int, required: int) -> None:
    """Raise ``InsufficientHistory`` unless ``available >= required``."""
    if available < required:
        raise InsufficientHistory(indicator.value, required, available)


def _as_array(values: Sequence[float] | np.ndarray) -> np.ndarray:
    return np.asarray(values, dtype=np.float64)


def _first_valid(arr: np.ndarray) -> int | None:
    valid = np.flatnonzero(~np.isnan(arr))
    return int(valid[0]) if len(valid) else None


def _recursive_average(values, period: int, alpha: float) -> np.ndarray:
    """SMA-seeded exponential recursion: r[i] = r[i-1] + alpha*(x[i] - r[i-1])."""
    arr = _as_array(values)
    result = np.full(len(arr), np.nan)

    start = _first_valid(arr)
    if start is None or len(arr) - start < period:
        return result

    seed = start + period - 1
    result[seed] = np.mean(arr[start : seed + 1])
    for i in range(seed + 1, len(arr)):
        result[i] = result[i - 1] + alpha * (arr[i] - result[i - 1])

    return result


def ema(values, period: int) -> np.ndarray:
    """Exponential moving average, seeded with the SMA of the first window."""
    return _recursive_average(values, period, 2.0 / (period + 1))


def wilder(values, period: int) -> np.ndarray:
    """Wilder's smoothing (RMA), used by RSI and ATR."""
    return _recursive_average(values, period, 1.0 / period)


def smooth(values, alpha: float) -> np.ndarray:
    """Exponential smoothing seeded with the first value (no warm-up)."""
    arr = _as_array(values)
    result = np.empty_like(arr)
    if len(arr) == 0:
        return result
    result[0] = arr[0]
    for i in range(1, len(arr)):
        result[i] = result[i - 1] + alpha * (arr[i] - result[i - 1])
    return result


def _rolling(values, period: int, reducer) -> np.ndarray:
    arr = _as_array(values)
    result = np.full(len(arr), np.nan)
    if len(arr) < period:
        return result
    result[period - 1 :] = reducer(sliding_window_view(arr, period), axis=1)
    return result


def sma(values, period: int) -> np.ndarray:
    """Simple moving average."""
    return _rolling(values, period, np.mean)


def rolling_std(values, period: int) -> np.ndarray:
    """Population standard deviation over a trailing window."""
    return _rolling(values, period, np.std)


def highest(values, period: int) -> np.ndarray:
    """Highest value over a trailing window."""
    return _rolling(values, period, np.max)


def lowest(values, period: int) -> np.ndarray:
    """Lowest value over a trailing window."""
    return _rolling(values, period, np.min)


def true_range(highs, lows, closes) -> np.ndarray:
    """True range; the first candle has no previous close and uses high - low."""
    h = _as_array(highs)
    l = _as_array(lows)
    c = _as_array(closes)

    tr = h - l
    if len(tr) > 1:
        prev_close = c[:-1]
        tr[1:] = np.maximum.reduce([
            h[1:] - l[1:],
            np.abs(h[1:] - prev_close),
            np.abs(l[1:] - prev_close),
        ])
    return tr


def atr(highs, lows, closes, period: int) -> np.ndarray:
    """Average True Range with Wilder smoothing."""
    return wilder(true_range(highs, lows, closes), period)


def last_valid(values: np.ndarray, count: int) -> np.ndarray:
    """The trailing ``count`` non-NaN values (fewer if not enough exist)."""
    valid = values[~np.isnan(values)]
    return valid[-count:]


def divergence(prices, oscillator, lookback: int) -> int:
    """Classic price/oscillator divergence at the last candle.

    The last price is compared with the extreme of the preceding ``lookback``
    candles. A new high with the oscillator below its reading at the prior high
    is bearish (-1); a new low with the oscillator above its reading at the
    prior low is bullish (+1). Returns 0 otherwise, including when the window
    is short or the oscillator is still warming up.
    """
    p = _as_array(prices)
    o = _as_array(oscillator)
    if len(p) < lookback + 1 or np.isnan(o[-1]):
        return 0

    window_p = p[-(lookback + 1) : -1]
    window_o = o[-(lookback + 1) : -1]
    valid = ~np.isnan(window_o)
    if valid.sum() < 2:
        return 0
    window_p = window_p[valid]
    window_o = window_o[valid]

    hi = int(np.argmax(window_p))
    if p[-1] > window_p[hi] and o[-1] < window_o[hi]:
        return -1

    lo = int(np.argmin(window_p))
    if p[-1] < window_p[lo] and o[-1] > window_o[lo]:
        return 1

    return 0
