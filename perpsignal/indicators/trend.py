"""Trend family: EMA crossover and SuperTrend."""

import numpy as np

from perpsignal.indicators.primitives import atr, ema, require_history
from perpsignal.models.candle import CandleSeries
from perpsignal.models.config import IndicatorParams
from perpsignal.models.indicators import EmaSignal, IndicatorId, IndicatorValue, SuperTrendSignal


# =============================================================================
# EMA crossover
# =============================================================================

def ema_warmup(params: IndicatorParams) -> int:
    return params.ema_slow


def _ema_state(price: float, fast: np.ndarray, slow: np.ndarray) -> EmaSignal:
    cur_fast, cur_slow = fast[-1], slow[-1]
    if len(fast) < 2 or np.isnan(slow[-2]):
        return EmaSignal.NEUTRAL
    prev_fast, prev_slow = fast[-2], slow[-2]

    if prev_fast <= prev_slow and cur_fast > cur_slow:
        return EmaSignal.BULLISH_CROSS
    if prev_fast >= prev_slow and cur_fast < cur_slow:
        return EmaSignal.BEARISH_CROSS

    rising = cur_fast > prev_fast
    falling = cur_fast < prev_fast
    if price > cur_fast > cur_slow and rising:
        return EmaSignal.STRONG_UPTREND
    if price < cur_fast < cur_slow and falling:
        return EmaSignal.STRONG_DOWNTREND
    return EmaSignal.NEUTRAL


def compute_ema(series: CandleSeries, params: IndicatorParams) -> IndicatorValue:
    """Fast/slow EMA pair; ``spread`` is (fast - slow) as a percent of slow.

    Extra periods from ``ema_extra_periods`` are reported as ``ema_<period>``
    once the window covers them.
    """
    require_history(IndicatorId.EMA, len(series), ema_warmup(params))

    closes = series.closes
    fast = ema(closes, params.ema_fast)
    slow = ema(closes, params.ema_slow)
    cur_fast, cur_slow = float(fast[-1]), float(slow[-1])

    values = {
        "fast": cur_fast,
        "slow": cur_slow,
        "spread": (cur_fast - cur_slow) / cur_slow * 100,
    }
    for period in params.ema_extra_periods:
        if len(closes) >= period:
            values[f"ema_{period}"] = float(ema(closes, period)[-1])

    return IndicatorValue(
        IndicatorId.EMA, values, _ema_state(float(closes[-1]), fast, slow)
    )


# =============================================================================
# SuperTrend
# =============================================================================

def supertrend_warmup(params: IndicatorParams) -> int:
    return params.supertrend_period


def supertrend_lines(highs, lows, closes, period: int, multiplier: float):
    """Return (final_upper, final_lower, trend) arrays; trend is +1 / -1.

    Bands only tighten while price stays on their side; the trend flips when
    the close crosses the active band.
    """
    h = np.asarray(highs, dtype=np.float64)
    l = np.asarray(lows, dtype=np.float64)
    c = np.asarray(closes, dtype=np.float64)
    n = len(c)

    atr_values = atr(h, l, c, period)
    hl2 = (h + l) / 2
    basic_upper = hl2 + multiplier * atr_values
    basic_lower = hl2 - multiplier * atr_values

    upper = np.full(n, np.nan)
    lower = np.full(n, np.nan)
    trend = np.full(n, np.nan)

    start = period - 1
    if n <= start:
        return upper, lower, trend

    upper[start] = basic_upper[start]
    lower[start] = basic_lower[start]
    trend[start] = 1.0 if c[start] >= lower[start] else -1.0

    for i in range(start + 1, n):
        if basic_upper[i] < upper[i - 1] or c[i - 1] > upper[i - 1]:
            upper[i] = basic_upper[i]
        else:
            upper[i] = upper[i - 1]

        if basic_lower[i] > lower[i - 1] or c[i - 1] < lower[i - 1]:
            lower[i] = basic_lower[i]
        else:
            lower[i] = lower[i - 1]

        if trend[i - 1] < 0 and c[i] > upper[i]:
            trend[i] = 1.0
        elif trend[i - 1] > 0 and c[i] < lower[i]:
            trend[i] = -1.0
        else:
            trend[i] = trend[i - 1]

    return upper, lower, trend


def compute_supertrend(series: CandleSeries, params: IndicatorParams) -> IndicatorValue:
    require_history(IndicatorId.SUPERTREND, len(series), supertrend_warmup(params))

    upper, lower, trend = supertrend_lines(
        series.highs,
        series.lows,
        series.closes,
        params.supertrend_period,
        params.supertrend_multiplier,
    )
    current = trend[-1]
    previous = trend[-2] if len(trend) >= 2 else np.nan

    if current > 0:
        state = SuperTrendSignal.BULLISH_FLIP if previous < 0 else SuperTrendSignal.BULLISH
        value = lower[-1]
    else:
        state = SuperTrendSignal.BEARISH_FLIP if previous > 0 else SuperTrendSignal.BEARISH
        value = upper[-1]

    return IndicatorValue(
        IndicatorId.SUPERTREND,
        {
            "value": float(value),
            "upper_band": float(upper[-1]),
            "lower_band": float(lower[-1]),
            "trend": float(current),
        },
        state,
    )
