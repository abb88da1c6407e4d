"""Volatility family: ATR regime and Bollinger Bands."""

import numpy as np

from perpsignal.indicators.primitives import atr, last_valid, require_history, rolling_std, sma
from perpsignal.models.candle import CandleSeries
from perpsignal.models.config import IndicatorParams
from perpsignal.models.indicators import (
    BollingerSignal,
    IndicatorId,
    IndicatorValue,
    VolatilityRegime,
)


# =============================================================================
# ATR
# =============================================================================

def atr_warmup(params: IndicatorParams) -> int:
    return params.atr_period


def classify_regime(ratio: float) -> VolatilityRegime:
    """Regime from ATR / mean(recent ATR)."""
    if ratio > 1.5:
        return VolatilityRegime.HIGH
    if ratio > 1.0:
        return VolatilityRegime.ELEVATED
    if ratio > 0.7:
        return VolatilityRegime.NORMAL
    return VolatilityRegime.LOW


def compute_atr(series: CandleSeries, params: IndicatorParams) -> IndicatorValue:
    """ATR, ATR as a fraction of price, and the volatility regime.

    The regime compares the current ATR with the mean of the last
    ``atr_regime_lookback`` ATR readings, current included.
    """
    require_history(IndicatorId.ATR, len(series), atr_warmup(params))

    atr_values = atr(series.highs, series.lows, series.closes, params.atr_period)
    current = float(atr_values[-1])
    price = float(series.closes[-1])

    recent_mean = float(np.mean(last_valid(atr_values, params.atr_regime_lookback)))
    if recent_mean > 0:
        regime = classify_regime(current / recent_mean)
    else:
        regime = VolatilityRegime.NORMAL

    return IndicatorValue(
        IndicatorId.ATR,
        {"atr": current, "atr_pct": current / price},
        regime,
    )


# =============================================================================
# Bollinger Bands
# =============================================================================

def bollinger_warmup(params: IndicatorParams) -> int:
    return params.bollinger_period


def compute_bollinger(series: CandleSeries, params: IndicatorParams) -> IndicatorValue:
    """Bollinger Bands with squeeze, breakout and band-walk detection.

    Squeeze is checked first: bandwidth strictly below the configured
    percentile of its own recent history.
    """
    require_history(IndicatorId.BOLLINGER, len(series), bollinger_warmup(params))

    closes = series.closes
    middle = sma(closes, params.bollinger_period)
    std = rolling_std(closes, params.bollinger_period)
    upper = middle + params.bollinger_std * std
    lower = middle - params.bollinger_std * std
    bandwidth = (upper - lower) / middle

    close = float(closes[-1])
    mid, sd = float(middle[-1]), float(std[-1])
    up, low, bw = float(upper[-1]), float(lower[-1]), float(bandwidth[-1])
    percent_b = (close - low) / (up - low) if up > low else 0.5

    values = {
        "upper": up,
        "middle": mid,
        "lower": low,
        "bandwidth": bw,
        "percent_b": percent_b,
    }

    if sd == 0:
        return IndicatorValue(IndicatorId.BOLLINGER, values, BollingerSignal.NEUTRAL)

    history = last_valid(bandwidth, params.bollinger_squeeze_lookback)
    squeeze = (
        len(history) >= 2
        and bw < float(np.percentile(history, params.bollinger_squeeze_percentile))
    )
    prev_bw = bandwidth[-2] if len(bandwidth) >= 2 else np.nan

    if squeeze:
        state = BollingerSignal.SQUEEZE
    elif close > up:
        state = BollingerSignal.UPPER_BREAKOUT
    elif close < low:
        state = BollingerSignal.LOWER_BREAKOUT
    elif not np.isnan(prev_bw) and bw < prev_bw and abs(close - mid) < 0.5 * sd:
        state = BollingerSignal.MEAN_REVERSION
    elif close >= up - 0.2 * sd or close <= low + 0.2 * sd:
        state = BollingerSignal.WALKING_BANDS
    else:
        state = BollingerSignal.NEUTRAL

    return IndicatorValue(IndicatorId.BOLLINGER, values, state)
