"""Perpetual-futures family: funding rate and open interest.

Both read optional per-candle metrics. Candles without the metric are
skipped; two observations are needed to compute a change.
"""

import numpy as np

from perpsignal.indicators.primitives import require_history
from perpsignal.models.candle import CandleSeries
from perpsignal.models.config import IndicatorParams
from perpsignal.models.indicators import (
    FundingSignal,
    IndicatorId,
    IndicatorValue,
    OpenInterestSignal,
)

MIN_OBSERVATIONS = 2


def funding_warmup(params: IndicatorParams) -> int:
    return MIN_OBSERVATIONS


def open_interest_warmup(params: IndicatorParams) -> int:
    return MIN_OBSERVATIONS


def _observations(indicator: IndicatorId, metric: np.ndarray) -> np.ndarray:
    """Indices of candles carrying the metric, at least two of them."""
    index = np.flatnonzero(~np.isnan(metric))
    require_history(indicator, len(index), MIN_OBSERVATIONS)
    return index


def _window_mean(series: CandleSeries, metric: np.ndarray, index: np.ndarray, hours: float) -> float:
    cutoff = series.timestamps[-1] - hours * 3600
    recent = index[series.timestamps[index] > cutoff]
    if len(recent) == 0:
        recent = index[-1:]
    return float(np.mean(metric[recent]))


def classify_funding(rate: float, params: IndicatorParams) -> FundingSignal:
    if rate > params.funding_extreme:
        return FundingSignal.EXTREME_LONG_BIAS
    if rate < -params.funding_extreme:
        return FundingSignal.EXTREME_SHORT_BIAS
    if rate > params.funding_high:
        return FundingSignal.HIGH_LONG_BIAS
    if rate < -params.funding_high:
        return FundingSignal.HIGH_SHORT_BIAS
    if rate > 0:
        return FundingSignal.NEUTRAL_POSITIVE
    if rate < 0:
        return FundingSignal.NEUTRAL_NEGATIVE
    return FundingSignal.NEUTRAL


def compute_funding(series: CandleSeries, params: IndicatorParams) -> IndicatorValue:
    """Latest funding rate, its trailing-window mean and last change."""
    rates = series.funding_rates
    index = _observations(IndicatorId.FUNDING_RATE, rates)

    current = float(rates[index[-1]])
    previous = float(rates[index[-2]])
    return IndicatorValue(
        IndicatorId.FUNDING_RATE,
        {
            "funding_rate": current,
            "average_24h": _window_mean(series, rates, index, params.funding_window_hours),
            "delta": current - previous,
        },
        classify_funding(current, params),
    )


def compute_open_interest(series: CandleSeries, params: IndicatorParams) -> IndicatorValue:
    """Open interest change read together with price direction.

    Rising OI with rising price is a bullish expansion, with falling price a
    bearish one. Falling OI with falling price is longs closing (long
    squeeze), with rising price shorts covering (short squeeze).
    """
    oi = series.open_interests
    index = _observations(IndicatorId.OPEN_INTEREST, oi)

    cur_i, prev_i = index[-1], index[-2]
    current, previous = float(oi[cur_i]), float(oi[prev_i])
    change_pct = (current - previous) / previous * 100 if previous > 0 else 0.0
    price_change = float(series.closes[cur_i] - series.closes[prev_i])

    threshold = params.oi_change_threshold_pct
    if change_pct > threshold and price_change > 0:
        state = OpenInterestSignal.BULLISH_EXPANSION
    elif change_pct > threshold and price_change < 0:
        state = OpenInterestSignal.BEARISH_EXPANSION
    elif change_pct < -threshold and price_change < 0:
        state = OpenInterestSignal.LONG_SQUEEZE
    elif change_pct < -threshold and price_change > 0:
        state = OpenInterestSignal.SHORT_SQUEEZE
    else:
        state = OpenInterestSignal.NEUTRAL

    return IndicatorValue(
        IndicatorId.OPEN_INTEREST,
        {
            "open_interest": current,
            "average_24h": _window_mean(series, oi, index, params.oi_window_hours),
            "change_pct": change_pct,
        },
        state,
    )
