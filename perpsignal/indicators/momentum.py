"""Momentum family: MACD and RSI."""

import numpy as np

from perpsignal.indicators.primitives import divergence, ema, require_history
from perpsignal.models.candle import CandleSeries
from perpsignal.models.config import IndicatorParams
from perpsignal.models.indicators import IndicatorId, IndicatorValue, MacdSignal, RsiSignal


# =============================================================================
# MACD
# =============================================================================

def macd_warmup(params: IndicatorParams) -> int:
    return params.macd_slow + params.macd_signal - 1


def macd_lines(closes, fast: int, slow: int, signal: int) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Return (macd, signal, histogram) arrays."""
    line = ema(closes, fast) - ema(closes, slow)
    signal_line = ema(line, signal)
    return line, signal_line, line - signal_line


def classify_macd(histogram: np.ndarray) -> MacdSignal:
    hist = histogram[~np.isnan(histogram)]
    if len(hist) < 2:
        return MacdSignal.NEUTRAL

    prev, cur = hist[-2], hist[-1]
    if prev <= 0 < cur:
        return MacdSignal.BULLISH_CROSS
    if prev >= 0 > cur:
        return MacdSignal.BEARISH_CROSS

    if len(hist) >= 3:
        a, b, c = hist[-3:]
        if a > 0 and b > 0 and c > 0 and a < b < c:
            return MacdSignal.BULLISH_MOMENTUM
        if a < 0 and b < 0 and c < 0 and a > b > c:
            return MacdSignal.BEARISH_MOMENTUM

    return MacdSignal.NEUTRAL


def compute_macd(series: CandleSeries, params: IndicatorParams) -> IndicatorValue:
    """MACD line, signal line and histogram at the last candle.

    Crosses are a sign change of the histogram between the last two candles;
    momentum is a histogram that grows in magnitude, same sign, for two
    consecutive candles.
    """
    require_history(IndicatorId.MACD, len(series), macd_warmup(params))

    line, signal_line, hist = macd_lines(
        series.closes, params.macd_fast, params.macd_slow, params.macd_signal
    )
    return IndicatorValue(
        IndicatorId.MACD,
        {
            "macd": float(line[-1]),
            "signal": float(signal_line[-1]),
            "histogram": float(hist[-1]),
        },
        classify_macd(hist),
    )


# =============================================================================
# RSI
# =============================================================================

def rsi_warmup(params: IndicatorParams) -> int:
    return params.rsi_period + 1


def _rsi_from_averages(avg_gain: float, avg_loss: float) -> float:
    if avg_loss == 0:
        return 100.0 if avg_gain > 0 else 50.0
    rs = avg_gain / avg_loss
    return 100.0 - 100.0 / (1.0 + rs)


def rsi_series(closes, period: int) -> np.ndarray:
    """Wilder RSI; the first value lands on index ``period``."""
    arr = np.asarray(closes, dtype=np.float64)
    result = np.full(len(arr), np.nan)
    if len(arr) < period + 1:
        return result

    deltas = np.diff(arr)
    gains = np.clip(deltas, 0, None)
    losses = np.clip(-deltas, 0, None)

    avg_gain = float(np.mean(gains[:period]))
    avg_loss = float(np.mean(losses[:period]))
    result[period] = _rsi_from_averages(avg_gain, avg_loss)

    for i in range(period + 1, len(arr)):
        avg_gain = (avg_gain * (period - 1) + gains[i - 1]) / period
        avg_loss = (avg_loss * (period - 1) + losses[i - 1]) / period
        result[i] = _rsi_from_averages(avg_gain, avg_loss)

    return result


def compute_rsi(series: CandleSeries, params: IndicatorParams) -> IndicatorValue:
    """RSI with zone and divergence classification (divergence wins)."""
    require_history(IndicatorId.RSI, len(series), rsi_warmup(params))

    closes = series.closes
    rsi = rsi_series(closes, params.rsi_period)
    current = float(rsi[-1])

    div = divergence(closes, rsi, params.rsi_divergence_lookback)
    if div > 0:
        state = RsiSignal.BULLISH_DIVERGENCE
    elif div < 0:
        state = RsiSignal.BEARISH_DIVERGENCE
    elif current < params.rsi_oversold:
        state = RsiSignal.OVERSOLD
    elif current > params.rsi_overbought:
        state = RsiSignal.OVERBOUGHT
    else:
        state = RsiSignal.NEUTRAL

    return IndicatorValue(IndicatorId.RSI, {"rsi": current}, state)
