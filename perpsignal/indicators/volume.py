"""Volume family: On-Balance Volume and volume profile."""

import numpy as np

from perpsignal.indicators.primitives import divergence, require_history, smooth
from perpsignal.models.candle import CandleSeries
from perpsignal.models.config import IndicatorParams
from perpsignal.models.indicators import IndicatorId, IndicatorValue, ObvSignal, VolumeProfileSignal

OBV_SMOOTHING = 0.1


# =============================================================================
# OBV
# =============================================================================

def obv_warmup(params: IndicatorParams) -> int:
    return 2


def obv_series(closes, volumes) -> np.ndarray:
    """Cumulative signed volume, starting at 0 on the first candle."""
    c = np.asarray(closes, dtype=np.float64)
    v = np.asarray(volumes, dtype=np.float64)
    signed = np.sign(np.diff(c)) * v[1:]
    return np.concatenate(([0.0], np.cumsum(signed)))


def compute_obv(series: CandleSeries, params: IndicatorParams) -> IndicatorValue:
    """OBV plus a smoothed OBV.

    Divergence against price wins; otherwise a smoothed-OBV move in the same
    direction as the last close-to-close move is a confirmation.
    """
    require_history(IndicatorId.OBV, len(series), obv_warmup(params))

    closes = series.closes
    obv = obv_series(closes, series.volumes)
    obv_ema = smooth(obv, OBV_SMOOTHING)
    obv_change = float(obv_ema[-1] - obv_ema[-2])
    price_change = float(closes[-1] - closes[-2])

    div = divergence(closes, obv, params.obv_divergence_lookback)
    if div > 0:
        state = ObvSignal.BULLISH_DIVERGENCE
    elif div < 0:
        state = ObvSignal.BEARISH_DIVERGENCE
    elif price_change * obv_change > 0:
        state = ObvSignal.CONFIRMATION
    else:
        state = ObvSignal.NEUTRAL

    return IndicatorValue(
        IndicatorId.OBV,
        {"obv": float(obv[-1]), "obv_ema": float(obv_ema[-1]), "obv_change": obv_change},
        state,
    )


# =============================================================================
# Volume profile
# =============================================================================

def volume_profile_warmup(params: IndicatorParams) -> int:
    return params.volume_profile_min_candles


def value_area(histogram: np.ndarray, poc_index: int, fraction: float) -> tuple[int, int]:
    """Expand outward from the POC bucket until ``fraction`` of volume is covered.

    Returns inclusive (low, high) bucket indices. At each step the heavier
    neighbour is taken; ties go to the upper side.
    """
    total = histogram.sum()
    lo = hi = poc_index
    covered = histogram[poc_index]
    while covered < fraction * total and (lo > 0 or hi < len(histogram) - 1):
        below = histogram[lo - 1] if lo > 0 else -1.0
        above = histogram[hi + 1] if hi < len(histogram) - 1 else -1.0
        if above >= below:
            hi += 1
            covered += above
        else:
            lo -= 1
            covered += below
    return lo, hi


def compute_volume_profile(series: CandleSeries, params: IndicatorParams) -> IndicatorValue:
    """Volume-by-price over the last ``volume_profile_lookback`` candles.

    Typical prices are bucketed into ``volume_profile_bins`` equal-width bins
    spanning the window's low..high, weighted by volume. The point of control
    (POC) is the centre of the heaviest bucket; within one bucket width of it,
    price is on POC support (at/above) or resistance (below). Elsewhere the
    current bucket is a high-volume node above 1.5x the mean bucket volume and
    a low-volume node below 0.5x.
    """
    require_history(IndicatorId.VOLUME_PROFILE, len(series), volume_profile_warmup(params))

    window = series.window(params.volume_profile_lookback)
    close = float(window.closes[-1])
    low, high = float(window.lows.min()), float(window.highs.max())

    if high <= low:
        values = {
            "poc": close,
            "value_area_low": low,
            "value_area_high": high,
            "bucket_width": 0.0,
            "distance_pct": 0.0,
        }
        return IndicatorValue(IndicatorId.VOLUME_PROFILE, values, VolumeProfileSignal.POC_SUPPORT)

    typical = (window.highs + window.lows + window.closes) / 3
    histogram, edges = np.histogram(
        typical, bins=params.volume_profile_bins, range=(low, high), weights=window.volumes
    )
    width = float(edges[1] - edges[0])
    poc_index = int(np.argmax(histogram))
    poc = float((edges[poc_index] + edges[poc_index + 1]) / 2)
    va_lo, va_hi = value_area(histogram, poc_index, params.volume_profile_value_area)

    values = {
        "poc": poc,
        "value_area_low": float(edges[va_lo]),
        "value_area_high": float(edges[va_hi + 1]),
        "bucket_width": width,
        "distance_pct": (close - poc) / poc * 100,
    }

    if histogram.sum() <= 0:
        state = VolumeProfileSignal.NEUTRAL
    elif abs(close - poc) <= width:
        state = VolumeProfileSignal.POC_SUPPORT if close >= poc else VolumeProfileSignal.POC_RESISTANCE
    else:
        bucket = min(int((close - low) / width), len(histogram) - 1)
        mean_volume = histogram.mean()
        if histogram[bucket] > 1.5 * mean_volume:
            state = VolumeProfileSignal.NEAR_HVN
        elif histogram[bucket] < 0.5 * mean_volume:
            state = VolumeProfileSignal.NEAR_LVN
        else:
            state = VolumeProfileSignal.NEUTRAL

    return IndicatorValue(IndicatorId.VOLUME_PROFILE, values, state)
