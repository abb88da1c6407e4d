"""Technical indicators for signal generation."""

from perpsignal.indicators.calculator import INDICATORS, IndicatorCalculator
from perpsignal.indicators.momentum import compute_macd, compute_rsi, rsi_series
from perpsignal.indicators.perp import compute_funding, compute_open_interest
from perpsignal.indicators.primitives import (
    atr,
    divergence,
    ema,
    highest,
    lowest,
    rolling_std,
    sma,
    true_range,
    wilder,
)
from perpsignal.indicators.trend import compute_ema, compute_supertrend
from perpsignal.indicators.volatility import compute_atr, compute_bollinger
from perpsignal.indicators.volume import compute_obv, compute_volume_profile

__all__ = [
    "INDICATORS",
    "IndicatorCalculator",
    "atr",
    "compute_atr",
    "compute_bollinger",
    "compute_ema",
    "compute_funding",
    "compute_macd",
    "compute_obv",
    "compute_open_interest",
    "compute_rsi",
    "compute_supertrend",
    "compute_volume_profile",
    "divergence",
    "ema",
    "highest",
    "lowest",
    "rolling_std",
    "rsi_series",
    "sma",
    "true_range",
    "wilder",
]
