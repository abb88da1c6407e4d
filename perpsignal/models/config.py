"""Engine configuration models."""

from __future__ import annotations

import logging

from pydantic import BaseModel, ConfigDict, Field, model_validator

from perpsignal.models.indicators import Category

logger = logging.getLogger(__name__)


class CategoryWeights(BaseModel):
    """Per-category weights, intended to sum to 1.0.

    The sum is not enforced here; callers check it with
    ``is_normalized()``.
    """

    model_config = ConfigDict(frozen=True)

    momentum: float = 0.25
    trend: float = 0.30
    volatility: float = 0.15
    volume: float = 0.15
    perp: float = 0.15

    def weight(self, category: Category) -> float:
        return getattr(self, category.value.lower())

    @property
    def total(self) -> float:
        return self.momentum + self.trend + self.volatility + self.volume + self.perp

    def is_normalized(self, tolerance: float = 1e-6) -> bool:
        return abs(self.total - 1.0) <= tolerance


class IndicatorParams(BaseModel):
    """Periods and cut-points for every indicator."""

    model_config = ConfigDict(frozen=True)

    # Momentum
    macd_fast: int = Field(12, ge=1)
    macd_slow: int = Field(26, ge=1)
    macd_signal: int = Field(9, ge=1)
    rsi_period: int = Field(14, ge=1)
    rsi_overbought: float = 70.0
    rsi_oversold: float = 30.0
    rsi_divergence_lookback: int = Field(14, ge=2)

    # Trend
    ema_fast: int = Field(20, ge=1)
    ema_slow: int = Field(50, ge=1)
    ema_extra_periods: tuple[int, ...] = ()  # e.g. (12, 26, 200), reported as ema_<p>
    supertrend_period: int = Field(10, ge=1)
    supertrend_multiplier: float = Field(3.0, gt=0)

    # Volatility
    atr_period: int = Field(14, ge=1)
    atr_regime_lookback: int = Field(14, ge=1)
    bollinger_period: int = Field(20, ge=2)
    bollinger_std: float = Field(2.0, gt=0)
    bollinger_squeeze_lookback: int = Field(120, ge=2)
    bollinger_squeeze_percentile: float = Field(20.0, gt=0, lt=100)

    # Volume
    obv_divergence_lookback: int = Field(14, ge=2)
    volume_profile_lookback: int = Field(240, ge=2)
    volume_profile_bins: int = Field(24, ge=2)
    volume_profile_min_candles: int = Field(20, ge=2)
    volume_profile_value_area: float = Field(0.70, gt=0, le=1)

    # Perp
    funding_window_hours: float = Field(24.0, gt=0)
    funding_extreme: float = Field(0.001, gt=0)
    funding_high: float = Field(0.0005, gt=0)
    oi_window_hours: float = Field(24.0, gt=0)
    oi_change_threshold_pct: float = Field(2.0, gt=0)

    @model_validator(mode="after")
    def _validate(self):
        if self.macd_fast >= self.macd_slow:
            raise ValueError(
                f"macd_fast ({self.macd_fast}) must be less than macd_slow ({self.macd_slow})"
            )
        if self.ema_fast >= self.ema_slow:
            raise ValueError(
                f"ema_fast ({self.ema_fast}) must be less than ema_slow ({self.ema_slow})"
            )
        if not 0 <= self.rsi_oversold < self.rsi_overbought <= 100:
            raise ValueError(
                "RSI cut-points must satisfy 0 <= oversold < overbought <= 100"
            )
        if self.funding_high >= self.funding_extreme:
            raise ValueError("funding_high must be below funding_extreme")
        if any(p < 1 for p in self.ema_extra_periods):
            raise ValueError("ema_extra_periods must all be >= 1")
        return self


class RiskParams(BaseModel):
    """ATR multipliers for stop-loss / take-profit sizing."""

    model_config = ConfigDict(frozen=True)

    sl_atr_mult: float = Field(1.2, ge=0)
    tp_atr_mult: float = Field(2.0, ge=0)

    @model_validator(mode="after")
    def _warn_inverted(self):
        if self.tp_atr_mult < self.sl_atr_mult:
            logger.warning(
                "tp_atr_mult (%s) is below sl_atr_mult (%s): take-profit will be "
                "closer than stop-loss",
                self.tp_atr_mult,
                self.sl_atr_mult,
            )
        return self


class BiasThresholds(BaseModel):
    """Total-score cut-points for the category aggregator's market bias."""

    model_config = ConfigDict(frozen=True)

    strong_bullish: int = 7
    bullish: int = 3
    bearish: int = -3
    strong_bearish: int = -7

    @model_validator(mode="after")
    def _validate(self):
        if not self.strong_bearish <= self.bearish < self.bullish <= self.strong_bullish:
            raise ValueError(
                "bias thresholds must satisfy strong_bearish <= bearish < bullish <= strong_bullish"
            )
        return self


class EngineConfig(BaseModel):
    """Complete configuration surface of the signal core."""

    model_config = ConfigDict(frozen=True)

    indicators: IndicatorParams = IndicatorParams()
    weights: CategoryWeights = CategoryWeights()
    risk: RiskParams = RiskParams()
    bias: BiasThresholds = BiasThresholds()
