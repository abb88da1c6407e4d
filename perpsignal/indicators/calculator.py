"""Snapshot builder: every indicator, computed once per evaluation instant."""

import logging
from typing import Callable, Mapping

from perpsignal.errors import InsufficientHistory
from perpsignal.indicators.momentum import compute_macd, compute_rsi, macd_warmup, rsi_warmup
from perpsignal.indicators.perp import (
    compute_funding,
    compute_open_interest,
    funding_warmup,
    open_interest_warmup,
)
from perpsignal.indicators.trend import compute_ema, compute_supertrend, ema_warmup, supertrend_warmup
from perpsignal.indicators.volatility import (
    atr_warmup,
    bollinger_warmup,
    compute_atr,
    compute_bollinger,
)
from perpsignal.indicators.volume import (
    compute_obv,
    compute_volume_profile,
    obv_warmup,
    volume_profile_warmup,
)
from perpsignal.models.candle import CandleSeries
from perpsignal.models.config import IndicatorParams
from perpsignal.models.indicators import IndicatorId, IndicatorSnapshot, IndicatorValue

logger = logging.getLogger(__name__)

ComputeFn = Callable[[CandleSeries, IndicatorParams], IndicatorValue]
WarmupFn = Callable[[IndicatorParams], int]

# Indicator -> (compute, warm-up requirement), in evaluation order.
INDICATORS: Mapping[IndicatorId, tuple[ComputeFn, WarmupFn]] = {
    IndicatorId.MACD: (compute_macd, macd_warmup),
    IndicatorId.RSI: (compute_rsi, rsi_warmup),
    IndicatorId.EMA: (compute_ema, ema_warmup),
    IndicatorId.SUPERTREND: (compute_supertrend, supertrend_warmup),
    IndicatorId.BOLLINGER: (compute_bollinger, bollinger_warmup),
    IndicatorId.ATR: (compute_atr, atr_warmup),
    IndicatorId.OBV: (compute_obv, obv_warmup),
    IndicatorId.VOLUME_PROFILE: (compute_volume_profile, volume_profile_warmup),
    IndicatorId.FUNDING_RATE: (compute_funding, funding_warmup),
    IndicatorId.OPEN_INTEREST: (compute_open_interest, open_interest_warmup),
}


class IndicatorCalculator:
    """Computes all indicators for a candle window.

    Indicators whose warm-up exceeds the window are left out of the snapshot
    rather than reported with a placeholder value.
    """

    def __init__(self, params: IndicatorParams | None = None):
        self.params = params or IndicatorParams()

    def warmup(self, indicator: IndicatorId) -> int:
        """Minimum window length (candles) for ``indicator`` under these params."""
        return INDICATORS[indicator][1](self.params)

    def warmups(self) -> dict[IndicatorId, int]:
        return {indicator: self.warmup(indicator) for indicator in INDICATORS}

    def compute(self, indicator: IndicatorId, series: CandleSeries) -> IndicatorValue | None:
        """Compute one indicator; None when the window is too short."""
        compute_fn, _ = INDICATORS[indicator]
        try:
            return compute_fn(series, self.params)
        except InsufficientHistory as e:
            logger.debug("Indicator unavailable: %s", e)
            return None

    def calculate(
        self,
        series: CandleSeries,
        symbol: str,
        only: set[IndicatorId] | None = None,
    ) -> IndicatorSnapshot:
        """
        Build the indicator snapshot at the last candle of ``series``.

        Args:
            series: Validated candle window, oldest first
            symbol: Instrument the candles belong to
            only: Restrict computation to these indicators (default: all)

        Returns:
            IndicatorSnapshot stamped with the last close and candle timestamp
        """
        values: dict[IndicatorId, IndicatorValue] = {}
        for indicator in INDICATORS:
            if only is not None and indicator not in only:
                continue
            value = self.compute(indicator, series)
            if value is not None:
                values[indicator] = value

        snapshot = IndicatorSnapshot(
            symbol=symbol,
            price=series.last.close,
            timestamp=series.last.timestamp,
            indicators=values,
        )
        if len(snapshot) < len(INDICATORS) and only is None:
            logger.debug(
                "%s snapshot at %s: %d/%d indicators available, missing %s",
                symbol,
                snapshot.timestamp.isoformat(),
                len(snapshot),
                len(INDICATORS),
                ", ".join(i.value for i in snapshot.missing()),
            )
        return snapshot
