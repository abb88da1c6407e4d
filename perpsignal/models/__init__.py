"""Data models for the signal core."""

from perpsignal.models.candle import Candle, CandleSeries, as_series
from perpsignal.models.config import (
    BiasThresholds,
    CategoryWeights,
    EngineConfig,
    IndicatorParams,
    RiskParams,
)
from perpsignal.models.indicators import (
    BollingerSignal,
    Category,
    EmaSignal,
    FundingSignal,
    INDICATOR_CATEGORY,
    IndicatorId,
    IndicatorSnapshot,
    IndicatorValue,
    MacdSignal,
    ObvSignal,
    OpenInterestSignal,
    RsiSignal,
    SignalState,
    SuperTrendSignal,
    VolatilityRegime,
    VolumeProfileSignal,
    parse_state,
)
from perpsignal.models.signal import (
    Direction,
    MarketBias,
    Reason,
    RiskLevel,
    SignalOutput,
)
from perpsignal.models.strategy import (
    AggregationMethod,
    Comparison,
    Condition,
    Group,
    LogicalOperator,
    Rule,
    Strategy,
    Thresholds,
)

__all__ = [
    "Candle",
    "CandleSeries",
    "as_series",
    "BiasThresholds",
    "CategoryWeights",
    "EngineConfig",
    "IndicatorParams",
    "RiskParams",
    "BollingerSignal",
    "Category",
    "EmaSignal",
    "FundingSignal",
    "INDICATOR_CATEGORY",
    "IndicatorId",
    "IndicatorSnapshot",
    "IndicatorValue",
    "MacdSignal",
    "ObvSignal",
    "OpenInterestSignal",
    "RsiSignal",
    "SignalState",
    "SuperTrendSignal",
    "VolatilityRegime",
    "VolumeProfileSignal",
    "parse_state",
    "Direction",
    "MarketBias",
    "Reason",
    "RiskLevel",
    "SignalOutput",
    "AggregationMethod",
    "Comparison",
    "Condition",
    "Group",
    "LogicalOperator",
    "Rule",
    "Strategy",
    "Thresholds",
]
