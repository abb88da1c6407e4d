"""Signal-generation core for perpetual-futures trading.

Candles go in, a Long/Short/Neutral call with confidence, ATR-based SL/TP
and an ordered list of reasons comes out.
"""

from perpsignal.engine import (
    CategoryAggregator,
    EvaluationJob,
    ExplanationBuilder,
    RuleEvaluator,
    SignalEngine,
    decide_direction,
    stop_loss_take_profit,
    summarize,
    validate_strategy,
)
from perpsignal.errors import (
    InsufficientHistory,
    InvalidStrategyConfiguration,
    MalformedCandleSequence,
    PerpsignalError,
)
from perpsignal.indicators import IndicatorCalculator
from perpsignal.models import (
    AggregationMethod,
    Candle,
    CandleSeries,
    Category,
    Comparison,
    Condition,
    Direction,
    EngineConfig,
    Group,
    IndicatorId,
    IndicatorSnapshot,
    IndicatorValue,
    LogicalOperator,
    MarketBias,
    Reason,
    RiskLevel,
    SignalOutput,
    Strategy,
    Thresholds,
)
from perpsignal.strategy import StrategyRegistry, create_preset, list_presets

__version__ = "0.1.0"

__all__ = [
    "CategoryAggregator",
    "EvaluationJob",
    "ExplanationBuilder",
    "RuleEvaluator",
    "SignalEngine",
    "decide_direction",
    "stop_loss_take_profit",
    "summarize",
    "validate_strategy",
    "InsufficientHistory",
    "InvalidStrategyConfiguration",
    "MalformedCandleSequence",
    "PerpsignalError",
    "IndicatorCalculator",
    "AggregationMethod",
    "Candle",
    "CandleSeries",
    "Category",
    "Comparison",
    "Condition",
    "Direction",
    "EngineConfig",
    "Group",
    "IndicatorId",
    "IndicatorSnapshot",
    "IndicatorValue",
    "LogicalOperator",
    "MarketBias",
    "Reason",
    "RiskLevel",
    "SignalOutput",
    "Strategy",
    "Thresholds",
    "StrategyRegistry",
    "create_preset",
    "list_presets",
]
