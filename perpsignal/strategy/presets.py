"""Built-in strategy presets."""

from perpsignal.models.indicators import IndicatorId
from perpsignal.models.strategy import (
    AggregationMethod,
    Comparison,
    Condition,
    Group,
    LogicalOperator,
    Strategy,
    Thresholds,
)
from perpsignal.strategy.registry import register_preset


@register_preset("trend_following")
def trend_following(symbol: str, long_min: float = 3.0, short_max: float = -3.0) -> Strategy:
    """EMA/SuperTrend direction confirmed by MACD, weighted toward the trend."""
    trend = Group(
        id="trend",
        operator=LogicalOperator.OR,
        weight=2.0,
        children=(
            Condition(id="ema_cross_up", indicator=IndicatorId.EMA,
                      comparison=Comparison.SIGNAL_STATE, signal_state="BullishCross"),
            Condition(id="ema_cross_down", indicator=IndicatorId.EMA,
                      comparison=Comparison.SIGNAL_STATE, signal_state="BearishCross"),
            Condition(id="supertrend_up", indicator=IndicatorId.SUPERTREND,
                      comparison=Comparison.GREATER_THAN, threshold=0),
            Condition(id="supertrend_down", indicator=IndicatorId.SUPERTREND,
                      comparison=Comparison.LESS_THAN, threshold=0),
        ),
    )
    momentum = Group(
        id="momentum",
        operator=LogicalOperator.OR,
        children=(
            Condition(id="macd_positive", indicator=IndicatorId.MACD,
                      comparison=Comparison.GREATER_THAN, threshold=0),
            Condition(id="macd_negative", indicator=IndicatorId.MACD,
                      comparison=Comparison.LESS_THAN, threshold=0),
        ),
    )
    return Strategy(
        name="trend_following",
        symbol=symbol,
        rule=Group(id="root", operator=LogicalOperator.OR, children=(trend, momentum)),
        method=AggregationMethod.WEIGHTED_SUM,
        thresholds=Thresholds(long_min=long_min, short_max=short_max),
    )


@register_preset("mean_reversion")
def mean_reversion(symbol: str, long_min: float = 1.0, short_max: float = -1.0) -> Strategy:
    """Fade RSI extremes that coincide with a close at the Bollinger band edge."""
    return Strategy(
        name="mean_reversion",
        symbol=symbol,
        rule=Group(
            id="root",
            operator=LogicalOperator.OR,
            children=(
                Group(
                    id="oversold",
                    children=(
                        Condition(id="rsi_low", indicator=IndicatorId.RSI,
                                  comparison=Comparison.LESS_THAN, threshold=30),
                        Condition(id="below_band", indicator=IndicatorId.BOLLINGER,
                                  comparison=Comparison.LESS_EQUAL, threshold=0.1),
                    ),
                ),
                Group(
                    id="overbought",
                    children=(
                        Condition(id="rsi_high", indicator=IndicatorId.RSI,
                                  comparison=Comparison.GREATER_THAN, threshold=70),
                        Condition(id="above_band", indicator=IndicatorId.BOLLINGER,
                                  comparison=Comparison.GREATER_EQUAL, threshold=0.9),
                    ),
                ),
            ),
        ),
        method=AggregationMethod.SUM,
        thresholds=Thresholds(long_min=long_min, short_max=short_max),
    )
