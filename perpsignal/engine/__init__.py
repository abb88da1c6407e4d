"""Scoring, decision and explanation layers."""

from perpsignal.engine.aggregator import (
    CATEGORY_CLAMP,
    STATE_SCORES,
    AggregateResult,
    CategoryAggregator,
    CategoryScore,
    state_score,
)
from perpsignal.engine.decision import decide_direction, stop_loss_take_profit
from perpsignal.engine.explain import ExplanationBuilder, summarize
from perpsignal.engine.rules import (
    POLARITY,
    RuleEvaluation,
    RuleEvaluator,
    RuleTrace,
    TraceStatus,
    validate_strategy,
)
from perpsignal.engine.signal_engine import EvaluationJob, SignalEngine

__all__ = [
    "CATEGORY_CLAMP",
    "STATE_SCORES",
    "AggregateResult",
    "CategoryAggregator",
    "CategoryScore",
    "state_score",
    "decide_direction",
    "stop_loss_take_profit",
    "ExplanationBuilder",
    "summarize",
    "POLARITY",
    "RuleEvaluation",
    "RuleEvaluator",
    "RuleTrace",
    "TraceStatus",
    "validate_strategy",
    "EvaluationJob",
    "SignalEngine",
]
