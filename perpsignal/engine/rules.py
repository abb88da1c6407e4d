"""Rule evaluator: interprets a strategy's rule tree against a snapshot.

Leaves (conditions) match or not and carry a sign: +1 when the match is
bullish, -1 when bearish, 0 when the indicator is non-directional. Groups
combine their children under AND/OR, and the strategy's aggregation method
decides how contributions add up:

- Sum: signed leaf matches count 1 each, weights are ignored.
- WeightedSum: every node's contribution is scaled by its own weight, so a
  leaf's final share is the product of weights along its path.
- Majority: each group counts positive minus negative children.
- All / Any: the full score (sum of leaf weights) when every / any leaf
  matches, else 0.

An AND group contributes nothing unless all its children match. Conditions
on unavailable indicators are inapplicable: they never match and never fail
the evaluation.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Mapping, assert_never

from perpsignal.engine.aggregator import state_score
from perpsignal.engine.explain import ExplanationBuilder
from perpsignal.errors import InvalidStrategyConfiguration
from perpsignal.models.indicators import FIELDS, IndicatorId, IndicatorSnapshot, IndicatorValue, parse_state
from perpsignal.models.signal import Reason
from perpsignal.models.strategy import (
    AggregationMethod,
    Comparison,
    Condition,
    Group,
    LogicalOperator,
    Strategy,
)

logger = logging.getLogger(__name__)

# Sign of "higher is better" per indicator; 0 = non-directional.
POLARITY: Mapping[IndicatorId, int] = MappingProxyType({
    IndicatorId.MACD: 1,
    IndicatorId.EMA: 1,
    IndicatorId.SUPERTREND: 1,
    IndicatorId.OBV: 1,
    IndicatorId.VOLUME_PROFILE: 1,
    IndicatorId.OPEN_INTEREST: 1,
    IndicatorId.RSI: -1,
    IndicatorId.FUNDING_RATE: -1,
    IndicatorId.ATR: 0,
    IndicatorId.BOLLINGER: 0,
})

_EXTRA_EMA_FIELD = re.compile(r"ema_[1-9]\d*")


class TraceStatus(str, Enum):
    MATCHED = "Matched"
    UNMATCHED = "Unmatched"
    INAPPLICABLE = "Inapplicable"


@dataclass(frozen=True, slots=True)
class RuleTrace:
    """Attribution record for one node of the rule tree."""

    path: str
    description: str
    status: TraceStatus
    contribution: float
    weight: float
    is_leaf: bool
    node_id: str | None = None

    @property
    def source(self) -> str:
        return self.node_id or self.path


@dataclass(frozen=True, slots=True)
class RuleEvaluation:
    strategy: str
    score: float
    max_score: float
    traces: tuple[RuleTrace, ...]
    available: bool  # at least one indicator the strategy reads was computed
    applicable_max: float = 0.0  # max_score restricted to leaves that could be evaluated

    @property
    def confidence(self) -> float:
        if not self.available or self.applicable_max <= 0:
            return 0.0
        return min(1.0, abs(self.score) / self.applicable_max)

    @property
    def leaf_traces(self) -> tuple[RuleTrace, ...]:
        return tuple(t for t in self.traces if t.is_leaf)

    def reasons(self) -> tuple[Reason, ...]:
        explanation = ExplanationBuilder()
        for trace in self.leaf_traces:
            explanation.add(
                trace.source,
                trace.contribution,
                trace.weight,
                f"{trace.description} [{trace.status.value}]",
            )
        return explanation.build()


@dataclass(frozen=True, slots=True)
class _Result:
    matched: bool
    applicable: bool
    contribution: float
    possible: float = 0.0


# =============================================================================
# Validation
# =============================================================================

def _check_weight(weight: float | None, path: str) -> None:
    if weight is not None and (not math.isfinite(weight) or weight <= 0):
        raise InvalidStrategyConfiguration(f"weight must be a positive number, got {weight}", path)


def _field_known(indicator: IndicatorId, field: str) -> bool:
    if field in FIELDS[indicator]:
        return True
    return indicator is IndicatorId.EMA and _EXTRA_EMA_FIELD.fullmatch(field) is not None


def _validate_condition(cond: Condition, path: str) -> None:
    _check_weight(cond.weight, path)

    if cond.field is not None and not _field_known(cond.indicator, cond.field):
        valid = ", ".join(sorted(FIELDS[cond.indicator]))
        raise InvalidStrategyConfiguration(
            f"{cond.indicator.value} has no field {cond.field!r} (expected one of: {valid})",
            path,
        )

    if cond.comparison is Comparison.SIGNAL_STATE:
        if cond.signal_state is None:
            raise InvalidStrategyConfiguration("SignalState comparison needs signal_state", path)
        try:
            parse_state(cond.indicator, cond.signal_state)
        except ValueError as e:
            raise InvalidStrategyConfiguration(str(e), path) from None
        return

    if cond.signal_state is not None:
        raise InvalidStrategyConfiguration(
            f"signal_state is only valid with SignalState, not {cond.comparison.value}", path
        )
    if cond.threshold is None or not math.isfinite(cond.threshold):
        raise InvalidStrategyConfiguration(
            f"{cond.comparison.value} comparison needs a finite threshold", path
        )
    if cond.comparison is Comparison.IN_RANGE:
        if cond.threshold_high is None or not math.isfinite(cond.threshold_high):
            raise InvalidStrategyConfiguration("InRange needs a finite threshold_high", path)
        if cond.threshold > cond.threshold_high:
            raise InvalidStrategyConfiguration(
                f"InRange bounds are inverted: {cond.threshold} > {cond.threshold_high}", path
            )


def _validate_node(node: Condition | Group, path: str, ancestors: set[int]) -> int:
    """Validate a subtree; returns its number of leaf conditions."""
    match node:
        case Condition():
            _validate_condition(node, path)
            return 1
        case Group():
            if id(node) in ancestors:
                raise InvalidStrategyConfiguration("rule tree contains a cycle", path)
            _check_weight(node.weight, path)
            if not node.children:
                raise InvalidStrategyConfiguration("group has no children", path)
            ancestors.add(id(node))
            leaves = sum(
                _validate_node(child, f"{path}.{i}", ancestors)
                for i, child in enumerate(node.children)
            )
            ancestors.discard(id(node))
            return leaves
        case _:
            assert_never(node)


def validate_strategy(strategy: Strategy) -> Strategy:
    """
    Check a strategy before it is stored or evaluated.

    Args:
        strategy: Parsed strategy

    Returns:
        The same strategy, for chaining

    Raises:
        InvalidStrategyConfiguration: On inconsistent thresholds, empty or
            cyclic trees, non-positive weights, missing or inverted
            thresholds, unknown states or unknown fields.
    """
    th = strategy.thresholds
    if not (math.isfinite(th.long_min) and math.isfinite(th.short_max)):
        raise InvalidStrategyConfiguration("thresholds must be finite", "thresholds")
    if th.long_min <= th.short_max:
        raise InvalidStrategyConfiguration(
            f"long_min ({th.long_min}) must be greater than short_max ({th.short_max})",
            "thresholds",
        )
    if _validate_node(strategy.rule, "root", set()) == 0:
        raise InvalidStrategyConfiguration("rule tree has no conditions", "root")
    return strategy


# =============================================================================
# Evaluation
# =============================================================================

def compare(comparison: Comparison, actual: float, low: float | None, high: float | None) -> bool:
    """Apply a numeric comparison (``low`` is the threshold)."""
    match comparison:
        case Comparison.GREATER_THAN:
            return actual > low
        case Comparison.LESS_THAN:
            return actual < low
        case Comparison.GREATER_EQUAL:
            return actual >= low
        case Comparison.LESS_EQUAL:
            return actual <= low
        case Comparison.EQUAL:
            return math.isclose(actual, low, rel_tol=1e-9, abs_tol=1e-12)
        case Comparison.NOT_EQUAL:
            return not math.isclose(actual, low, rel_tol=1e-9, abs_tol=1e-12)
        case Comparison.IN_RANGE:
            return low <= actual <= high
        case Comparison.SIGNAL_STATE:
            raise ValueError("SignalState is not a numeric comparison")
        case _:
            assert_never(comparison)


def condition_sign(cond: Condition, value: IndicatorValue) -> int:
    """Direction a match of ``cond`` points in: +1 bullish, -1 bearish, 0 neither."""
    if cond.comparison is Comparison.SIGNAL_STATE:
        score = state_score(value)
        return (score > 0) - (score < 0)
    polarity = POLARITY[cond.indicator]
    if cond.comparison in (Comparison.LESS_THAN, Comparison.LESS_EQUAL):
        return -polarity
    return polarity


class RuleEvaluator:
    """Stateless interpreter for strategy rule trees.

    ``evaluate`` is a pure function of (strategy, snapshot) and is safe to
    call from many threads at once.
    """

    def __init__(self, validate: bool = True):
        self.validate = validate

    def evaluate(self, strategy: Strategy, snapshot: IndicatorSnapshot) -> RuleEvaluation:
        if self.validate:
            validate_strategy(strategy)

        traces: list[RuleTrace] = []
        result = self._node(strategy.rule, "root", strategy.method, snapshot, traces)
        max_score = strategy.max_score()

        match strategy.method:
            case AggregationMethod.ALL:
                leaves = [t for t in traces if t.is_leaf]
                matched = all(t.status is TraceStatus.MATCHED for t in leaves)
                score = max_score if matched else 0.0
            case AggregationMethod.ANY:
                leaves = [t for t in traces if t.is_leaf]
                matched = any(t.status is TraceStatus.MATCHED for t in leaves)
                score = max_score if matched else 0.0
            case AggregationMethod.SUM | AggregationMethod.WEIGHTED_SUM | AggregationMethod.MAJORITY:
                score = result.contribution
            case _:
                assert_never(strategy.method)

        available = any(indicator in snapshot for indicator in strategy.indicators())
        logger.debug(
            "Strategy %s on %s: score=%.4f max=%.4f (%s)",
            strategy.name,
            snapshot.symbol,
            score,
            max_score,
            strategy.method.value,
        )
        return RuleEvaluation(
            strategy=strategy.name,
            score=float(score),
            max_score=max_score,
            traces=tuple(traces),
            available=available,
            applicable_max=result.possible,
        )

    def _node(
        self,
        node: Condition | Group,
        path: str,
        method: AggregationMethod,
        snapshot: IndicatorSnapshot,
        traces: list[RuleTrace],
    ) -> _Result:
        match node:
            case Condition():
                return self._condition(node, path, method, snapshot, traces)
            case Group():
                return self._group(node, path, method, snapshot, traces)
            case _:
                assert_never(node)

    def _condition(
        self,
        cond: Condition,
        path: str,
        method: AggregationMethod,
        snapshot: IndicatorSnapshot,
        traces: list[RuleTrace],
    ) -> _Result:
        value = snapshot.get(cond.indicator)
        actual = value.get(cond.field) if value is not None else None

        if value is None or (cond.comparison.is_numeric and actual is None):
            result = _Result(matched=False, applicable=False, contribution=0.0)
            status = TraceStatus.INAPPLICABLE
        else:
            if cond.comparison is Comparison.SIGNAL_STATE:
                matched = value.state is parse_state(cond.indicator, cond.signal_state)
            else:
                matched = compare(cond.comparison, actual, cond.threshold, cond.threshold_high)

            contribution = 0.0
            if matched:
                contribution = float(condition_sign(cond, value))
                if method is AggregationMethod.WEIGHTED_SUM:
                    contribution *= cond.effective_weight
            possible = cond.effective_weight
            if method in (AggregationMethod.SUM, AggregationMethod.MAJORITY):
                possible = 1.0
            result = _Result(matched=matched, applicable=True, contribution=contribution, possible=possible)
            status = TraceStatus.MATCHED if matched else TraceStatus.UNMATCHED

        traces.append(
            RuleTrace(
                path=path,
                description=cond.describe(),
                status=status,
                contribution=result.contribution,
                weight=cond.effective_weight,
                is_leaf=True,
                node_id=cond.id,
            )
        )
        return result

    def _group(
        self,
        group: Group,
        path: str,
        method: AggregationMethod,
        snapshot: IndicatorSnapshot,
        traces: list[RuleTrace],
    ) -> _Result:
        index = len(traces)
        children = [
            self._node(child, f"{path}.{i}", method, snapshot, traces)
            for i, child in enumerate(group.children)
        ]

        if group.operator is LogicalOperator.AND:
            matched = all(c.matched for c in children)
        else:
            matched = any(c.matched for c in children)
        applicable = any(c.applicable for c in children)

        if method is AggregationMethod.MAJORITY:
            possible = float(sum(1 for c in children if c.applicable))
        else:
            possible = sum(c.possible for c in children)
            if method is AggregationMethod.WEIGHTED_SUM:
                possible *= group.effective_weight

        if not matched:
            contribution = 0.0
        elif method is AggregationMethod.MAJORITY:
            positive = sum(1 for c in children if c.matched and c.contribution > 0)
            negative = sum(1 for c in children if c.matched and c.contribution < 0)
            contribution = float(positive - negative)
        else:
            contribution = sum(c.contribution for c in children if c.matched)
            if method is AggregationMethod.WEIGHTED_SUM:
                contribution *= group.effective_weight

        if not applicable:
            status = TraceStatus.INAPPLICABLE
        elif matched:
            status = TraceStatus.MATCHED
        else:
            status = TraceStatus.UNMATCHED

        traces.insert(
            index,
            RuleTrace(
                path=path,
                description=group.describe(),
                status=status,
                contribution=contribution,
                weight=group.effective_weight,
                is_leaf=False,
                node_id=group.id,
            ),
        )
        return _Result(matched=matched, applicable=applicable, contribution=contribution, possible=possible)
