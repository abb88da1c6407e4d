"""Strategy rule-tree models.

A rule tree is a closed tagged union: every node is either a ``Condition``
(leaf) or a ``Group`` (AND/OR over ordered children). Trees are parsed from
plain dicts (YAML/JSON) through the ``type`` discriminator:

    {"type": "Group", "operator": "AND", "children": [
        {"type": "Condition", "indicator": "Rsi",
         "comparison": "SignalState", "signal_state": "Oversold"},
        {"type": "Condition", "indicator": "Macd",
         "comparison": "GreaterThan", "threshold": 0, "weight": 2.0},
    ]}
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Iterator, Literal, Union, assert_never

from pydantic import BaseModel, ConfigDict, Field

from perpsignal.models.indicators import IndicatorId


class Comparison(str, Enum):
    GREATER_THAN = "GreaterThan"
    LESS_THAN = "LessThan"
    GREATER_EQUAL = "GreaterEqual"
    LESS_EQUAL = "LessEqual"
    EQUAL = "Equal"
    NOT_EQUAL = "NotEqual"
    IN_RANGE = "InRange"
    SIGNAL_STATE = "SignalState"

    @property
    def is_numeric(self) -> bool:
        return self is not Comparison.SIGNAL_STATE


class LogicalOperator(str, Enum):
    AND = "AND"
    OR = "OR"


class AggregationMethod(str, Enum):
    SUM = "Sum"
    WEIGHTED_SUM = "WeightedSum"
    MAJORITY = "Majority"
    ALL = "All"
    ANY = "Any"


class Condition(BaseModel):
    """Leaf rule: compare one indicator against a threshold or a state."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    type: Literal["Condition"] = "Condition"
    id: str | None = None
    indicator: IndicatorId
    comparison: Comparison
    threshold: float | None = None
    threshold_high: float | None = None  # upper bound for InRange
    signal_state: str | None = None
    field: str | None = None  # sub-value name; None = primary value
    weight: float | None = None

    @property
    def effective_weight(self) -> float:
        return 1.0 if self.weight is None else self.weight

    def describe(self) -> str:
        target = self.indicator.value
        if self.field:
            target = f"{target}.{self.field}"
        if self.comparison is Comparison.SIGNAL_STATE:
            return f"{target} is {self.signal_state}"
        if self.comparison is Comparison.IN_RANGE:
            return f"{target} in [{self.threshold}, {self.threshold_high}]"
        return f"{target} {self.comparison.value} {self.threshold}"


class Group(BaseModel):
    """Inner rule: AND/OR combination of ordered child rules."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    type: Literal["Group"] = "Group"
    id: str | None = None
    operator: LogicalOperator = LogicalOperator.AND
    children: tuple[Rule, ...] = ()
    # scales the group contribution under WeightedSum only; other methods ignore it
    weight: float | None = None

    @property
    def effective_weight(self) -> float:
        return 1.0 if self.weight is None else self.weight

    def describe(self) -> str:
        return f"{self.operator.value} group of {len(self.children)}"


Rule = Annotated[Union[Condition, Group], Field(discriminator="type")]

Group.model_rebuild()


class Thresholds(BaseModel):
    """Score cut-points: score >= long_min is Long, score <= short_max is Short."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    long_min: float
    short_max: float


class Strategy(BaseModel):
    """User-authored strategy: a rule tree plus how to score and threshold it.

    Construction does not validate the tree semantics; run
    ``perpsignal.engine.rules.validate_strategy`` (the registry and the
    evaluator both do) before evaluating.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str
    symbol: str
    rule: Rule
    method: AggregationMethod = AggregationMethod.SUM
    thresholds: Thresholds

    def walk(self) -> Iterator[tuple[str, Condition | Group]]:
        """Depth-first (path, node) pairs, root first, children in order."""
        stack: list[tuple[str, Condition | Group]] = [("root", self.rule)]
        while stack:
            path, node = stack.pop()
            yield path, node
            if isinstance(node, Group):
                for i in reversed(range(len(node.children))):
                    stack.append((f"{path}.{i}", node.children[i]))

    def conditions(self) -> list[Condition]:
        return [node for _, node in self.walk() if isinstance(node, Condition)]

    def indicators(self) -> set[IndicatorId]:
        """Indicators the strategy depends on."""
        return {c.indicator for c in self.conditions()}

    def max_score(self) -> float:
        """Theoretical maximum |score| of the tree under ``method``.

        Sum counts leaves; WeightedSum multiplies weights down each path;
        Majority is bounded by the number of root children; All/Any award the
        sum of leaf weights as their full score.
        """
        match self.method:
            case AggregationMethod.SUM:
                return float(len(self.conditions()))
            case AggregationMethod.WEIGHTED_SUM:
                return _weighted_max(self.rule)
            case AggregationMethod.MAJORITY:
                if isinstance(self.rule, Group):
                    return float(len(self.rule.children))
                return 1.0
            case AggregationMethod.ALL | AggregationMethod.ANY:
                return sum(c.effective_weight for c in self.conditions())
            case _:
                assert_never(self.method)


def _weighted_max(node: Condition | Group) -> float:
    if isinstance(node, Condition):
        return node.effective_weight
    return node.effective_weight * sum(_weighted_max(child) for child in node.children)
