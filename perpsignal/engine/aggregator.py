"""Category aggregator: fixed state scores summed per indicator family.

Every indicator state maps to a small integer. Scores are summed per
category, each category is clamped (momentum/trend to +-3, the rest to +-2),
and the clamped category scores add up to the total that classifies market
bias. Category weights travel with the breakdown and the reasons but are not
multiplied into the integers.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping

from perpsignal.engine.explain import ExplanationBuilder
from perpsignal.models.config import BiasThresholds, CategoryWeights
from perpsignal.models.indicators import (
    INDICATOR_CATEGORY,
    BollingerSignal,
    Category,
    EmaSignal,
    FundingSignal,
    IndicatorId,
    IndicatorSnapshot,
    IndicatorValue,
    MacdSignal,
    ObvSignal,
    OpenInterestSignal,
    RsiSignal,
    SuperTrendSignal,
    VolatilityRegime,
    VolumeProfileSignal,
)
from perpsignal.models.signal import Direction, MarketBias, Reason, RiskLevel

logger = logging.getLogger(__name__)

CATEGORY_CLAMP: Mapping[Category, int] = MappingProxyType({
    Category.MOMENTUM: 3,
    Category.TREND: 3,
    Category.VOLATILITY: 2,
    Category.VOLUME: 2,
    Category.PERP: 2,
})

# States absent from a table score 0 (informational).
STATE_SCORES: Mapping[IndicatorId, Mapping] = MappingProxyType({
    IndicatorId.MACD: {
        MacdSignal.BULLISH_CROSS: 2,
        MacdSignal.BEARISH_CROSS: -2,
        MacdSignal.BULLISH_MOMENTUM: 1,
        MacdSignal.BEARISH_MOMENTUM: -1,
    },
    IndicatorId.RSI: {
        RsiSignal.BULLISH_DIVERGENCE: 2,
        RsiSignal.BEARISH_DIVERGENCE: -2,
        RsiSignal.OVERSOLD: 1,
        RsiSignal.OVERBOUGHT: -1,
    },
    IndicatorId.EMA: {
        EmaSignal.BULLISH_CROSS: 2,
        EmaSignal.BEARISH_CROSS: -2,
        EmaSignal.STRONG_UPTREND: 1,
        EmaSignal.STRONG_DOWNTREND: -1,
    },
    IndicatorId.SUPERTREND: {
        SuperTrendSignal.BULLISH_FLIP: 2,
        SuperTrendSignal.BEARISH_FLIP: -2,
        SuperTrendSignal.BULLISH: 1,
        SuperTrendSignal.BEARISH: -1,
    },
    IndicatorId.BOLLINGER: {
        BollingerSignal.UPPER_BREAKOUT: 1,
        BollingerSignal.LOWER_BREAKOUT: -1,
    },
    IndicatorId.ATR: {},
    IndicatorId.OBV: {
        ObvSignal.BULLISH_DIVERGENCE: 2,
        ObvSignal.BEARISH_DIVERGENCE: -2,
    },
    IndicatorId.VOLUME_PROFILE: {
        VolumeProfileSignal.POC_SUPPORT: 1,
        VolumeProfileSignal.POC_RESISTANCE: -1,
    },
    IndicatorId.FUNDING_RATE: {
        # contrarian: crowded longs are bearish
        FundingSignal.EXTREME_LONG_BIAS: -1,
        FundingSignal.EXTREME_SHORT_BIAS: 1,
    },
    IndicatorId.OPEN_INTEREST: {
        OpenInterestSignal.BULLISH_EXPANSION: 2,
        OpenInterestSignal.BEARISH_EXPANSION: -2,
        OpenInterestSignal.SHORT_SQUEEZE: 1,
        OpenInterestSignal.LONG_SQUEEZE: -1,
    },
})


def state_score(value: IndicatorValue) -> int:
    """Signed score of an indicator's current state.

    OBV confirmation takes the sign of the smoothed-OBV move, which matches
    the price move by construction.
    """
    if value.state is None:
        return 0
    if value.state is ObvSignal.CONFIRMATION:
        change = value.values.get("obv_change", 0.0)
        return (change > 0) - (change < 0)
    return STATE_SCORES[value.indicator].get(value.state, 0)


def _sign(x: float) -> int:
    return (x > 0) - (x < 0)


@dataclass(frozen=True, slots=True)
class CategoryScore:
    """Per-category breakdown row."""

    category: Category
    raw: int
    score: int
    clamp: int
    weight: float
    available: bool


@dataclass(frozen=True, slots=True)
class AggregateResult:
    total: int
    bias: MarketBias
    confidence: float
    risk: RiskLevel
    categories: tuple[CategoryScore, ...]
    reasons: tuple[Reason, ...]

    @property
    def direction(self) -> Direction:
        return self.bias.direction

    def category(self, category: Category) -> CategoryScore:
        return next(c for c in self.categories if c.category is category)


class CategoryAggregator:
    """Scores an indicator snapshot without a user-authored strategy."""

    def __init__(
        self,
        weights: CategoryWeights | None = None,
        bias: BiasThresholds | None = None,
    ):
        self.weights = weights or CategoryWeights()
        self.bias = bias or BiasThresholds()

    def classify_bias(self, total: float) -> MarketBias:
        if total >= self.bias.strong_bullish:
            return MarketBias.STRONG_BULLISH
        if total >= self.bias.bullish:
            return MarketBias.BULLISH
        if total > self.bias.bearish:
            return MarketBias.NEUTRAL
        if total > self.bias.strong_bearish:
            return MarketBias.BEARISH
        return MarketBias.STRONG_BEARISH

    def aggregate(self, snapshot: IndicatorSnapshot) -> AggregateResult:
        """Score ``snapshot`` and explain every indicator's part in it."""
        explanation = ExplanationBuilder()
        raw = {category: 0 for category in Category}

        for indicator in IndicatorId:
            category = INDICATOR_CATEGORY[indicator]
            weight = self.weights.weight(category)
            value = snapshot.get(indicator)
            if value is None:
                explanation.note(
                    indicator.value,
                    f"{indicator.value} unavailable (insufficient history)",
                    weight,
                )
                continue

            score = state_score(value)
            raw[category] += score
            state = value.state.value if value.state is not None else "n/a"
            explanation.add(indicator.value, float(score), weight, f"{indicator.value} {state}")

        available = snapshot.available_categories()
        categories = tuple(
            CategoryScore(
                category=category,
                raw=raw[category],
                score=max(-CATEGORY_CLAMP[category], min(CATEGORY_CLAMP[category], raw[category])),
                clamp=CATEGORY_CLAMP[category],
                weight=self.weights.weight(category),
                available=category in available,
            )
            for category in Category
        )
        total = sum(c.score for c in categories)
        bias = self.classify_bias(total)
        confidence = self._confidence(total, categories)
        risk = self._risk(snapshot, total)

        logger.debug(
            "%s category scores %s total=%d bias=%s confidence=%.3f risk=%s",
            snapshot.symbol,
            {c.category.value: c.score for c in categories},
            total,
            bias.value,
            confidence,
            risk.value,
        )
        return AggregateResult(
            total=total,
            bias=bias,
            confidence=confidence,
            risk=risk,
            categories=categories,
            reasons=explanation.build(),
        )

    @staticmethod
    def _confidence(total: int, categories: tuple[CategoryScore, ...]) -> float:
        """Agreement and magnitude, scaled by trend/momentum alignment.

        agreement: share of available categories whose sign equals the total's.
        magnitude: |total| over the sum of available categories' clamps.
        """
        available = [c for c in categories if c.available]
        if total == 0 or not available:
            return 0.0

        direction = _sign(total)
        agreement = sum(1 for c in available if _sign(c.score) == direction) / len(available)
        magnitude = abs(total) / sum(c.clamp for c in available)
        base = 0.5 * agreement + 0.5 * magnitude

        by_category = {c.category: c for c in categories}
        trend = _sign(by_category[Category.TREND].score)
        momentum = _sign(by_category[Category.MOMENTUM].score)
        factor = 1.2 if trend != 0 and trend == momentum else 0.8

        return max(0.0, min(1.0, base * factor))

    @staticmethod
    def _risk(snapshot: IndicatorSnapshot, total: int) -> RiskLevel:
        points = 0
        if snapshot.state(IndicatorId.ATR) is VolatilityRegime.HIGH:
            points += 2
        if snapshot.state(IndicatorId.FUNDING_RATE) in (
            FundingSignal.EXTREME_LONG_BIAS,
            FundingSignal.EXTREME_SHORT_BIAS,
        ):
            points += 1
        if abs(total) < 2:
            points += 1
        if snapshot.state(IndicatorId.RSI) in (
            RsiSignal.BULLISH_DIVERGENCE,
            RsiSignal.BEARISH_DIVERGENCE,
        ):
            points = max(0, points - 1)

        if points >= 3:
            return RiskLevel.HIGH
        if points >= 1:
            return RiskLevel.MEDIUM
        return RiskLevel.LOW
