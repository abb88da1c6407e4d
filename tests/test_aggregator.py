"""Tests for the category aggregator."""

import pytest

from perpsignal.engine.aggregator import CATEGORY_CLAMP, CategoryAggregator, state_score
from perpsignal.models import Category, IndicatorId, MarketBias, RiskLevel
from perpsignal.models.config import BiasThresholds, CategoryWeights
from perpsignal.models.indicators import (
    BollingerSignal,
    EmaSignal,
    FundingSignal,
    MacdSignal,
    ObvSignal,
    OpenInterestSignal,
    RsiSignal,
    SuperTrendSignal,
    VolatilityRegime,
    VolumeProfileSignal,
)
from tests.factories import make_snapshot, make_value


def _bullish_snapshot():
    return make_snapshot(
        make_value(IndicatorId.RSI, RsiSignal.OVERSOLD, rsi=22.0),
        make_value(IndicatorId.MACD, MacdSignal.BULLISH_MOMENTUM, histogram=0.4),
        make_value(IndicatorId.EMA, EmaSignal.BULLISH_CROSS, spread=0.2),
        make_value(IndicatorId.ATR, VolatilityRegime.NORMAL, atr=1.0, atr_pct=0.01),
    )


class TestStateScore:
    """Fixed state -> score table."""

    @pytest.mark.parametrize(
        "indicator, state, expected",
        [
            (IndicatorId.EMA, EmaSignal.BULLISH_CROSS, 2),
            (IndicatorId.EMA, EmaSignal.STRONG_DOWNTREND, -1),
            (IndicatorId.SUPERTREND, SuperTrendSignal.BEARISH_FLIP, -2),
            (IndicatorId.SUPERTREND, SuperTrendSignal.BULLISH, 1),
            (IndicatorId.RSI, RsiSignal.BEARISH_DIVERGENCE, -2),
            (IndicatorId.RSI, RsiSignal.OVERSOLD, 1),
            (IndicatorId.MACD, MacdSignal.BEARISH_CROSS, -2),
            (IndicatorId.BOLLINGER, BollingerSignal.UPPER_BREAKOUT, 1),
            (IndicatorId.BOLLINGER, BollingerSignal.SQUEEZE, 0),
            (IndicatorId.ATR, VolatilityRegime.HIGH, 0),
            (IndicatorId.OBV, ObvSignal.BULLISH_DIVERGENCE, 2),
            (IndicatorId.VOLUME_PROFILE, VolumeProfileSignal.POC_RESISTANCE, -1),
            (IndicatorId.VOLUME_PROFILE, VolumeProfileSignal.NEAR_LVN, 0),
            (IndicatorId.FUNDING_RATE, FundingSignal.EXTREME_LONG_BIAS, -1),
            (IndicatorId.FUNDING_RATE, FundingSignal.HIGH_LONG_BIAS, 0),
            (IndicatorId.OPEN_INTEREST, OpenInterestSignal.BULLISH_EXPANSION, 2),
            (IndicatorId.OPEN_INTEREST, OpenInterestSignal.LONG_SQUEEZE, -1),
        ],
    )
    def test_table(self, indicator, state, expected):
        assert state_score(make_value(indicator, state)) == expected

    def test_obv_confirmation_follows_obv_direction(self):
        up = make_value(IndicatorId.OBV, ObvSignal.CONFIRMATION, obv_change=50.0)
        down = make_value(IndicatorId.OBV, ObvSignal.CONFIRMATION, obv_change=-50.0)
        assert state_score(up) == 1
        assert state_score(down) == -1

    def test_no_state_scores_zero(self):
        assert state_score(make_value(IndicatorId.RSI)) == 0


class TestCategoryAggregator:
    """Category sums, clamping, bias, confidence and risk."""

    def test_bullish_scenario(self):
        result = CategoryAggregator().aggregate(_bullish_snapshot())
        assert result.category(Category.MOMENTUM).score == 2
        assert result.category(Category.TREND).score == 2
        assert result.total == 4
        assert result.bias is MarketBias.BULLISH
        # agreement 2/3, magnitude 4/8, trend and momentum aligned
        assert result.confidence == pytest.approx((0.5 * 2 / 3 + 0.5 * 0.5) * 1.2)
        assert result.confidence > 0.5

    def test_clamping(self):
        snapshot = make_snapshot(
            make_value(IndicatorId.EMA, EmaSignal.BULLISH_CROSS),
            make_value(IndicatorId.SUPERTREND, SuperTrendSignal.BULLISH_FLIP),
        )
        result = CategoryAggregator().aggregate(snapshot)
        trend = result.category(Category.TREND)
        assert trend.raw == 4
        assert trend.score == CATEGORY_CLAMP[Category.TREND] == 3
        assert result.total == 3

    def test_empty_snapshot(self):
        result = CategoryAggregator().aggregate(make_snapshot())
        assert result.total == 0
        assert result.bias is MarketBias.NEUTRAL
        assert result.confidence == 0.0
        assert all(not c.available for c in result.categories)
        assert len(result.reasons) == len(IndicatorId)
        assert all(r.contribution == 0 for r in result.reasons)

    def test_misaligned_trend_momentum_penalised(self):
        snapshot = make_snapshot(
            make_value(IndicatorId.EMA, EmaSignal.BULLISH_CROSS),
            make_value(IndicatorId.SUPERTREND, SuperTrendSignal.BULLISH),
            make_value(IndicatorId.RSI, RsiSignal.OVERBOUGHT),
        )
        result = CategoryAggregator().aggregate(snapshot)
        assert result.total == 2
        # agreement 1/2, magnitude 2/6, factor 0.8
        assert result.confidence == pytest.approx((0.25 + 0.5 * 2 / 6) * 0.8)

    @pytest.mark.parametrize(
        "total, bias",
        [
            (7, MarketBias.STRONG_BULLISH),
            (3, MarketBias.BULLISH),
            (2, MarketBias.NEUTRAL),
            (-2, MarketBias.NEUTRAL),
            (-3, MarketBias.BEARISH),
            (-7, MarketBias.STRONG_BEARISH),
        ],
    )
    def test_bias_boundaries(self, total, bias):
        assert CategoryAggregator().classify_bias(total) is bias

    def test_custom_bias_thresholds(self):
        aggregator = CategoryAggregator(bias=BiasThresholds(strong_bullish=5, bullish=2))
        assert aggregator.classify_bias(2) is MarketBias.BULLISH
        assert aggregator.classify_bias(5) is MarketBias.STRONG_BULLISH

    def test_weights_carried_not_applied(self):
        weights = CategoryWeights(momentum=0.9, trend=0.025, volatility=0.025, volume=0.025, perp=0.025)
        heavy = CategoryAggregator(weights=weights).aggregate(_bullish_snapshot())
        default = CategoryAggregator().aggregate(_bullish_snapshot())
        assert heavy.total == default.total
        assert heavy.category(Category.MOMENTUM).weight == 0.9
        rsi = next(r for r in heavy.reasons if r.source == "Rsi")
        assert rsi.weight == 0.9

    def test_reasons_ordered_by_contribution(self):
        result = CategoryAggregator().aggregate(_bullish_snapshot())
        contributions = [abs(r.contribution) for r in result.reasons]
        nonzero = [c for c in contributions if c]
        assert nonzero == sorted(nonzero, reverse=True)
        assert result.reasons[0].source == "Ema"
        assert any(r.source == "Rsi" and "Oversold" in r.description for r in result.reasons)


class TestRisk:
    def test_high_volatility_and_weak_score(self):
        snapshot = make_snapshot(make_value(IndicatorId.ATR, VolatilityRegime.HIGH))
        assert CategoryAggregator().aggregate(snapshot).risk is RiskLevel.HIGH

    def test_strong_score_calm_market(self):
        assert CategoryAggregator().aggregate(_bullish_snapshot()).risk is RiskLevel.LOW

    def test_weak_score_is_medium(self):
        assert CategoryAggregator().aggregate(make_snapshot()).risk is RiskLevel.MEDIUM

    def test_divergence_lowers_risk(self):
        snapshot = make_snapshot(
            make_value(IndicatorId.RSI, RsiSignal.BULLISH_DIVERGENCE),
            make_value(IndicatorId.FUNDING_RATE, FundingSignal.EXTREME_SHORT_BIAS),
            make_value(IndicatorId.ATR, VolatilityRegime.HIGH),
        )
        # 2 for high volatility, 1 for extreme funding, less 1 for the divergence
        assert CategoryAggregator().aggregate(snapshot).risk is RiskLevel.MEDIUM
