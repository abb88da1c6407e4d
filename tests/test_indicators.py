"""Tests for technical indicators."""

import math

import numpy as np
import pytest

from perpsignal.indicators import (
    INDICATORS,
    IndicatorCalculator,
    atr,
    compute_atr,
    compute_bollinger,
    compute_ema,
    compute_funding,
    compute_macd,
    compute_obv,
    compute_open_interest,
    compute_rsi,
    compute_supertrend,
    compute_volume_profile,
    divergence,
    ema,
    rolling_std,
    rsi_series,
    sma,
    true_range,
    wilder,
)
from perpsignal.indicators.momentum import classify_macd
from perpsignal.indicators.perp import classify_funding
from perpsignal.indicators.volatility import classify_regime
from perpsignal.errors import InsufficientHistory
from perpsignal.models import CandleSeries, IndicatorId
from perpsignal.models.config import IndicatorParams
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
from tests.factories import linear, make_candle, make_series, zigzag

PARAMS = IndicatorParams()


class TestPrimitives:
    """Tests for the NumPy building blocks."""

    def test_ema_seeded_with_sma(self):
        result = ema([float(i) for i in range(1, 11)], 5)
        assert np.all(np.isnan(result[:4]))
        assert result[4] == pytest.approx(3.0)  # (1+2+3+4+5)/5
        assert result[5] == pytest.approx(6 / 3 + 3 * 2 / 3)

    def test_ema_skips_leading_nan(self):
        values = [np.nan, np.nan, 1.0, 2.0, 3.0, 4.0]
        result = ema(values, 3)
        assert np.all(np.isnan(result[:4]))
        assert result[4] == pytest.approx(2.0)

    def test_ema_insufficient_data(self):
        result = ema([100.0, 101.0, 102.0], 10)
        assert len(result) == 3
        assert np.all(np.isnan(result))

    def test_sma(self):
        result = sma([float(i) for i in range(1, 11)], 3)
        assert np.all(np.isnan(result[:2]))
        assert result[2] == pytest.approx(2.0)
        assert result[3] == pytest.approx(3.0)

    def test_rolling_std_is_population(self):
        result = rolling_std([1.0, 2.0, 3.0], 3)
        assert result[2] == pytest.approx(math.sqrt(2 / 3))

    def test_wilder(self):
        result = wilder([2.0, 2.0, 2.0, 8.0], 3)
        assert result[2] == pytest.approx(2.0)
        assert result[3] == pytest.approx((2.0 * 2 + 8.0) / 3)

    def test_true_range_uses_previous_close(self):
        tr = true_range([102.0, 110.0], [100.0, 108.0], [101.0, 109.0])
        assert tr[0] == pytest.approx(2.0)
        assert tr[1] == pytest.approx(9.0)  # high - prev close

    def test_atr_constant_range(self):
        result = atr([102.0] * 20, [100.0] * 20, [101.0] * 20, 9)
        assert np.all(np.isnan(result[:8]))
        assert result[-1] == pytest.approx(2.0)

    def test_divergence_bearish(self):
        prices = [10, 12, 11, 10, 11, 13]
        osc = [50, 70, 60, 55, 60, 65]
        assert divergence(prices, osc, 5) == -1

    def test_divergence_bullish(self):
        prices = [10, 8, 9, 10, 9, 7]
        osc = [50, 30, 40, 45, 40, 35]
        assert divergence(prices, osc, 5) == 1

    def test_divergence_none_when_oscillator_confirms(self):
        prices = [10, 12, 11, 10, 11, 13]
        osc = [50, 70, 60, 55, 60, 75]
        assert divergence(prices, osc, 5) == 0

    def test_divergence_short_window(self):
        assert divergence([1, 2, 3], [1, 2, 3], 5) == 0


class TestWarmup:
    """An indicator is unavailable below its warm-up length and present at it."""

    EXPECTED = {
        IndicatorId.MACD: 34,
        IndicatorId.RSI: 15,
        IndicatorId.EMA: 50,
        IndicatorId.SUPERTREND: 10,
        IndicatorId.BOLLINGER: 20,
        IndicatorId.ATR: 14,
        IndicatorId.OBV: 2,
        IndicatorId.VOLUME_PROFILE: 20,
        IndicatorId.FUNDING_RATE: 2,
        IndicatorId.OPEN_INTEREST: 2,
    }

    def _series(self, n):
        closes = [c + 0.1 * i for i, c in enumerate(zigzag(n))]
        return make_series(
            closes,
            funding_rates=[0.0001] * n,
            open_interests=[1000.0 + i for i in range(n)],
        )

    def test_default_warmups(self):
        assert IndicatorCalculator().warmups() == self.EXPECTED

    @pytest.mark.parametrize("indicator", list(INDICATORS))
    def test_boundary(self, indicator):
        calc = IndicatorCalculator()
        required = calc.warmup(indicator)
        if required > 1:
            assert calc.compute(indicator, self._series(required - 1)) is None
        value = calc.compute(indicator, self._series(required))
        assert value is not None
        assert value.indicator is indicator
        assert all(math.isfinite(v) for v in value.values.values())

    @pytest.mark.parametrize("indicator", list(INDICATORS))
    def test_longer_windows_stay_available(self, indicator):
        calc = IndicatorCalculator()
        required = calc.warmup(indicator)
        for n in (required + 1, required + 7, 200):
            assert calc.compute(indicator, self._series(n)) is not None

    def test_compute_raises_insufficient_history(self):
        with pytest.raises(InsufficientHistory) as exc:
            compute_rsi(self._series(5), PARAMS)
        assert exc.value.required == 15
        assert exc.value.available == 5

    def test_perp_metrics_count_observations_not_candles(self):
        series = make_series(linear(30), funding_rates=[None] * 29 + [0.0001])
        with pytest.raises(InsufficientHistory):
            compute_funding(series, PARAMS)


class TestMacd:
    def test_classify_cross(self):
        assert classify_macd(np.array([np.nan, -0.5, 0.3])) is MacdSignal.BULLISH_CROSS
        assert classify_macd(np.array([0.2, 0.1, -0.1])) is MacdSignal.BEARISH_CROSS

    def test_classify_momentum(self):
        assert classify_macd(np.array([0.1, 0.2, 0.4])) is MacdSignal.BULLISH_MOMENTUM
        assert classify_macd(np.array([-0.1, -0.2, -0.4])) is MacdSignal.BEARISH_MOMENTUM

    def test_classify_fading_is_neutral(self):
        assert classify_macd(np.array([0.4, 0.2, 0.1])) is MacdSignal.NEUTRAL
        assert classify_macd(np.array([np.nan, 0.1])) is MacdSignal.NEUTRAL

    def test_values_consistent(self):
        value = compute_macd(make_series(linear(80)), PARAMS)
        assert value.values["histogram"] == pytest.approx(
            value.values["macd"] - value.values["signal"]
        )
        assert value.values["macd"] > 0  # fast EMA above slow in an uptrend


class TestRsi:
    def test_all_gains(self):
        assert rsi_series(linear(20), 14)[-1] == pytest.approx(100.0)

    def test_flat_is_50(self):
        assert rsi_series([100.0] * 20, 14)[-1] == pytest.approx(50.0)

    def test_oversold(self):
        value = compute_rsi(make_series(linear(40, start=150.0, step=-1.0)), PARAMS)
        assert value.state is RsiSignal.OVERSOLD
        assert value.values["rsi"] < 30

    def test_overbought(self):
        value = compute_rsi(make_series(linear(40)), PARAMS)
        assert value.state is RsiSignal.OVERBOUGHT

    def test_neutral_in_range(self):
        value = compute_rsi(make_series(zigzag(60)), PARAMS)
        assert value.state is RsiSignal.NEUTRAL
        assert 30 <= value.values["rsi"] <= 70

    def test_bullish_divergence_wins_over_zone(self):
        closes = linear(41, start=100.0, step=-0.5)  # ends at 80
        closes += [81.0, 82.0, 83.0, 84.0, 85.0, 79.9]
        value = compute_rsi(make_series(closes), PARAMS)
        assert value.state is RsiSignal.BULLISH_DIVERGENCE


class TestEma:
    def test_bullish_cross(self):
        value = compute_ema(make_series([100.0] * 60 + [105.0]), PARAMS)
        assert value.state is EmaSignal.BULLISH_CROSS
        assert value.values["fast"] > value.values["slow"]

    def test_bearish_cross(self):
        value = compute_ema(make_series([100.0] * 60 + [95.0]), PARAMS)
        assert value.state is EmaSignal.BEARISH_CROSS

    def test_strong_uptrend(self):
        value = compute_ema(make_series(linear(100)), PARAMS)
        assert value.state is EmaSignal.STRONG_UPTREND
        assert value.values["spread"] > 0

    def test_strong_downtrend(self):
        value = compute_ema(make_series(linear(100, start=200.0, step=-0.5)), PARAMS)
        assert value.state is EmaSignal.STRONG_DOWNTREND
        assert value.values["spread"] < 0

    def test_extra_periods_reported_when_covered(self):
        params = IndicatorParams(ema_extra_periods=(10, 200))
        value = compute_ema(make_series(linear(100)), params)
        assert "ema_10" in value.values
        assert "ema_200" not in value.values


class TestSuperTrend:
    def test_uptrend_is_bullish(self):
        value = compute_supertrend(make_series(linear(60)), PARAMS)
        assert value.state is SuperTrendSignal.BULLISH
        assert value.values["trend"] == 1.0
        assert value.values["value"] == value.values["lower_band"]

    def test_crash_flips_bearish(self):
        value = compute_supertrend(make_series(linear(60) + [100.0]), PARAMS)
        assert value.state is SuperTrendSignal.BEARISH_FLIP
        assert value.values["trend"] == -1.0
        assert value.values["value"] == value.values["upper_band"]


class TestAtr:
    def test_constant_range_is_normal(self):
        value = compute_atr(make_series([100.0] * 40), PARAMS)
        assert value.state is VolatilityRegime.NORMAL
        assert value.values["atr"] == pytest.approx(2.0)
        assert value.values["atr_pct"] == pytest.approx(0.02)

    def test_range_expansion_is_high(self):
        candles = [make_candle(i, 100.0) for i in range(40)]
        candles.append(make_candle(40, 100.0, spread=20.0))
        value = compute_atr(CandleSeries(candles), PARAMS)
        assert value.state is VolatilityRegime.HIGH

    @pytest.mark.parametrize(
        "ratio, regime",
        [
            (1.6, VolatilityRegime.HIGH),
            (1.5, VolatilityRegime.ELEVATED),
            (1.0, VolatilityRegime.NORMAL),
            (0.7, VolatilityRegime.LOW),
        ],
    )
    def test_classify_regime(self, ratio, regime):
        assert classify_regime(ratio) is regime


class TestBollinger:
    def test_upper_breakout(self):
        value = compute_bollinger(make_series(zigzag(150) + [110.0]), PARAMS)
        assert value.state is BollingerSignal.UPPER_BREAKOUT
        assert value.values["percent_b"] > 1.0

    def test_lower_breakout(self):
        value = compute_bollinger(make_series(zigzag(150) + [90.0]), PARAMS)
        assert value.state is BollingerSignal.LOWER_BREAKOUT

    def test_squeeze(self):
        closes = zigzag(130, amplitude=10.0) + zigzag(20, amplitude=0.2)
        value = compute_bollinger(make_series(closes), PARAMS)
        assert value.state is BollingerSignal.SQUEEZE

    def test_flat_is_neutral(self):
        value = compute_bollinger(make_series([100.0] * 30), PARAMS)
        assert value.state is BollingerSignal.NEUTRAL
        assert value.values["bandwidth"] == 0.0
        assert value.values["percent_b"] == 0.5

    def test_band_ordering(self):
        value = compute_bollinger(make_series(zigzag(60)), PARAMS)
        assert value.values["lower"] < value.values["middle"] < value.values["upper"]


class TestObv:
    def test_uptrend_confirmation(self):
        value = compute_obv(make_series(linear(30)), PARAMS)
        assert value.state is ObvSignal.CONFIRMATION
        assert value.values["obv"] == pytest.approx(29 * 100.0)
        assert value.values["obv_change"] > 0

    def test_downtrend_confirmation_is_negative(self):
        value = compute_obv(make_series(linear(30, start=150.0, step=-1.0)), PARAMS)
        assert value.state is ObvSignal.CONFIRMATION
        assert value.values["obv_change"] < 0

    def test_bearish_divergence(self):
        closes = [100.0 + i for i in range(14)] + [112.5, 113.5]
        volumes = [100.0] * 14 + [10_000.0, 1.0]
        value = compute_obv(make_series(closes, volumes=volumes), PARAMS)
        assert value.state is ObvSignal.BEARISH_DIVERGENCE


class TestVolumeProfile:
    def _closes(self, last):
        return [100.0] * 25 + [101.0 + i for i in range(10)] + [last]

    def _volumes(self):
        return [1000.0] * 25 + [10.0] * 11

    def test_poc_support(self):
        value = compute_volume_profile(
            make_series(self._closes(100.5), volumes=self._volumes()), PARAMS
        )
        assert value.values["poc"] == pytest.approx(100.25)
        assert value.values["bucket_width"] == pytest.approx(0.5)
        assert value.state is VolumeProfileSignal.POC_SUPPORT

    def test_poc_resistance(self):
        value = compute_volume_profile(
            make_series(self._closes(99.9), volumes=self._volumes()), PARAMS
        )
        assert value.state is VolumeProfileSignal.POC_RESISTANCE

    def test_value_area_contains_poc(self):
        value = compute_volume_profile(
            make_series(self._closes(105.0), volumes=self._volumes()), PARAMS
        )
        assert value.values["value_area_low"] <= value.values["poc"] <= value.values["value_area_high"]

    def test_far_from_poc_in_thin_bucket(self):
        value = compute_volume_profile(
            make_series(self._closes(108.0), volumes=self._volumes()), PARAMS
        )
        assert value.state in (VolumeProfileSignal.NEAR_LVN, VolumeProfileSignal.NEUTRAL)
        assert value.values["distance_pct"] > 0


class TestFunding:
    @pytest.mark.parametrize(
        "rate, state",
        [
            (0.002, FundingSignal.EXTREME_LONG_BIAS),
            (-0.002, FundingSignal.EXTREME_SHORT_BIAS),
            (0.0007, FundingSignal.HIGH_LONG_BIAS),
            (-0.0007, FundingSignal.HIGH_SHORT_BIAS),
            (0.0001, FundingSignal.NEUTRAL_POSITIVE),
            (-0.0001, FundingSignal.NEUTRAL_NEGATIVE),
            (0.0, FundingSignal.NEUTRAL),
        ],
    )
    def test_classify(self, rate, state):
        assert classify_funding(rate, PARAMS) is state

    def test_window_average_and_delta(self):
        rates = [0.0001] * 29 + [0.0025]
        value = compute_funding(make_series(linear(30), funding_rates=rates), PARAMS)
        assert value.state is FundingSignal.EXTREME_LONG_BIAS
        assert value.values["delta"] == pytest.approx(0.0024)
        assert value.values["average_24h"] == pytest.approx((23 * 0.0001 + 0.0025) / 24)


class TestOpenInterest:
    @pytest.mark.parametrize(
        "closes, oi, state",
        [
            ([100.0, 101.0], [1000.0, 1030.0], OpenInterestSignal.BULLISH_EXPANSION),
            ([100.0, 99.0], [1000.0, 1030.0], OpenInterestSignal.BEARISH_EXPANSION),
            ([100.0, 99.0], [1000.0, 970.0], OpenInterestSignal.LONG_SQUEEZE),
            ([100.0, 101.0], [1000.0, 970.0], OpenInterestSignal.SHORT_SQUEEZE),
            ([100.0, 101.0], [1000.0, 1010.0], OpenInterestSignal.NEUTRAL),
        ],
    )
    def test_states(self, closes, oi, state):
        value = compute_open_interest(make_series(closes, open_interests=oi), PARAMS)
        assert value.state is state

    def test_change_pct(self):
        value = compute_open_interest(
            make_series([100.0, 101.0], open_interests=[1000.0, 1030.0]), PARAMS
        )
        assert value.values["change_pct"] == pytest.approx(3.0)


class TestIndicatorCalculator:
    def test_full_snapshot(self):
        n = 300
        series = make_series(
            [c + 0.05 * i for i, c in enumerate(zigzag(n))],
            funding_rates=[0.0001] * n,
            open_interests=[1000.0 + i for i in range(n)],
        )
        snapshot = IndicatorCalculator().calculate(series, "BTCUSDT")
        assert set(snapshot) == set(IndicatorId)
        assert snapshot.price == series.last.close
        assert snapshot.timestamp == series.last.timestamp
        assert snapshot.missing() == []

    def test_single_candle_snapshot_is_empty(self):
        snapshot = IndicatorCalculator().calculate(make_series([100.0]), "BTCUSDT")
        assert len(snapshot) == 0
        assert snapshot.atr is None

    def test_only_restricts_computation(self):
        snapshot = IndicatorCalculator().calculate(
            make_series(linear(60)), "BTCUSDT", only={IndicatorId.RSI}
        )
        assert list(snapshot) == [IndicatorId.RSI]

    def test_no_perp_metrics(self):
        snapshot = IndicatorCalculator().calculate(make_series(linear(60)), "BTCUSDT")
        assert IndicatorId.FUNDING_RATE not in snapshot
        assert IndicatorId.OPEN_INTEREST not in snapshot
        assert IndicatorId.EMA in snapshot
