"""Tests for YAML configuration and strategy loading."""

import pytest
from pydantic import ValidationError

from perpsignal.errors import InvalidStrategyConfiguration
from perpsignal.models import AggregationMethod, EngineConfig, Group
from perpsignal.settings import Settings, load_engine_config, load_strategies, parse_strategy

STRATEGIES_YAML = """
strategies:
  - name: rsi_bounce
    symbol: BTCUSDT
    method: Sum
    thresholds: {long_min: 1, short_max: -1}
    rule: {type: Condition, indicator: Rsi, comparison: SignalState, signal_state: Oversold}
  - name: trend_and_momentum
    symbol: ETHUSDT
    method: WeightedSum
    thresholds: {long_min: 2, short_max: -2}
    rule:
      type: Group
      operator: AND
      children:
        - {type: Condition, indicator: Ema, comparison: GreaterThan, threshold: 0, weight: 2}
        - {type: Condition, indicator: Macd, comparison: GreaterThan, threshold: 0, field: macd}
"""


class TestEngineConfig:
    def test_missing_file_gives_defaults(self, tmp_path):
        assert load_engine_config(tmp_path / "absent.yaml") == EngineConfig()

    def test_partial_overrides(self, tmp_path):
        path = tmp_path / "perpsignal.yaml"
        path.write_text(
            "indicators:\n"
            "  rsi_period: 21\n"
            "  ema_extra_periods: [200]\n"
            "risk: {sl_atr_mult: 1.5, tp_atr_mult: 3.0}\n"
        )
        config = load_engine_config(path)
        assert config.indicators.rsi_period == 21
        assert config.indicators.ema_extra_periods == (200,)
        assert config.indicators.macd_fast == 12
        assert config.risk.sl_atr_mult == 1.5

    def test_out_of_range(self, tmp_path):
        path = tmp_path / "perpsignal.yaml"
        path.write_text("indicators: {macd_fast: 30, macd_slow: 26}\n")
        with pytest.raises(ValidationError, match="macd_fast"):
            load_engine_config(path)

    def test_top_level_must_be_mapping(self, tmp_path):
        path = tmp_path / "perpsignal.yaml"
        path.write_text("- 1\n- 2\n")
        with pytest.raises(ValueError, match="mapping"):
            load_engine_config(path)


class TestStrategies:
    def test_load(self, tmp_path):
        path = tmp_path / "strategies.yaml"
        path.write_text(STRATEGIES_YAML)
        strategies = load_strategies(path)
        assert [s.name for s in strategies] == ["rsi_bounce", "trend_and_momentum"]
        assert strategies[1].method is AggregationMethod.WEIGHTED_SUM
        assert isinstance(strategies[1].rule, Group)
        assert strategies[1].rule.children[0].weight == 2.0

    def test_missing_file(self, tmp_path):
        assert load_strategies(tmp_path / "absent.yaml") == []

    def test_unparseable_strategy(self):
        raw = {
            "name": "bad",
            "symbol": "BTCUSDT",
            "thresholds": {"long_min": 1, "short_max": -1},
            "rule": {"type": "Condition", "indicator": "Stochastic", "comparison": "GreaterThan"},
        }
        with pytest.raises(InvalidStrategyConfiguration, match="bad-source"):
            parse_strategy(raw, "bad-source")

    def test_unknown_key_rejected(self):
        raw = {
            "name": "typo",
            "symbol": "BTCUSDT",
            "thresholds": {"long_min": 1, "short_max": -1},
            "rule": {"type": "Condition", "indicator": "Rsi", "comparison": "LessThan",
                     "threshold": 30, "treshold_high": 40},
        }
        with pytest.raises(InvalidStrategyConfiguration):
            parse_strategy(raw)

    def test_semantically_invalid_strategy(self, tmp_path):
        path = tmp_path / "strategies.yaml"
        path.write_text(
            "strategies:\n"
            "  - name: empty\n"
            "    symbol: BTCUSDT\n"
            "    thresholds: {long_min: 1, short_max: -1}\n"
            "    rule: {type: Group, operator: OR, children: []}\n"
        )
        with pytest.raises(InvalidStrategyConfiguration, match="no children"):
            load_strategies(path)


class TestSettings:
    def test_env_override(self, monkeypatch, tmp_path):
        monkeypatch.setenv("PERPSIGNAL_CONFIG_PATH", str(tmp_path / "custom.yaml"))
        monkeypatch.setenv("PERPSIGNAL_MAX_WORKERS", "4")
        settings = Settings()
        assert settings.config_path == tmp_path / "custom.yaml"
        assert settings.max_workers == 4
        assert settings.log_level == "INFO"
