"""Indicator identifiers, per-indicator signal states, and the snapshot."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Iterator, Mapping


class IndicatorId(str, Enum):
    """Fixed identifiers for every indicator the engine computes."""

    MACD = "Macd"
    RSI = "Rsi"
    EMA = "Ema"
    SUPERTREND = "SuperTrend"
    BOLLINGER = "Bollinger"
    ATR = "Atr"
    OBV = "Obv"
    VOLUME_PROFILE = "VolumeProfile"
    FUNDING_RATE = "FundingRate"
    OPEN_INTEREST = "OpenInterest"


class Category(str, Enum):
    """Indicator family used by the category aggregator."""

    MOMENTUM = "Momentum"
    TREND = "Trend"
    VOLATILITY = "Volatility"
    VOLUME = "Volume"
    PERP = "Perp"


# =============================================================================
# Signal states (one closed enumeration per indicator)
# =============================================================================

class MacdSignal(str, Enum):
    BULLISH_CROSS = "BullishCross"
    BEARISH_CROSS = "BearishCross"
    BULLISH_MOMENTUM = "BullishMomentum"
    BEARISH_MOMENTUM = "BearishMomentum"
    NEUTRAL = "Neutral"


class RsiSignal(str, Enum):
    OVERSOLD = "Oversold"
    OVERBOUGHT = "Overbought"
    BULLISH_DIVERGENCE = "BullishDivergence"
    BEARISH_DIVERGENCE = "BearishDivergence"
    NEUTRAL = "Neutral"


class EmaSignal(str, Enum):
    BULLISH_CROSS = "BullishCross"
    BEARISH_CROSS = "BearishCross"
    STRONG_UPTREND = "StrongUptrend"
    STRONG_DOWNTREND = "StrongDowntrend"
    NEUTRAL = "Neutral"


class SuperTrendSignal(str, Enum):
    BULLISH = "Bullish"
    BEARISH = "Bearish"
    BULLISH_FLIP = "BullishFlip"
    BEARISH_FLIP = "BearishFlip"


class BollingerSignal(str, Enum):
    SQUEEZE = "Squeeze"
    UPPER_BREAKOUT = "UpperBreakout"
    LOWER_BREAKOUT = "LowerBreakout"
    WALKING_BANDS = "WalkingBands"
    MEAN_REVERSION = "MeanReversion"
    NEUTRAL = "Neutral"


class VolatilityRegime(str, Enum):
    """ATR state: the current ATR relative to its recent average."""

    HIGH = "High"
    ELEVATED = "Elevated"
    NORMAL = "Normal"
    LOW = "Low"


class ObvSignal(str, Enum):
    BULLISH_DIVERGENCE = "BullishDivergence"
    BEARISH_DIVERGENCE = "BearishDivergence"
    CONFIRMATION = "Confirmation"
    NEUTRAL = "Neutral"


class VolumeProfileSignal(str, Enum):
    POC_SUPPORT = "PocSupport"
    POC_RESISTANCE = "PocResistance"
    NEAR_HVN = "NearHvn"
    NEAR_LVN = "NearLvn"
    NEUTRAL = "Neutral"


class FundingSignal(str, Enum):
    EXTREME_LONG_BIAS = "ExtremeLongBias"
    EXTREME_SHORT_BIAS = "ExtremeShortBias"
    HIGH_LONG_BIAS = "HighLongBias"
    HIGH_SHORT_BIAS = "HighShortBias"
    NEUTRAL_POSITIVE = "NeutralPositive"
    NEUTRAL_NEGATIVE = "NeutralNegative"
    NEUTRAL = "Neutral"


class OpenInterestSignal(str, Enum):
    BULLISH_EXPANSION = "BullishExpansion"
    BEARISH_EXPANSION = "BearishExpansion"
    LONG_SQUEEZE = "LongSqueeze"
    SHORT_SQUEEZE = "ShortSqueeze"
    NEUTRAL = "Neutral"


SignalState = (
    MacdSignal
    | RsiSignal
    | EmaSignal
    | SuperTrendSignal
    | BollingerSignal
    | VolatilityRegime
    | ObvSignal
    | VolumeProfileSignal
    | FundingSignal
    | OpenInterestSignal
)


# Valid state enumeration per indicator.
STATE_TYPES: Mapping[IndicatorId, type[Enum]] = MappingProxyType({
    IndicatorId.MACD: MacdSignal,
    IndicatorId.RSI: RsiSignal,
    IndicatorId.EMA: EmaSignal,
    IndicatorId.SUPERTREND: SuperTrendSignal,
    IndicatorId.BOLLINGER: BollingerSignal,
    IndicatorId.ATR: VolatilityRegime,
    IndicatorId.OBV: ObvSignal,
    IndicatorId.VOLUME_PROFILE: VolumeProfileSignal,
    IndicatorId.FUNDING_RATE: FundingSignal,
    IndicatorId.OPEN_INTEREST: OpenInterestSignal,
})

# Fixed indicator -> category mapping (not configurable).
INDICATOR_CATEGORY: Mapping[IndicatorId, Category] = MappingProxyType({
    IndicatorId.MACD: Category.MOMENTUM,
    IndicatorId.RSI: Category.MOMENTUM,
    IndicatorId.EMA: Category.TREND,
    IndicatorId.SUPERTREND: Category.TREND,
    IndicatorId.BOLLINGER: Category.VOLATILITY,
    IndicatorId.ATR: Category.VOLATILITY,
    IndicatorId.OBV: Category.VOLUME,
    IndicatorId.VOLUME_PROFILE: Category.VOLUME,
    IndicatorId.FUNDING_RATE: Category.PERP,
    IndicatorId.OPEN_INTEREST: Category.PERP,
})

# Name of the primary numeric field for each indicator.
PRIMARY_FIELD: Mapping[IndicatorId, str] = MappingProxyType({
    IndicatorId.MACD: "histogram",
    IndicatorId.RSI: "rsi",
    IndicatorId.EMA: "spread",
    IndicatorId.SUPERTREND: "trend",
    IndicatorId.BOLLINGER: "percent_b",
    IndicatorId.ATR: "atr_pct",
    IndicatorId.OBV: "obv",
    IndicatorId.VOLUME_PROFILE: "distance_pct",
    IndicatorId.FUNDING_RATE: "funding_rate",
    IndicatorId.OPEN_INTEREST: "change_pct",
})

# Sub-value names every computed value of the indicator carries.
FIELDS: Mapping[IndicatorId, frozenset[str]] = MappingProxyType({
    IndicatorId.MACD: frozenset({"macd", "signal", "histogram"}),
    IndicatorId.RSI: frozenset({"rsi"}),
    IndicatorId.EMA: frozenset({"fast", "slow", "spread"}),
    IndicatorId.SUPERTREND: frozenset({"value", "upper_band", "lower_band", "trend"}),
    IndicatorId.BOLLINGER: frozenset({"upper", "middle", "lower", "bandwidth", "percent_b"}),
    IndicatorId.ATR: frozenset({"atr", "atr_pct"}),
    IndicatorId.OBV: frozenset({"obv", "obv_ema", "obv_change"}),
    IndicatorId.VOLUME_PROFILE: frozenset(
        {"poc", "value_area_low", "value_area_high", "bucket_width", "distance_pct"}
    ),
    IndicatorId.FUNDING_RATE: frozenset({"funding_rate", "average_24h", "delta"}),
    IndicatorId.OPEN_INTEREST: frozenset({"open_interest", "average_24h", "change_pct"}),
})


def parse_state(indicator: IndicatorId, name: str) -> SignalState:
    """Resolve a state name (e.g. ``"Oversold"``) for ``indicator``.

    Raises:
        ValueError: if the indicator has no such state.
    """
    state_type = STATE_TYPES[indicator]
    try:
        return state_type(name)
    except ValueError:
        valid = ", ".join(s.value for s in state_type)
        raise ValueError(
            f"{name!r} is not a {indicator.value} state (expected one of: {valid})"
        ) from None


# =============================================================================
# Values and snapshot
# =============================================================================

@dataclass(frozen=True, slots=True)
class IndicatorValue:
    """Computed value(s) of one indicator at the evaluation instant."""

    indicator: IndicatorId
    values: Mapping[str, float]
    state: SignalState | None = None

    def __post_init__(self):
        object.__setattr__(self, "values", MappingProxyType(dict(self.values)))

    @property
    def category(self) -> Category:
        return INDICATOR_CATEGORY[self.indicator]

    @property
    def primary(self) -> float:
        return self.values[PRIMARY_FIELD[self.indicator]]

    def get(self, name: str | None = None) -> float | None:
        """Return a sub-value by name, the primary value when ``name`` is None."""
        if name is None:
            return self.primary
        return self.values.get(name)


@dataclass(frozen=True, slots=True)
class IndicatorSnapshot:
    """All indicator values computable at one evaluation instant.

    A missing key means the indicator was unavailable (insufficient history),
    never that it computed to some default.
    """

    symbol: str
    price: float
    timestamp: datetime
    indicators: Mapping[IndicatorId, IndicatorValue] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "indicators", MappingProxyType(dict(self.indicators)))

    def __contains__(self, indicator: object) -> bool:
        return indicator in self.indicators

    def __iter__(self) -> Iterator[IndicatorId]:
        return iter(self.indicators)

    def __len__(self) -> int:
        return len(self.indicators)

    def get(self, indicator: IndicatorId) -> IndicatorValue | None:
        return self.indicators.get(indicator)

    def state(self, indicator: IndicatorId) -> SignalState | None:
        value = self.indicators.get(indicator)
        return value.state if value is not None else None

    @property
    def atr(self) -> float | None:
        value = self.indicators.get(IndicatorId.ATR)
        return value.values["atr"] if value is not None else None

    def available_categories(self) -> set[Category]:
        return {INDICATOR_CATEGORY[i] for i in self.indicators}

    def missing(self) -> list[IndicatorId]:
        return [i for i in IndicatorId if i not in self.indicators]
