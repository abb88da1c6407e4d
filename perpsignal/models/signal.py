"""Signal output models."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class Direction(str, Enum):
    """Trade direction."""

    LONG = "Long"
    SHORT = "Short"
    NEUTRAL = "Neutral"


class MarketBias(str, Enum):
    """Category-path classification of the total score."""

    STRONG_BULLISH = "StrongBullish"
    BULLISH = "Bullish"
    NEUTRAL = "Neutral"
    BEARISH = "Bearish"
    STRONG_BEARISH = "StrongBearish"

    @property
    def direction(self) -> Direction:
        if self in (MarketBias.STRONG_BULLISH, MarketBias.BULLISH):
            return Direction.LONG
        if self in (MarketBias.STRONG_BEARISH, MarketBias.BEARISH):
            return Direction.SHORT
        return Direction.NEUTRAL


class RiskLevel(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class Reason(BaseModel):
    """One contribution to a signal.

    ``source`` names the indicator or rule path, ``weight`` the weight it was
    scored under and ``contribution`` its signed share of the aggregate score.
    """

    model_config = ConfigDict(frozen=True)

    source: str
    weight: float
    contribution: float
    description: str = ""


class SignalOutput(BaseModel):
    """Result of one evaluation.

    SL/TP are fractions of price (0.012 == 1.2%) and are only present for a
    directional call with a usable ATR.
    """

    model_config = ConfigDict(frozen=True)

    symbol: str
    direction: Direction
    confidence: float = Field(ge=0.0, le=1.0)
    recommended_sl_pct: float | None = None
    recommended_tp_pct: float | None = None
    reasons: tuple[Reason, ...] = ()
    score: float
    price: float
    timestamp: datetime
    strategy: str | None = None  # None for the category path
    bias: MarketBias | None = None
    risk_level: RiskLevel | None = None

    @property
    def is_actionable(self) -> bool:
        """Directional call with both SL and TP available."""
        return (
            self.direction is not Direction.NEUTRAL
            and self.recommended_sl_pct is not None
            and self.recommended_tp_pct is not None
        )

    def sl_price(self) -> float | None:
        if self.recommended_sl_pct is None:
            return None
        if self.direction is Direction.LONG:
            return self.price * (1 - self.recommended_sl_pct)
        return self.price * (1 + self.recommended_sl_pct)

    def tp_price(self) -> float | None:
        if self.recommended_tp_pct is None:
            return None
        if self.direction is Direction.LONG:
            return self.price * (1 + self.recommended_tp_pct)
        return self.price * (1 - self.recommended_tp_pct)
