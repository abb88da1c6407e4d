"""Thresholding and ATR-based stop-loss / take-profit sizing."""

import math

from perpsignal.models.config import RiskParams
from perpsignal.models.signal import Direction


def decide_direction(score: float, long_min: float, short_max: float) -> Direction:
    """Map a score to a direction; both boundaries are inclusive.

    ``long_min > short_max`` is assumed (strategy validation rejects the
    rest), so at most one branch can match.
    """
    if score >= long_min:
        return Direction.LONG
    if score <= short_max:
        return Direction.SHORT
    return Direction.NEUTRAL


def stop_loss_take_profit(
    atr: float | None,
    price: float,
    direction: Direction,
    risk: RiskParams | None = None,
) -> tuple[float | None, float | None]:
    """
    Compute SL/TP distances as fractions of price.

    Args:
        atr: Latest ATR, None when unavailable
        price: Reference price (last close)
        direction: Decided direction; Neutral yields no levels
        risk: ATR multipliers (default 1.2 / 2.0)

    Returns:
        (sl_pct, tp_pct), both None when no levels apply
    """
    risk = risk or RiskParams()
    if direction is Direction.NEUTRAL:
        return None, None
    if atr is None or not math.isfinite(atr) or atr <= 0 or price <= 0:
        return None, None

    ratio = atr / price
    return ratio * risk.sl_atr_mult, ratio * risk.tp_atr_mult
