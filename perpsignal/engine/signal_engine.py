"""Engine facade: candles in, SignalOutput out.

Two scoring paths share one snapshot builder and one decision step:

- ``evaluate``: the category aggregator, no strategy needed.
- ``evaluate_strategy``: a user-authored rule tree.

Every call works on its own immutable inputs, so independent evaluations can
run in parallel; ``evaluate_batch`` does that on a thread pool.
"""

from __future__ import annotations

import concurrent.futures
import logging
import time
from dataclasses import dataclass
from typing import Sequence

from perpsignal.engine.aggregator import CategoryAggregator
from perpsignal.engine.decision import decide_direction, stop_loss_take_profit
from perpsignal.engine.explain import ExplanationBuilder
from perpsignal.engine.rules import RuleEvaluator, validate_strategy
from perpsignal.indicators.calculator import IndicatorCalculator
from perpsignal.models.candle import Candle, CandleSeries, as_series
from perpsignal.models.config import EngineConfig
from perpsignal.models.indicators import IndicatorId, IndicatorSnapshot
from perpsignal.models.signal import Direction, SignalOutput
from perpsignal.models.strategy import Strategy

logger = logging.getLogger(__name__)

Candles = CandleSeries | Sequence[Candle]


@dataclass(frozen=True)
class EvaluationJob:
    """One unit of batch work; ``strategy=None`` selects the category path."""

    candles: Candles
    symbol: str
    strategy: Strategy | None = None


class SignalEngine:
    """Turns candle windows into trading signals.

    Usage:
        engine = SignalEngine()
        output = engine.evaluate(candles, "BTCUSDT")
        output = engine.evaluate_strategy(candles, strategy)
    """

    def __init__(self, config: EngineConfig | None = None):
        self.config = config or EngineConfig()
        self.calculator = IndicatorCalculator(self.config.indicators)
        self.aggregator = CategoryAggregator(self.config.weights, self.config.bias)
        self.evaluator = RuleEvaluator(validate=False)

        if not self.config.weights.is_normalized():
            logger.warning(
                "Category weights sum to %.4f, not 1.0; they are reported as configured",
                self.config.weights.total,
            )

    # -------------------------------------------------------------------------
    # Snapshots
    # -------------------------------------------------------------------------

    def snapshot(self, candles: Candles, symbol: str) -> IndicatorSnapshot:
        """Validate ``candles`` and compute every indicator at the last candle.

        Raises:
            MalformedCandleSequence: If the candles are empty, unordered or invalid.
        """
        return self.calculator.calculate(as_series(candles), symbol)

    # -------------------------------------------------------------------------
    # Category path
    # -------------------------------------------------------------------------

    def evaluate(self, candles: Candles, symbol: str) -> SignalOutput:
        """Score ``candles`` with the category aggregator."""
        return self.evaluate_snapshot(self.snapshot(candles, symbol))

    def evaluate_snapshot(self, snapshot: IndicatorSnapshot) -> SignalOutput:
        result = self.aggregator.aggregate(snapshot)

        if len(snapshot) == 0:
            logger.warning(
                "%s: no indicator could be computed at %s, signal is Neutral",
                snapshot.symbol,
                snapshot.timestamp.isoformat(),
            )

        direction = result.direction
        sl_pct, tp_pct = stop_loss_take_profit(
            snapshot.atr, snapshot.price, direction, self.config.risk
        )
        return SignalOutput(
            symbol=snapshot.symbol,
            direction=direction,
            confidence=result.confidence,
            recommended_sl_pct=sl_pct,
            recommended_tp_pct=tp_pct,
            reasons=result.reasons,
            score=float(result.total),
            price=snapshot.price,
            timestamp=snapshot.timestamp,
            bias=result.bias,
            risk_level=result.risk,
        )

    # -------------------------------------------------------------------------
    # Strategy path
    # -------------------------------------------------------------------------

    def evaluate_strategy(self, candles: Candles, strategy: Strategy) -> SignalOutput:
        """Score ``candles`` with a strategy's rule tree.

        The strategy is validated before any indicator is computed.

        Raises:
            InvalidStrategyConfiguration: If the strategy is malformed.
            MalformedCandleSequence: If the candles are unusable.
        """
        validate_strategy(strategy)
        series = as_series(candles)
        snapshot = self.calculator.calculate(
            series, strategy.symbol, only=strategy.indicators() | {IndicatorId.ATR}
        )
        return self._score_strategy(strategy, snapshot)

    def evaluate_strategy_snapshot(
        self, strategy: Strategy, snapshot: IndicatorSnapshot
    ) -> SignalOutput:
        validate_strategy(strategy)
        return self._score_strategy(strategy, snapshot)

    def _score_strategy(self, strategy: Strategy, snapshot: IndicatorSnapshot) -> SignalOutput:
        evaluation = self.evaluator.evaluate(strategy, snapshot)

        explanation = ExplanationBuilder().extend(evaluation.reasons())
        for indicator in sorted(strategy.indicators(), key=lambda i: i.value):
            if indicator not in snapshot:
                explanation.note(
                    indicator.value, f"{indicator.value} unavailable (insufficient history)"
                )

        if not evaluation.available:
            logger.warning(
                "Strategy %s on %s: every indicator it reads is unavailable, signal is Neutral",
                strategy.name,
                snapshot.symbol,
            )
            explanation.note(strategy.name, "no indicator required by the strategy is available")
            direction = Direction.NEUTRAL
            score = 0.0
        else:
            score = evaluation.score
            direction = decide_direction(
                score, strategy.thresholds.long_min, strategy.thresholds.short_max
            )

        sl_pct, tp_pct = stop_loss_take_profit(
            snapshot.atr, snapshot.price, direction, self.config.risk
        )
        return SignalOutput(
            symbol=strategy.symbol,
            direction=direction,
            confidence=evaluation.confidence,
            recommended_sl_pct=sl_pct,
            recommended_tp_pct=tp_pct,
            reasons=explanation.build(),
            score=score,
            price=snapshot.price,
            timestamp=snapshot.timestamp,
            strategy=strategy.name,
        )

    # -------------------------------------------------------------------------
    # Batch
    # -------------------------------------------------------------------------

    def run(self, job: EvaluationJob) -> SignalOutput:
        if job.strategy is None:
            return self.evaluate(job.candles, job.symbol)
        return self.evaluate_strategy(job.candles, job.strategy)

    def evaluate_batch(
        self,
        jobs: Sequence[EvaluationJob],
        max_workers: int | None = None,
    ) -> list[SignalOutput]:
        """
        Evaluate independent jobs concurrently.

        Args:
            jobs: Evaluations to run
            max_workers: Thread pool size (default: executor default)

        Returns:
            Outputs in the same order as ``jobs``

        Raises:
            The first failing job's exception, after all jobs have finished.
        """
        if not jobs:
            return []

        start_time = time.monotonic()
        with concurrent.futures.ThreadPoolExecutor(max_workers=max_workers) as executor:
            futures = [executor.submit(self.run, job) for job in jobs]
            concurrent.futures.wait(futures)

        for job, future in zip(jobs, futures):
            error = future.exception()
            if error is not None:
                logger.error("Evaluation failed for %s: %s", job.symbol, error)
                raise error

        logger.debug(
            "Evaluated %d jobs in %.3fs", len(jobs), time.monotonic() - start_time
        )
        return [future.result() for future in futures]
