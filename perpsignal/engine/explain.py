"""Reason collection and human-readable summaries."""

from __future__ import annotations

from perpsignal.models.signal import Reason, SignalOutput


class ExplanationBuilder:
    """Accumulates reasons during one evaluation.

    ``build()`` orders them by absolute contribution (largest first, ties in
    insertion order) and puts zero-contribution notes last.
    """

    def __init__(self):
        self._reasons: list[Reason] = []

    def __len__(self) -> int:
        return len(self._reasons)

    def add(
        self,
        source: str,
        contribution: float,
        weight: float = 1.0,
        description: str = "",
    ) -> ExplanationBuilder:
        self._reasons.append(
            Reason(
                source=source,
                weight=weight,
                contribution=contribution,
                description=description,
            )
        )
        return self

    def note(self, source: str, description: str, weight: float = 0.0) -> ExplanationBuilder:
        """Record an informational reason that did not move the score."""
        return self.add(source, 0.0, weight, description)

    def extend(self, reasons) -> ExplanationBuilder:
        self._reasons.extend(reasons)
        return self

    def build(self) -> tuple[Reason, ...]:
        scored = [r for r in self._reasons if r.contribution != 0]
        notes = [r for r in self._reasons if r.contribution == 0]
        scored.sort(key=lambda r: -abs(r.contribution))
        return tuple(scored + notes)


def summarize(output: SignalOutput, limit: int = 3) -> str:
    """One-line explanation, e.g.::

        LONG BTCUSDT conf=0.70 score=4.00: Rsi Oversold (+1.00), Ema BullishCross (+2.00)
    """
    head = (
        f"{output.direction.value.upper()} {output.symbol} "
        f"conf={output.confidence:.2f} score={output.score:.2f}"
    )
    if output.strategy:
        head = f"{head} [{output.strategy}]"

    drivers = [r for r in output.reasons if r.contribution != 0][:limit]
    if not drivers:
        if output.reasons:
            return f"{head}: {output.reasons[0].description or output.reasons[0].source}"
        return head

    parts = [
        f"{r.description or r.source} ({r.contribution:+.2f})" for r in drivers
    ]
    text = f"{head}: {', '.join(parts)}"
    if output.recommended_sl_pct is not None and output.recommended_tp_pct is not None:
        text += (
            f" | SL {output.recommended_sl_pct:.2%} TP {output.recommended_tp_pct:.2%}"
        )
    return text
