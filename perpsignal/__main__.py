"""Command-line signal evaluation over a CSV of candles.

Usage:
    python -m perpsignal candles.csv --symbol BTCUSDT
    python -m perpsignal candles.csv --strategy-file strategies.yaml --strategy rsi_bounce
    python -m perpsignal candles.csv --preset trend_following --summary

The CSV needs a header with timestamp, open, high, low, close, volume and
optionally funding_rate, open_interest. Timestamps are ISO-8601 or epoch
milliseconds.
"""

import argparse
import csv
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path

import orjson

from perpsignal.engine.explain import summarize
from perpsignal.engine.signal_engine import SignalEngine
from perpsignal.errors import MalformedCandleSequence, PerpsignalError
from perpsignal.models.candle import Candle
from perpsignal.settings import get_settings, load_engine_config, load_strategies
from perpsignal.strategy import create_preset, list_presets

logger = logging.getLogger(__name__)

_OPTIONAL = ("funding_rate", "open_interest")


def _parse_timestamp(raw: str) -> datetime:
    raw = raw.strip()
    if raw.isdigit():
        return datetime.fromtimestamp(int(raw) / 1000, tz=timezone.utc)
    ts = datetime.fromisoformat(raw)
    return ts if ts.tzinfo else ts.replace(tzinfo=timezone.utc)


def read_candles(path: Path) -> list[Candle]:
    """Read candles from a CSV file.

    Raises:
        MalformedCandleSequence: If a row is missing a column or has a bad value.
    """
    candles = []
    with open(path, newline="") as f:
        for i, row in enumerate(csv.DictReader(f)):
            try:
                extra = {
                    name: float(row[name])
                    for name in _OPTIONAL
                    if row.get(name) not in (None, "")
                }
                candles.append(
                    Candle(
                        timestamp=_parse_timestamp(row["timestamp"]),
                        open=float(row["open"]),
                        high=float(row["high"]),
                        low=float(row["low"]),
                        close=float(row["close"]),
                        volume=float(row["volume"]),
                        **extra,
                    )
                )
            except (KeyError, TypeError, ValueError) as e:
                raise MalformedCandleSequence(f"unreadable row: {e}", i) from e
    logger.info("Read %d candles from %s", len(candles), path)
    return candles


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="perpsignal",
        description="Evaluate a trading signal for a window of candles",
    )
    parser.add_argument("candles", type=Path, help="CSV file of candles, oldest first")
    parser.add_argument("--symbol", default="BTCUSDT", help="Trading pair (category path)")
    parser.add_argument("--config", type=Path, help="Engine config YAML")
    parser.add_argument("--strategy-file", type=Path, help="Strategies YAML")
    parser.add_argument("--strategy", help="Strategy name from --strategy-file")
    parser.add_argument(
        "--preset", choices=list_presets(), help="Evaluate a built-in preset strategy"
    )
    parser.add_argument(
        "--summary", action="store_true", help="Print a one-line summary instead of JSON"
    )
    parser.add_argument("--log-level", help="Logging level (default: from settings)")
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.strategy_file and not args.strategy:
        parser.error("--strategy-file requires --strategy")
    settings = get_settings()

    logging.basicConfig(
        level=(args.log_level or settings.log_level).upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )

    try:
        engine = SignalEngine(load_engine_config(args.config))
        candles = read_candles(args.candles)

        if args.preset:
            strategy = create_preset(args.preset, symbol=args.symbol)
            output = engine.evaluate_strategy(candles, strategy)
        elif args.strategy:
            strategies = {s.name: s for s in load_strategies(args.strategy_file)}
            if args.strategy not in strategies:
                available = ", ".join(sorted(strategies)) or "(none)"
                logger.error("Unknown strategy '%s'. Available: %s", args.strategy, available)
                return 2
            output = engine.evaluate_strategy(candles, strategies[args.strategy])
        else:
            output = engine.evaluate(candles, args.symbol)
    except (PerpsignalError, ValueError, OSError) as e:
        logger.error("%s: %s", type(e).__name__, e)
        return 1

    if args.summary:
        print(summarize(output))
    else:
        sys.stdout.buffer.write(
            orjson.dumps(output.model_dump(mode="json"), option=orjson.OPT_INDENT_2)
        )
        sys.stdout.buffer.write(b"\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
