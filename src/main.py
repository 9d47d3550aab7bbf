"""
Crypto Signal Engine - Command Line Entry Point

Evaluates one or more USDT pairs with a rule-based strategy and prints the
resulting trade plan:
- trend_regime: ADX / EMA200 regime filter with ATR pullback or range zones
- structural_reversal: swing structure, Fibonacci PRZ and 15m confirmation

Usage:
    signal-engine                                   # Default symbol and strategy
    signal-engine --symbol ETHUSDT
    signal-engine --strategy structural_reversal --all
    signal-engine --symbol SOLUSDT --json

Configuration:
    Settings are read from the environment or a .env file (see config/settings.py).
"""

import argparse
import json
import sys
from typing import Optional

from config.logging_config import get_logger, setup_logging
from config.settings import get_settings
from src.api.exchange_factory import create_kline_provider
from src.strategy.engine import SignalEngine
from src.strategy.models import SignalResult, StrategyId

__version__ = "0.1.0"


def create_parser() -> argparse.ArgumentParser:
    """Create the CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="signal-engine",
        description="Rule-based crypto trade signals from public exchange candles",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  signal-engine                                    # Default symbol with trend_regime
  signal-engine --symbol ETHUSDT                   # Single symbol
  signal-engine --strategy structural_reversal     # Structural reversal strategy
  signal-engine --all --json                       # Every configured symbol as JSON
        """,
    )

    target_group = parser.add_mutually_exclusive_group()
    target_group.add_argument("--symbol", "-s", type=str, help="Symbol to evaluate (e.g., BTCUSDT)")
    target_group.add_argument("--all", action="store_true", help="Evaluate every configured symbol")

    parser.add_argument(
        "--strategy",
        choices=[s.value for s in StrategyId],
        help="Strategy to run (default: from settings)",
    )
    parser.add_argument("--json", action="store_true", help="Print results as JSON")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    return parser


def format_result(symbol: str, result: Optional[SignalResult]) -> str:
    """Human readable block for one evaluation."""
    if result is None:
        return f"{symbol}: no signal\n"

    lines = [
        "=" * 50,
        f"  {result.symbol}  {result.regime}",
        "=" * 50,
        f"  Time:      {result.time}",
        f"  Price:     {result.price:.4f}",
        f"  Direction: {result.direction.value}",
        f"  Entry:     {result.entry_low:.4f} - {result.entry_high:.4f}",
        f"  Stop:      {result.stop:.4f}",
        f"  Target:    {result.target:.4f}",
        f"  R:R:       {result.rr:.2f}",
        f"  Status:    {'ACTIVE' if result.is_actionable else 'MONITORING'}",
        "-" * 50,
    ]
    lines.extend(f"  {line}" for line in result.logs)
    return "\n".join(lines) + "\n"


def main(argv: Optional[list[str]] = None) -> int:
    """
    Main entry point for the signal engine.

    Returns:
        Exit code (0 when at least one symbol produced a result, 1 otherwise)
    """
    args = create_parser().parse_args(argv)

    try:
        settings = get_settings()

        setup_logging(
            log_level="DEBUG" if args.verbose else settings.log_level,
            log_file=settings.log_file,
            json_format=settings.log_json,
        )
        logger = get_logger(__name__)

        strategy_id = args.strategy or settings.default_strategy
        if args.all:
            symbols = settings.symbols
        else:
            symbols = [(args.symbol or settings.default_symbol).strip().upper()]

        logger.info(
            "starting_signal_engine",
            version=__version__,
            strategy=strategy_id,
            symbols=symbols,
        )

        engine = SignalEngine(create_kline_provider(settings), settings)
        results = engine.evaluate_many(symbols, strategy_id)

        if args.json:
            payload = {
                symbol: (result.to_dict() if result else None)
                for symbol, result in results.items()
            }
            print(json.dumps(payload if args.all else payload[symbols[0]], indent=2))
        else:
            for symbol, result in results.items():
                print(format_result(symbol, result))

        return 0 if any(result is not None for result in results.values()) else 1

    except KeyboardInterrupt:
        print("\n\nInterrupted. Exiting...", file=sys.stderr)
        return 130

    except Exception as e:
        print(f"\nFatal error: {e}", file=sys.stderr)
        get_logger(__name__).critical("fatal_error", error=str(e), error_type=type(e).__name__)
        return 1


if __name__ == "__main__":
    sys.exit(main())
