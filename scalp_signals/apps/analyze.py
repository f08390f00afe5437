#!/usr/bin/env python3
"""
Scalp Signal Analysis - Entry Point.
Runs the multi-timeframe engine once for each symbol given on the command line.

Usage:
    scalp-analyze BTC ETHUSDT SOL/USDT
    scalp-analyze BTCUSDT --json
"""

import argparse
import asyncio
import json
import sys
from typing import List, Optional, Sequence

from scalp_signals.display.colors import Colors
from scalp_signals.display.printers import print_signals
from scalp_signals.engines.data_fetcher import BinanceKlineFetcher, normalize_symbol
from scalp_signals.engines.data_types import TradeSignal
from scalp_signals.engines.indicator_config import PROFILES, EngineConfig, config_for_profile
from scalp_signals.engines.service import SignalService
from scalp_signals.logging_config import configure_default_logging

QUOTE_ASSET = "USDT"


def to_futures_symbol(raw: str) -> str:
    """Normalize a user-typed symbol and append USDT when it is missing."""
    symbol = normalize_symbol(raw)
    return symbol if symbol.endswith(QUOTE_ASSET) else f"{symbol}{QUOTE_ASSET}"


async def analyze_symbols(
    symbols: Sequence[str], config: Optional[EngineConfig] = None
) -> List[TradeSignal]:
    """Analyze symbols one after another over a single HTTP session."""
    async with BinanceKlineFetcher() as fetcher:
        service = SignalService(fetcher, config=config)
        return [await service.analyze(symbol) for symbol in symbols]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Multi-timeframe EV scalping signals for Binance USDT perpetuals"
    )
    parser.add_argument("symbols", nargs="+", help="Symbols, e.g. BTC ETHUSDT SOL/USDT")
    parser.add_argument(
        "--json", action="store_true", help="Print signals as JSON instead of a report"
    )
    parser.add_argument(
        "--profile",
        choices=sorted(PROFILES),
        default="default",
        help="Threshold profile (default: default)",
    )
    return parser


def main(argv: Optional[Sequence[str]] = None):
    """Main entry point."""
    args = build_parser().parse_args(argv)
    configure_default_logging()

    symbols = [to_futures_symbol(s) for s in args.symbols]
    config = config_for_profile(args.profile)

    try:
        signals = asyncio.run(analyze_symbols(symbols, config))
    except KeyboardInterrupt:
        print(f"\n{Colors.YELLOW}Analysis cancelled.{Colors.RESET}")
        sys.exit(0)

    if args.json:
        print(json.dumps([s.to_dict() for s in signals], indent=2))
    else:
        print_signals(signals)


if __name__ == "__main__":
    main()
