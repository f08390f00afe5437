#!/usr/bin/env python3
"""
Scalp Signal Scanner - Entry Point.
Scans the coin list every 7.5 minutes and broadcasts accepted signals.

Usage:
    scalp-scan                       # loop forever, console output
    scalp-scan --once --coins BTC ETH
    TELEGRAM_BOT_TOKEN=... TELEGRAM_CHAT_IDS=123,456 scalp-scan

Environment:
    TELEGRAM_BOT_TOKEN   Bot API token (same as --telegram-token)
    TELEGRAM_CHAT_IDS    Comma-separated chat IDs (same as --chat-id)
    LAST_SIGNALS_FILE    Path of the last-sent JSON file
    SIGNAL_HISTORY_FILE  Path of the signal history JSON file
"""

import argparse
import asyncio
import logging
import os
from contextlib import AsyncExitStack
from typing import List, Optional, Sequence

from scalp_signals.apps.analyze import to_futures_symbol
from scalp_signals.display.colors import Colors
from scalp_signals.display.formatters import format_scan_summary
from scalp_signals.display.printers import print_scan_result
from scalp_signals.engines.data_fetcher import BinanceKlineFetcher
from scalp_signals.engines.indicator_config import PROFILES, config_for_profile
from scalp_signals.engines.service import SignalService
from scalp_signals.logging_config import configure_default_logging
from scalp_signals.scanner.scanner import DEFAULT_COINS, SignalScanner
from scalp_signals.scanner.sinks import ConsoleSink, SignalSink, TelegramSink
from scalp_signals.scanner.store import (
    DEFAULT_HISTORY_FILE,
    DEFAULT_LAST_SIGNALS_FILE,
    SignalStore,
)

logger = logging.getLogger(__name__)


def parse_chat_ids(values: Optional[Sequence[str]]) -> List[str]:
    """Flatten repeated and comma-separated chat IDs."""
    chat_ids: List[str] = []
    for value in values or ():
        chat_ids.extend(part.strip() for part in value.split(",") if part.strip())
    return chat_ids


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Periodic scalping signal scanner")
    parser.add_argument("--once", action="store_true", help="Run a single cycle and exit")
    parser.add_argument(
        "--coins",
        nargs="+",
        default=None,
        help=f"Symbols to scan (default: {len(DEFAULT_COINS)} USDT perpetuals)",
    )
    parser.add_argument(
        "--telegram-token",
        default=os.getenv("TELEGRAM_BOT_TOKEN"),
        help="Telegram Bot API token (env: TELEGRAM_BOT_TOKEN)",
    )
    parser.add_argument(
        "--chat-id",
        action="append",
        dest="chat_ids",
        default=None,
        help="Telegram chat ID; repeat or comma-separate (env: TELEGRAM_CHAT_IDS)",
    )
    parser.add_argument(
        "--quiet", "-q", action="store_true", help="Do not echo signals to the console"
    )
    parser.add_argument(
        "--profile",
        choices=sorted(PROFILES),
        default="default",
        help="Threshold profile (default: default)",
    )
    return parser


async def run_scan(args: argparse.Namespace) -> None:
    config = config_for_profile(args.profile)
    coins = [to_futures_symbol(c) for c in args.coins] if args.coins else list(DEFAULT_COINS)
    chat_ids = parse_chat_ids(args.chat_ids or [os.getenv("TELEGRAM_CHAT_IDS", "")])

    store = SignalStore(
        os.getenv("LAST_SIGNALS_FILE", DEFAULT_LAST_SIGNALS_FILE),
        os.getenv("SIGNAL_HISTORY_FILE", DEFAULT_HISTORY_FILE),
        history_cap=config.scanner.history_cap,
    )

    async with AsyncExitStack() as stack:
        fetcher = await stack.enter_async_context(BinanceKlineFetcher())

        sinks: List[SignalSink] = []
        if not args.quiet:
            sinks.append(ConsoleSink())
        if args.telegram_token and chat_ids:
            sinks.append(
                await stack.enter_async_context(TelegramSink(args.telegram_token, chat_ids))
            )
        elif args.telegram_token or chat_ids:
            logger.warning("Telegram needs both a token and at least one chat ID; disabled")

        scanner = SignalScanner(
            SignalService(fetcher, config=config),
            sinks,
            store,
            coins=coins,
            settings=config.scanner,
        )

        if args.once:
            result = await scanner.run_cycle()
            print_scan_result(result)
            print(format_scan_summary(result.sent, config.scanner.min_confidence))
        else:
            await scanner.run_forever()


def main(argv: Optional[Sequence[str]] = None):
    """Main entry point."""
    args = build_parser().parse_args(argv)
    configure_default_logging()

    try:
        asyncio.run(run_scan(args))
    except KeyboardInterrupt:
        print(f"\n{Colors.YELLOW}Scanner stopped.{Colors.RESET}")


if __name__ == "__main__":
    main()
