"""
Periodic scanner over a coin list.

Usage:
    from scalp_signals.scanner import SignalScanner, SignalStore, ConsoleSink

    async with BinanceKlineFetcher() as fetcher:
        scanner = SignalScanner(SignalService(fetcher), [ConsoleSink()], SignalStore())
        await scanner.run_forever()
"""

from .scanner import DEFAULT_COINS, ScanResult, SignalScanner
from .sinks import (
    ChatUnavailableError,
    ConsoleSink,
    DeliveryReport,
    SignalSink,
    TelegramDeliveryError,
    TelegramError,
    TelegramSink,
)
from .store import SignalStore

__all__ = [
    "DEFAULT_COINS",
    "ScanResult",
    "SignalScanner",
    "SignalStore",
    "SignalSink",
    "ConsoleSink",
    "TelegramSink",
    "DeliveryReport",
    "TelegramError",
    "TelegramDeliveryError",
    "ChatUnavailableError",
]
