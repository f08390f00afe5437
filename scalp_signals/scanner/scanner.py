"""
Signal Scanner
Periodically runs the signal service over a coin list and delivers accepted
signals to sinks.

Per cycle:
    1. Analyze each coin sequentially (politeness delay between coins)
    2. Keep LONG/SHORT signals with confidence >= min_confidence
    3. Suppress symbols already signalled within the duplicate window
    4. Number, deliver, mark as sent and append to history
    5. Every N cycles drop history and last-sent entries past their TTL

Repeated rate-limit errors trip a circuit breaker that stops the cycle and
pauses scanning.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Awaitable, Callable, Dict, List, Optional, Sequence

import pytz

from ..display.formatters import format_signal_message
from ..engines.data_fetcher import BinanceRateLimitError
from ..engines.data_types import TradeSignal
from ..engines.indicator_config import DEFAULT_CONFIG, ScannerSettings
from ..engines.service import SignalService
from ..logging_config import log_exception
from .sinks import SignalSink
from .store import SignalStore

logger = logging.getLogger(__name__)

# USDT-margined perpetuals scanned by default
# fmt: off
DEFAULT_COINS = (
    "BTCUSDT", "ETHUSDT", "BNBUSDT", "SOLUSDT", "XRPUSDT",
    "ADAUSDT", "AVAXUSDT", "DOTUSDT", "LINKUSDT", "MATICUSDT",
    "LTCUSDT", "BCHUSDT", "ATOMUSDT", "ETCUSDT", "XLMUSDT",
    "FILUSDT", "ALGOUSDT", "NEARUSDT", "UNIUSDT", "DOGEUSDT",
    "ZECUSDT", "PEPEUSDT", "ZENUSDT", "HYPEUSDT", "WIFUSDT",
    "MEMEUSDT", "BOMEUSDT", "POPCATUSDT", "MYROUSDT", "HYPERUSDT",
    "TOSHIUSDT", "MOGUSDT", "TURBOUSDT", "PEOPLEUSDT", "ARCUSDT",
    "DASHUSDT", "APTUSDT", "ARBUSDT", "OPUSDT", "SUIUSDT",
    "SEIUSDT", "TIAUSDT", "INJUSDT", "RNDRUSDT", "FETUSDT",
    "AGIXUSDT", "OCEANUSDT", "JASMYUSDT", "GALAUSDT", "SANDUSDT",
)
# fmt: on


@dataclass
class ScanResult:
    """Counters for one scanner cycle."""

    started_at: datetime
    analyzed: int = 0
    sent: List[TradeSignal] = field(default_factory=list)
    no_signal: int = 0
    below_threshold: int = 0
    duplicates: int = 0
    undelivered: int = 0
    errors: int = 0
    skipped: bool = False
    circuit_broken: bool = False

    def to_dict(self) -> Dict:
        return {
            "started_at": self.started_at.isoformat(),
            "analyzed": self.analyzed,
            "sent": [s.symbol for s in self.sent],
            "no_signal": self.no_signal,
            "below_threshold": self.below_threshold,
            "duplicates": self.duplicates,
            "undelivered": self.undelivered,
            "errors": self.errors,
            "skipped": self.skipped,
            "circuit_broken": self.circuit_broken,
        }


class SignalScanner:
    """
    Runs scan cycles over a coin list.

    Args:
        service: Signal service used to analyze each coin
        sinks: Destinations for accepted signal messages
        store: Persistence for last-sent timestamps and history
        coins: Symbols to scan (defaults to DEFAULT_COINS)
        settings: Scanner settings (defaults to DEFAULT_CONFIG.scanner)
        clock: Epoch-seconds time source
        sleep: Async sleep used for delays
    """

    def __init__(
        self,
        service: SignalService,
        sinks: Sequence[SignalSink],
        store: SignalStore,
        coins: Optional[Sequence[str]] = None,
        settings: Optional[ScannerSettings] = None,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.service = service
        self.sinks = list(sinks)
        self.store = store
        self.coins = list(coins) if coins is not None else list(DEFAULT_COINS)
        self.settings = settings or DEFAULT_CONFIG.scanner
        self.clock = clock
        self.sleep = sleep

        self._tz = pytz.timezone(self.settings.timezone)
        self._running = False
        self._cycles_since_cleanup = 0
        self._paused_until = 0.0
        self._counter_date: Optional[date] = None

        self.consecutive_errors = 0
        self.signal_count_today = 0

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def circuit_open(self) -> bool:
        return self.clock() < self._paused_until

    def local_now(self) -> datetime:
        return datetime.fromtimestamp(self.clock(), tz=self._tz)

    def _roll_daily_counter(self) -> None:
        today = self.local_now().date()
        if self._counter_date != today:
            if self._counter_date is not None:
                logger.info(
                    "New day %s, resetting signal counter (was %d)", today, self.signal_count_today
                )
            self._counter_date = today
            self.signal_count_today = 0

    # -------------------------------------------------------------------------
    # Cycle
    # -------------------------------------------------------------------------

    async def run_cycle(self) -> ScanResult:
        """Scan every coin once. Returns immediately if a cycle is already running."""
        result = ScanResult(started_at=self.local_now())

        if self._running:
            logger.info("Scan already running, skipping this cycle")
            result.skipped = True
            return result

        if self.circuit_open:
            remaining = self._paused_until - self.clock()
            logger.warning("Circuit breaker open, skipping cycle (%.0fs remaining)", remaining)
            result.skipped = True
            return result

        if self._paused_until:
            logger.info("Circuit breaker reset")
            self._paused_until = 0.0
            self.consecutive_errors = 0

        self._running = True
        try:
            await self._scan(result)
        finally:
            self._running = False
        return result

    async def _scan(self, result: ScanResult) -> None:
        settings = self.settings
        self._roll_daily_counter()
        logger.info(
            f"Starting scan at {result.started_at.strftime('%H:%M')} for {len(self.coins)} coins"
        )

        for i, coin in enumerate(self.coins, start=1):
            logger.debug("Analyzing %s (%d/%d)", coin, i, len(self.coins))
            try:
                await self._process_coin(coin, result)
            except BinanceRateLimitError as e:
                result.errors += 1
                self.consecutive_errors += 1
                logger.error(
                    f"Rate limited analyzing {coin}: {e} "
                    f"(consecutive {self.consecutive_errors}/{settings.max_consecutive_errors})"
                )
                if self.consecutive_errors >= settings.max_consecutive_errors:
                    self._paused_until = self.clock() + settings.circuit_breaker_pause_seconds
                    result.circuit_broken = True
                    logger.warning(
                        "Circuit breaker triggered, pausing scans for %.0fs",
                        settings.circuit_breaker_pause_seconds,
                    )
                    break
            except Exception as e:
                result.errors += 1
                self.consecutive_errors = 0
                log_exception(logger, e, f"Error analyzing {coin}")

            await self.sleep(settings.per_coin_delay_seconds)

        logger.info(
            "Scan finished: analyzed=%d sent=%d duplicates=%d undelivered=%d below=%d errors=%d",
            result.analyzed,
            len(result.sent),
            result.duplicates,
            result.undelivered,
            result.below_threshold,
            result.errors,
        )

        self._cycles_since_cleanup += 1
        if self._cycles_since_cleanup >= settings.cycles_before_cleanup:
            self.store.cleanup(self.clock(), settings.history_ttl_seconds)
            self._cycles_since_cleanup = 0

    async def _process_coin(self, coin: str, result: ScanResult) -> None:
        settings = self.settings
        result.analyzed += 1
        signal = await self.service.analyze(coin, propagate=(BinanceRateLimitError,))

        if not signal.is_directional:
            result.no_signal += 1
            logger.info(f"No signal for {coin}: {signal.direction.value} ({signal.reason})")
            return

        if signal.confidence < settings.min_confidence:
            result.below_threshold += 1
            logger.info(
                f"{coin}: confidence {signal.confidence}% < {settings.min_confidence:.0f}%"
            )
            return

        now = self.clock()
        if not self.store.should_send(signal.symbol, now, settings.duplicate_window_seconds):
            result.duplicates += 1
            logger.info(
                f"Skip {signal.symbol}: already signalled within "
                f"{settings.duplicate_window_seconds // 60} minutes"
            )
            return

        number = self.signal_count_today + 1
        if not await self._deliver(format_signal_message(signal, number)):
            result.undelivered += 1
            logger.warning(f"No sink accepted the signal for {signal.symbol}; not marking it sent")
            return

        self.signal_count_today = number
        self.store.mark_sent(signal.symbol, now)
        self.store.append_history(self._history_record(signal, now))
        result.sent.append(signal)
        logger.info(
            f"Sent signal for {signal.symbol} ({signal.direction.value}) "
            f"conf={signal.confidence}%"
        )
        await self.sleep(settings.post_send_delay_seconds)

    async def _deliver(self, message: str) -> bool:
        """True when at least one sink took the message (or none are configured)."""
        if not self.sinks:
            return True

        delivered = False
        for sink in self.sinks:
            try:
                report = await sink.send(message)
            except Exception as e:
                log_exception(logger, e, f"Sink {type(sink).__name__} failed")
                continue
            # Sinks without a report (console) count as delivered
            if report is None or report.success > 0:
                delivered = True
        return delivered

    def _history_record(self, signal: TradeSignal, now: float) -> Dict:
        record = signal.to_dict()
        record["created_at"] = datetime.fromtimestamp(now, tz=pytz.utc).isoformat()
        record["created_at_epoch"] = int(now)
        return record

    # -------------------------------------------------------------------------
    # Loop
    # -------------------------------------------------------------------------

    async def run_forever(self, max_cycles: Optional[int] = None) -> None:
        """
        Wait the start delay, then run a cycle every interval.

        Args:
            max_cycles: Stop after this many cycles (None runs until cancelled)
        """
        settings = self.settings
        logger.info(
            "Scanner started: %d coins every %.1f minutes (first scan in %.0fs)",
            len(self.coins),
            settings.interval_seconds / 60,
            settings.start_delay_seconds,
        )
        await self.sleep(settings.start_delay_seconds)

        cycles = 0
        while max_cycles is None or cycles < max_cycles:
            started = self.clock()
            await self.run_cycle()
            cycles += 1
            if max_cycles is not None and cycles >= max_cycles:
                break
            elapsed = self.clock() - started
            await self.sleep(max(0.0, settings.interval_seconds - elapsed))
