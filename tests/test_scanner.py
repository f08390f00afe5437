"""
Tests for the periodic Signal Scanner.

The service, clock and sleep are faked; the store writes to tmp_path.
"""

import asyncio
from dataclasses import replace

import pytest

from builders import make_signal
from scalp_signals.engines.data_fetcher import BinanceRateLimitError
from scalp_signals.engines.indicator_config import ScannerSettings
from scalp_signals.engines.signals import Direction
from scalp_signals.scanner.scanner import DEFAULT_COINS, SignalScanner
from scalp_signals.scanner.sinks import DeliveryReport
from scalp_signals.scanner.store import SignalStore

# 2024-01-01 23:59:00 in Asia/Ho_Chi_Minh (UTC+7)
LATE_EVENING = 1704128340.0


class FakeService:
    """Returns a canned signal (or raises) per coin."""

    def __init__(self, outcomes):
        self.outcomes = dict(outcomes)
        self.calls = []

    async def analyze(self, symbol, propagate=()):
        self.calls.append((symbol, propagate))
        outcome = self.outcomes[symbol]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class RecordingSink:
    def __init__(self):
        self.messages = []

    async def send(self, text):
        self.messages.append(text)


class BrokenSink:
    async def send(self, text):
        raise ConnectionError("sink down")


class Clock:
    def __init__(self, now=LATE_EVENING):
        self.now = now

    def __call__(self):
        return self.now


class Sleeper:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


@pytest.fixture
def store(tmp_path):
    return SignalStore.in_directory(tmp_path)


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def sleeper():
    return Sleeper()


@pytest.fixture
def sink():
    return RecordingSink()


def build_scanner(outcomes, store, clock, sleeper, sinks, settings=None):
    return SignalScanner(
        FakeService(outcomes),
        sinks,
        store,
        coins=list(outcomes),
        settings=settings or ScannerSettings(),
        clock=clock,
        sleep=sleeper,
    )


# =============================================================================
# FILTERING AND DELIVERY
# =============================================================================


class TestCycle:
    """Tests for a single scan cycle."""

    @pytest.mark.asyncio
    async def test_filters_and_delivers(self, store, clock, sleeper, sink):
        outcomes = {
            "BTCUSDT": make_signal("BTCUSDT", confidence=75),
            "ETHUSDT": make_signal("ETHUSDT", Direction.NEUTRAL, confidence=40),
            "XRPUSDT": make_signal("XRPUSDT", confidence=55),
        }
        scanner = build_scanner(outcomes, store, clock, sleeper, [sink])

        result = await scanner.run_cycle()

        assert result.analyzed == 3
        assert [s.symbol for s in result.sent] == ["BTCUSDT"]
        assert result.no_signal == 1
        assert result.below_threshold == 1
        assert result.errors == 0
        assert len(sink.messages) == 1
        assert sink.messages[0].startswith("🤖 Signal [1 of the day]")
        assert scanner.signal_count_today == 1

    @pytest.mark.asyncio
    async def test_confidence_threshold_inclusive(self, store, clock, sleeper, sink):
        outcomes = {"BTCUSDT": make_signal("BTCUSDT", confidence=60)}
        scanner = build_scanner(outcomes, store, clock, sleeper, [sink])

        result = await scanner.run_cycle()

        assert len(result.sent) == 1

    @pytest.mark.asyncio
    async def test_persists_sent_signal(self, store, clock, sleeper, sink):
        scanner = build_scanner(
            {"BTCUSDT": make_signal("BTCUSDT")}, store, clock, sleeper, [sink]
        )

        await scanner.run_cycle()

        assert store.load_last_signals() == {"BTCUSDT": int(LATE_EVENING)}
        (record,) = store.load_history()
        assert record["symbol"] == "BTCUSDT"
        assert record["direction"] == "LONG"
        assert record["created_at_epoch"] == int(LATE_EVENING)
        assert record["created_at"] == "2024-01-01T16:59:00+00:00"

    @pytest.mark.asyncio
    async def test_rate_limits_propagated_from_service(self, store, clock, sleeper, sink):
        scanner = build_scanner(
            {"BTCUSDT": make_signal("BTCUSDT")}, store, clock, sleeper, [sink]
        )

        await scanner.run_cycle()

        assert scanner.service.calls == [("BTCUSDT", (BinanceRateLimitError,))]

    @pytest.mark.asyncio
    async def test_delays(self, store, clock, sleeper, sink):
        outcomes = {
            "BTCUSDT": make_signal("BTCUSDT"),
            "ETHUSDT": make_signal("ETHUSDT", Direction.NO_TRADE),
        }
        scanner = build_scanner(outcomes, store, clock, sleeper, [sink])

        await scanner.run_cycle()

        # post-send pause, then one politeness delay per coin
        assert sleeper.delays == [1.2, 1.0, 1.0]

    @pytest.mark.asyncio
    async def test_sink_failure_does_not_stop_delivery(self, store, clock, sleeper, sink):
        scanner = build_scanner(
            {"BTCUSDT": make_signal("BTCUSDT")}, store, clock, sleeper, [BrokenSink(), sink]
        )

        result = await scanner.run_cycle()

        assert len(result.sent) == 1
        assert len(sink.messages) == 1
        assert "BTCUSDT" in store.load_last_signals()

    @pytest.mark.asyncio
    async def test_all_sinks_failing_leaves_signal_unsent(self, store, clock, sleeper):
        scanner = build_scanner(
            {"BTCUSDT": make_signal("BTCUSDT")}, store, clock, sleeper, [BrokenSink()]
        )

        result = await scanner.run_cycle()

        assert result.sent == []
        assert result.undelivered == 1
        assert scanner.signal_count_today == 0
        assert store.load_last_signals() == {}
        assert store.load_history() == []

    @pytest.mark.asyncio
    async def test_undelivered_signal_retried_next_cycle(self, store, clock, sleeper, sink):
        broken = BrokenSink()
        scanner = build_scanner(
            {"BTCUSDT": make_signal("BTCUSDT")}, store, clock, sleeper, [broken]
        )
        await scanner.run_cycle()

        scanner.sinks = [sink]
        result = await scanner.run_cycle()

        assert len(result.sent) == 1
        assert "[1 of the day]" in sink.messages[0]

    @pytest.mark.asyncio
    async def test_empty_report_is_not_delivery(self, store, clock, sleeper):
        class UnreachableChats:
            async def send(self, text):
                return DeliveryReport(success=0, failed=2)

        scanner = build_scanner(
            {"BTCUSDT": make_signal("BTCUSDT")}, store, clock, sleeper, [UnreachableChats()]
        )

        result = await scanner.run_cycle()

        assert result.undelivered == 1
        assert "BTCUSDT" not in store.load_last_signals()

    @pytest.mark.asyncio
    async def test_no_sinks_still_records(self, store, clock, sleeper):
        scanner = build_scanner({"BTCUSDT": make_signal("BTCUSDT")}, store, clock, sleeper, [])

        result = await scanner.run_cycle()

        assert len(result.sent) == 1
        assert "BTCUSDT" in store.load_last_signals()

    def test_default_coins(self, store):
        scanner = SignalScanner(FakeService({}), [], store)

        assert len(DEFAULT_COINS) == 50
        assert scanner.coins == list(DEFAULT_COINS)

    @pytest.mark.asyncio
    async def test_result_to_dict(self, store, clock, sleeper, sink):
        scanner = build_scanner(
            {"BTCUSDT": make_signal("BTCUSDT")}, store, clock, sleeper, [sink]
        )

        data = (await scanner.run_cycle()).to_dict()

        assert data["sent"] == ["BTCUSDT"]
        assert data["analyzed"] == 1
        assert data["started_at"].startswith("2024-01-01T23:59:00")


class TestDuplicates:
    """Tests for the per-symbol duplicate window."""

    @pytest.mark.asyncio
    async def test_suppressed_within_window(self, store, clock, sleeper, sink):
        scanner = build_scanner(
            {"BTCUSDT": make_signal("BTCUSDT")}, store, clock, sleeper, [sink]
        )

        await scanner.run_cycle()
        clock.now += 450
        result = await scanner.run_cycle()

        assert result.duplicates == 1
        assert result.sent == []
        assert len(sink.messages) == 1

    @pytest.mark.asyncio
    async def test_sent_again_after_window(self, store, clock, sleeper, sink):
        scanner = build_scanner(
            {"BTCUSDT": make_signal("BTCUSDT")}, store, clock, sleeper, [sink]
        )

        await scanner.run_cycle()
        clock.now += 3600
        result = await scanner.run_cycle()

        assert len(result.sent) == 1
        assert len(sink.messages) == 2


# =============================================================================
# ERRORS AND CIRCUIT BREAKER
# =============================================================================


class TestCircuitBreaker:
    """Tests for rate-limit error handling."""

    @pytest.mark.asyncio
    async def test_trips_after_consecutive_rate_limits(self, store, clock, sleeper, sink):
        outcomes = {f"C{i}USDT": BinanceRateLimitError() for i in range(6)}
        scanner = build_scanner(outcomes, store, clock, sleeper, [sink])

        result = await scanner.run_cycle()

        assert result.circuit_broken is True
        assert result.errors == 5
        assert result.analyzed == 5
        assert scanner.circuit_open is True
        # No politeness delay after the breaking coin
        assert sleeper.delays == [1.0] * 4

    @pytest.mark.asyncio
    async def test_cycles_skipped_while_open(self, store, clock, sleeper, sink):
        outcomes = {f"C{i}USDT": BinanceRateLimitError() for i in range(5)}
        scanner = build_scanner(outcomes, store, clock, sleeper, [sink])
        await scanner.run_cycle()

        clock.now += 599
        skipped = await scanner.run_cycle()

        assert skipped.skipped is True
        assert skipped.analyzed == 0

    @pytest.mark.asyncio
    async def test_resets_after_pause(self, store, clock, sleeper, sink):
        outcomes = {f"C{i}USDT": BinanceRateLimitError() for i in range(5)}
        scanner = build_scanner(outcomes, store, clock, sleeper, [sink])
        await scanner.run_cycle()

        clock.now += 600
        quiet = {coin: make_signal(coin, Direction.NO_TRADE) for coin in outcomes}
        scanner.service.outcomes = quiet
        result = await scanner.run_cycle()

        assert result.skipped is False
        assert result.analyzed == 5
        assert scanner.consecutive_errors == 0
        assert scanner.circuit_open is False

    @pytest.mark.asyncio
    async def test_other_errors_reset_streak(self, store, clock, sleeper, sink):
        outcomes = {
            "AUSDT": BinanceRateLimitError(),
            "BUSDT": BinanceRateLimitError(),
            "CUSDT": ValueError("bad data"),
            "DUSDT": BinanceRateLimitError(),
        }
        scanner = build_scanner(outcomes, store, clock, sleeper, [sink])

        result = await scanner.run_cycle()

        assert result.errors == 4
        assert result.circuit_broken is False
        assert scanner.consecutive_errors == 1

    @pytest.mark.asyncio
    async def test_threshold_is_configurable(self, store, clock, sleeper, sink):
        settings = replace(ScannerSettings(), max_consecutive_errors=2)
        outcomes = {f"C{i}USDT": BinanceRateLimitError() for i in range(4)}
        scanner = build_scanner(outcomes, store, clock, sleeper, [sink], settings)

        result = await scanner.run_cycle()

        assert result.circuit_broken is True
        assert result.analyzed == 2


# =============================================================================
# SCHEDULING AND HOUSEKEEPING
# =============================================================================


class BlockingService(FakeService):
    def __init__(self, outcomes):
        super().__init__(outcomes)
        self.release = asyncio.Event()

    async def analyze(self, symbol, propagate=()):
        await self.release.wait()
        return await super().analyze(symbol, propagate)


class CountingStore(SignalStore):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.cleanups = []

    def cleanup(self, now, ttl_seconds):
        self.cleanups.append((now, ttl_seconds))
        return super().cleanup(now, ttl_seconds)


class TestScheduling:
    @pytest.mark.asyncio
    async def test_overlapping_cycle_skipped(self, store, clock, sleeper, sink):
        service = BlockingService({"BTCUSDT": make_signal("BTCUSDT", Direction.NO_TRADE)})
        scanner = SignalScanner(
            service, [sink], store, coins=["BTCUSDT"], clock=clock, sleep=sleeper
        )

        first = asyncio.ensure_future(scanner.run_cycle())
        while not scanner.is_running:
            await asyncio.sleep(0)

        second = await scanner.run_cycle()
        service.release.set()
        first_result = await first

        assert second.skipped is True
        assert first_result.skipped is False
        assert first_result.analyzed == 1
        assert scanner.is_running is False

    @pytest.mark.asyncio
    async def test_cleanup_every_n_cycles(self, tmp_path, clock, sleeper, sink):
        store = CountingStore(tmp_path / "last.json", tmp_path / "history.json")
        settings = replace(ScannerSettings(), cycles_before_cleanup=2)
        outcomes = {"BTCUSDT": make_signal("BTCUSDT", Direction.NO_TRADE)}
        scanner = build_scanner(outcomes, store, clock, sleeper, [sink], settings)

        for _ in range(5):
            await scanner.run_cycle()

        assert store.cleanups == [(LATE_EVENING, 3600), (LATE_EVENING, 3600)]

    @pytest.mark.asyncio
    async def test_daily_counter_resets_at_local_midnight(self, store, clock, sleeper, sink):
        outcomes = {"BTCUSDT": make_signal("BTCUSDT"), "ETHUSDT": make_signal("ETHUSDT")}
        scanner = build_scanner(outcomes, store, clock, sleeper, [sink])
        scanner.coins = ["BTCUSDT"]
        await scanner.run_cycle()

        clock.now += 120  # 00:01 local
        scanner.coins = ["ETHUSDT"]
        await scanner.run_cycle()

        assert sink.messages[0].startswith("🤖 Signal [1 of the day]")
        assert sink.messages[1].startswith("🤖 Signal [1 of the day]")
        assert scanner.local_now().day == 2

    @pytest.mark.asyncio
    async def test_counter_increments_within_day(self, store, clock, sleeper, sink):
        clock.now -= 3600  # 22:59 local
        outcomes = {"BTCUSDT": make_signal("BTCUSDT"), "ETHUSDT": make_signal("ETHUSDT")}
        scanner = build_scanner(outcomes, store, clock, sleeper, [sink])

        await scanner.run_cycle()

        assert sink.messages[1].startswith("🤖 Signal [2 of the day]")
        assert scanner.signal_count_today == 2

    @pytest.mark.asyncio
    async def test_run_forever_bounded(self, store, clock, sleeper, sink):
        outcomes = {"BTCUSDT": make_signal("BTCUSDT", Direction.NO_TRADE)}
        scanner = build_scanner(outcomes, store, clock, sleeper, [sink])

        await scanner.run_forever(max_cycles=2)

        # start delay, coin delay, interval wait, coin delay
        assert sleeper.delays == [8.0, 1.0, 450.0, 1.0]
