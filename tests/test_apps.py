"""
Tests for the command-line entry points (network access is faked).
"""

import functools
import json

import pytest

from builders import make_signal, trending_candles
from scalp_signals.apps import analyze as analyze_app
from scalp_signals.apps import scan as scan_app
from scalp_signals.engines.signals import Direction
from scalp_signals.scanner.scanner import SignalScanner


class FakeFetcher:
    """Stands in for BinanceKlineFetcher: rising candles, spike on the last bar."""

    def __init__(self, *args, **kwargs):
        self.calls = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return False

    async def get_klines(self, symbol, interval, limit=300):
        self.calls.append((symbol, interval))
        return trending_candles(60, last_volume=500.0)


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch):
    monkeypatch.setattr(analyze_app, "configure_default_logging", lambda: None)
    monkeypatch.setattr(scan_app, "configure_default_logging", lambda: None)


class TestAnalyzeApp:
    @pytest.mark.parametrize(
        "raw,expected",
        [("btc", "BTCUSDT"), ("ETHUSDT", "ETHUSDT"), ("sol/usdt", "SOLUSDT")],
    )
    def test_to_futures_symbol(self, raw, expected):
        assert analyze_app.to_futures_symbol(raw) == expected

    def test_parser_defaults(self):
        args = analyze_app.build_parser().parse_args(["BTC", "ETH"])

        assert args.symbols == ["BTC", "ETH"]
        assert args.json is False
        assert args.profile == "default"

    def test_parser_rejects_unknown_profile(self):
        with pytest.raises(SystemExit):
            analyze_app.build_parser().parse_args(["BTC", "--profile", "yolo"])

    def test_main_json(self, monkeypatch, capsys):
        monkeypatch.setattr(analyze_app, "BinanceKlineFetcher", FakeFetcher)

        analyze_app.main(["btc", "--json"])

        payload = json.loads(capsys.readouterr().out)
        assert payload[0]["symbol"] == "BTCUSDT"
        assert payload[0]["direction"] == "LONG"
        assert payload[0]["confidence"] == 93

    def test_main_report(self, monkeypatch, capsys):
        async def fake_analyze(symbols, config=None):
            return [make_signal(s, Direction.NO_TRADE) for s in symbols]

        monkeypatch.setattr(analyze_app, "analyze_symbols", fake_analyze)

        analyze_app.main(["ETH"])

        out = capsys.readouterr().out
        assert "ETHUSDT" in out
        assert "Directional:" in out


class TestScanApp:
    def test_parse_chat_ids(self):
        assert scan_app.parse_chat_ids(["111,222", " 333 ", ""]) == ["111", "222", "333"]
        assert scan_app.parse_chat_ids(None) == []

    def test_parser(self, monkeypatch):
        monkeypatch.setenv("TELEGRAM_BOT_TOKEN", "123:abc")

        args = scan_app.build_parser().parse_args(
            ["--once", "--coins", "BTC", "ETH", "--chat-id", "1", "--chat-id", "2,3", "-q"]
        )

        assert args.once is True
        assert args.coins == ["BTC", "ETH"]
        assert args.telegram_token == "123:abc"
        assert args.chat_ids == ["1", "2,3"]
        assert args.quiet is True

    def test_run_once(self, monkeypatch, tmp_path, capsys):
        async def no_sleep(delay):
            return None

        monkeypatch.delenv("TELEGRAM_BOT_TOKEN", raising=False)
        monkeypatch.delenv("TELEGRAM_CHAT_IDS", raising=False)
        monkeypatch.setenv("LAST_SIGNALS_FILE", str(tmp_path / "last.json"))
        monkeypatch.setenv("SIGNAL_HISTORY_FILE", str(tmp_path / "history.json"))
        monkeypatch.setattr(scan_app, "BinanceKlineFetcher", FakeFetcher)
        monkeypatch.setattr(
            scan_app, "SignalScanner", functools.partial(SignalScanner, sleep=no_sleep)
        )

        scan_app.main(["--once", "--coins", "BTC"])

        out = capsys.readouterr().out
        assert "🤖 Signal [1 of the day]" in out
        assert "🔍 FULL SCAN RESULTS (1 signals)" in out
        assert "#BTC - LONG - Conf: 93%" in out
        assert json.loads((tmp_path / "last.json").read_text()).keys() == {"BTCUSDT"}
        assert len(json.loads((tmp_path / "history.json").read_text())) == 1
