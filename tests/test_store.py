"""
Tests for the scanner's JSON-file store.
"""

import json

import pytest

from scalp_signals.scanner.store import DEFAULT_HISTORY_FILE, DEFAULT_LAST_SIGNALS_FILE, SignalStore

NOW = 1_700_000_000.0
HOUR = 3600


@pytest.fixture
def store(tmp_path):
    return SignalStore.in_directory(tmp_path, history_cap=3)


class TestFiles:
    def test_default_file_names(self, tmp_path):
        store = SignalStore.in_directory(tmp_path)

        assert store.last_signals_path == tmp_path / DEFAULT_LAST_SIGNALS_FILE
        assert store.history_path == tmp_path / DEFAULT_HISTORY_FILE

    def test_missing_files_read_empty(self, store):
        assert store.load_last_signals() == {}
        assert store.load_history() == []

    def test_corrupt_file_reads_empty(self, store):
        store.last_signals_path.write_text("{not json", encoding="utf-8")

        assert store.load_last_signals() == {}

    def test_wrong_type_reads_empty(self, store):
        store.history_path.write_text('{"BTCUSDT": 1}', encoding="utf-8")

        assert store.load_history() == []

    def test_empty_file_reads_empty(self, store):
        store.history_path.write_text("", encoding="utf-8")

        assert store.load_history() == []

    def test_write_creates_parent_directory(self, tmp_path):
        store = SignalStore.in_directory(tmp_path / "state")
        store.mark_sent("BTCUSDT", NOW)

        assert json.loads(store.last_signals_path.read_text()) == {"BTCUSDT": int(NOW)}
        assert not store.last_signals_path.with_name(DEFAULT_LAST_SIGNALS_FILE + ".tmp").exists()


class TestDuplicateWindow:
    """Tests for should_send / mark_sent."""

    def test_unknown_symbol_allowed(self, store):
        assert store.should_send("BTCUSDT", NOW, HOUR) is True

    def test_within_window_blocked(self, store):
        store.mark_sent("btcusdt", NOW)

        assert store.should_send("BTCUSDT", NOW + HOUR - 1, HOUR) is False

    def test_window_boundary_allows(self, store):
        store.mark_sent("BTCUSDT", NOW)

        assert store.should_send("BTCUSDT", NOW + HOUR, HOUR) is True

    def test_symbols_independent(self, store):
        store.mark_sent("BTCUSDT", NOW)

        assert store.should_send("ETHUSDT", NOW + 1, HOUR) is True


class TestHistory:
    def test_newest_first(self, store):
        store.append_history({"symbol": "BTCUSDT"})
        store.append_history({"symbol": "ETHUSDT"})

        assert [r["symbol"] for r in store.load_history()] == ["ETHUSDT", "BTCUSDT"]

    def test_capped(self, store):
        for i in range(5):
            store.append_history({"n": i})

        assert [r["n"] for r in store.load_history()] == [4, 3, 2]


class TestCleanup:
    """Tests for TTL cleanup of both files."""

    def test_removes_stale_entries(self, store):
        store.append_history({"symbol": "OLD", "created_at_epoch": NOW - 2 * HOUR})
        store.append_history({"symbol": "NEW", "created_at_epoch": NOW - 60})
        store.save_last_signals({"OLD": NOW - 2 * HOUR, "NEW": NOW - 60})

        removed = store.cleanup(NOW, HOUR)

        assert removed == (1, 1)
        assert [r["symbol"] for r in store.load_history()] == ["NEW"]
        assert list(store.load_last_signals()) == ["NEW"]

    def test_iso_timestamp_fallback(self, store):
        store.append_history({"symbol": "OLD", "created_at": "2020-01-01T00:00:00+00:00"})

        assert store.cleanup(NOW, HOUR) == (1, 0)

    def test_records_without_time_kept(self, store):
        store.append_history({"symbol": "UNKNOWN"})
        store.append_history({"symbol": "BAD", "created_at": "yesterday"})

        assert store.cleanup(NOW, HOUR) == (0, 0)
        assert len(store.load_history()) == 2

    def test_empty_store(self, store):
        assert store.cleanup(NOW, HOUR) == (0, 0)
