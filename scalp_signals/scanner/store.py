"""
JSON-file persistence for the scanner: last-sent timestamps and signal history.

Missing or corrupt files read as empty; write failures are logged and the scan
carries on.
"""

import json
import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

DEFAULT_LAST_SIGNALS_FILE = "last_signals.json"
DEFAULT_HISTORY_FILE = "signals_history.json"


def _record_epoch(record: Dict[str, Any]) -> Optional[float]:
    """Creation time of a history record in epoch seconds, None if unknown."""
    epoch = record.get("created_at_epoch")
    if isinstance(epoch, (int, float)):
        return float(epoch)
    created_at = record.get("created_at")
    if isinstance(created_at, str):
        try:
            return datetime.fromisoformat(created_at).timestamp()
        except ValueError:
            return None
    return None


class SignalStore:
    """
    Stores per-symbol last-sent epochs and a newest-first signal history.

    Args:
        last_signals_path: JSON object file {SYMBOL: epoch_seconds}
        history_path: JSON array file of signal records, newest first
        history_cap: Maximum number of history records kept
    """

    def __init__(
        self,
        last_signals_path: PathLike = DEFAULT_LAST_SIGNALS_FILE,
        history_path: PathLike = DEFAULT_HISTORY_FILE,
        history_cap: int = 1000,
    ):
        self.last_signals_path = Path(last_signals_path)
        self.history_path = Path(history_path)
        self.history_cap = history_cap

    @classmethod
    def in_directory(cls, directory: PathLike, history_cap: int = 1000) -> "SignalStore":
        directory = Path(directory)
        return cls(
            directory / DEFAULT_LAST_SIGNALS_FILE,
            directory / DEFAULT_HISTORY_FILE,
            history_cap,
        )

    # -------------------------------------------------------------------------
    # File helpers
    # -------------------------------------------------------------------------

    def _read(self, path: Path, expected: type) -> Any:
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return expected()
        except OSError as e:
            logger.warning(f"Failed to read {path}: {e}")
            return expected()

        try:
            data = json.loads(raw or "null")
        except json.JSONDecodeError as e:
            logger.warning(f"Corrupt JSON in {path}, treating as empty: {e}")
            return expected()

        if not isinstance(data, expected):
            if data is not None:
                logger.warning(f"Unexpected {type(data).__name__} in {path}, treating as empty")
            return expected()
        return data

    def _write(self, path: Path, data: Any) -> None:
        tmp_path = path.with_name(path.name + ".tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(json.dumps(data, indent=2), encoding="utf-8")
            os.replace(tmp_path, path)
        except OSError as e:
            logger.error(f"Failed to save {path}: {e}")

    # -------------------------------------------------------------------------
    # Last-sent timestamps (duplicate suppression)
    # -------------------------------------------------------------------------

    def load_last_signals(self) -> Dict[str, float]:
        return self._read(self.last_signals_path, dict)

    def save_last_signals(self, last_signals: Dict[str, float]) -> None:
        self._write(self.last_signals_path, last_signals)

    def should_send(self, symbol: str, now: float, window_seconds: float) -> bool:
        """False when the symbol was signalled less than window_seconds ago."""
        last_sent = self.load_last_signals().get(symbol.upper())
        if not isinstance(last_sent, (int, float)):
            return True
        return now - last_sent >= window_seconds

    def mark_sent(self, symbol: str, now: float) -> None:
        last_signals = self.load_last_signals()
        last_signals[symbol.upper()] = int(now)
        self.save_last_signals(last_signals)

    # -------------------------------------------------------------------------
    # History
    # -------------------------------------------------------------------------

    def load_history(self) -> List[Dict[str, Any]]:
        return self._read(self.history_path, list)

    def append_history(self, record: Dict[str, Any]) -> None:
        """Insert a record at the front and trim to the cap."""
        history = self.load_history()
        history.insert(0, record)
        self._write(self.history_path, history[: self.history_cap])

    def cleanup(self, now: float, ttl_seconds: float) -> Tuple[int, int]:
        """
        Drop history records and last-sent entries older than ttl_seconds.

        Records without a readable creation time are kept.

        Returns:
            (history records removed, last-sent entries removed)
        """
        cutoff = now - ttl_seconds

        history = self.load_history()
        kept = []
        for record in history:
            epoch = _record_epoch(record) if isinstance(record, dict) else None
            if epoch is None or epoch >= cutoff:
                kept.append(record)
        self._write(self.history_path, kept)

        last_signals = self.load_last_signals()
        fresh = {
            symbol: ts
            for symbol, ts in last_signals.items()
            if not isinstance(ts, (int, float)) or ts >= cutoff
        }
        self.save_last_signals(fresh)

        removed = (len(history) - len(kept), len(last_signals) - len(fresh))
        logger.info(
            "Cleanup removed %d history record(s) and %d last-sent entr(ies) older than %ds",
            removed[0],
            removed[1],
            ttl_seconds,
        )
        return removed
