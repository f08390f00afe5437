"""Engine-side exceptions (retrieval errors live in data_fetcher)."""

from typing import Optional


class DataInsufficientError(Exception):
    """Raised when a candle series is too short to analyze at all."""

    def __init__(self, timeframe: str, bars: int, required: int):
        self.timeframe = timeframe
        self.bars = bars
        self.required = required
        super().__init__(f"{timeframe}: {bars} bars, need at least {required}")


class ComputationError(Exception):
    """Raised when scoring or level calculation hits an impossible value."""

    def __init__(self, stage: str, message: str, original_error: Optional[Exception] = None):
        self.stage = stage
        self.original_error = original_error
        super().__init__(f"{stage}: {message}")
