"""Trend and direction enums shared by every engine stage."""

from enum import Enum


class Trend(Enum):
    """Structure classification of a single timeframe."""

    BULLISH = "bullish"
    BEARISH = "bearish"
    NEUTRAL = "neutral"

    def __str__(self) -> str:
        return self.value


class Direction(Enum):
    """Outcome direction of a signal evaluation."""

    LONG = "LONG"
    SHORT = "SHORT"
    NEUTRAL = "NEUTRAL"
    NO_TRADE = "NO_TRADE"

    def __str__(self) -> str:
        return self.value

    @property
    def is_directional(self) -> bool:
        return self in (Direction.LONG, Direction.SHORT)

    @property
    def sign(self) -> int:
        """+1 for LONG, -1 for SHORT, 0 otherwise."""
        if self is Direction.LONG:
            return 1
        if self is Direction.SHORT:
            return -1
        return 0

    @property
    def aligned_trend(self) -> Trend:
        """Trend that agrees with this direction."""
        if self is Direction.LONG:
            return Trend.BULLISH
        if self is Direction.SHORT:
            return Trend.BEARISH
        return Trend.NEUTRAL
