"""
Technical Indicators Module
Stateless indicator calculations used by the timeframe analyzer.

Every function degrades to a documented default when the series is shorter
than its lookback: ATR -> 0, RSI -> 50, EMA -> None, detectors -> False/None/[].
"""

from typing import List, Optional, Sequence

from .calculations import calculate_ema, last_value, simple_average
from .data_types import Candle, FairValueGap, OrderBlock
from .signals import Trend

# =============================================================================
# VOLATILITY INDICATORS
# =============================================================================


class VolatilityIndicators:
    """Volatility indicators: True Range, ATR."""

    @staticmethod
    def true_range(current: Candle, previous: Candle) -> float:
        """TR = max(high-low, |high-prevClose|, |low-prevClose|)."""
        return max(
            current.high - current.low,
            abs(current.high - previous.close),
            abs(current.low - previous.close),
        )

    @staticmethod
    def calculate_atr(candles: Sequence[Candle], period: int = 14) -> float:
        """
        Calculate the latest Average True Range with Wilder's smoothing.

        Args:
            candles: Ascending candle series
            period: ATR lookback

        Returns:
            ATR value, or 0 if fewer than period + 1 candles
        """
        if period <= 0 or len(candles) < period + 1:
            return 0.0

        tr_values = [
            VolatilityIndicators.true_range(candles[i], candles[i - 1])
            for i in range(1, len(candles))
        ]

        atr = sum(tr_values[:period]) / period
        for tr in tr_values[period:]:
            atr = (atr * (period - 1) + tr) / period

        return max(atr, 0.0)


# =============================================================================
# TREND INDICATORS
# =============================================================================


class TrendIndicators:
    """Trend indicators: EMA, EMA-cross structure classification."""

    @staticmethod
    def calculate_ema(values: Sequence[float], period: int) -> Optional[float]:
        """Latest EMA value, or None if fewer than period values."""
        return last_value(calculate_ema(list(values), period))

    @staticmethod
    def classify_structure(candles: Sequence[Candle], fast: int = 8, slow: int = 34) -> Trend:
        """
        Classify structure by comparing fast and slow EMA of closes.

        Returns:
            BULLISH if fast > slow, BEARISH if fast < slow, otherwise NEUTRAL
            (exact equality or not enough data for either EMA)
        """
        closes = [c.close for c in candles]
        fast_ema = TrendIndicators.calculate_ema(closes, fast)
        slow_ema = TrendIndicators.calculate_ema(closes, slow)

        if fast_ema is None or slow_ema is None:
            return Trend.NEUTRAL
        if fast_ema > slow_ema:
            return Trend.BULLISH
        if fast_ema < slow_ema:
            return Trend.BEARISH
        return Trend.NEUTRAL


# =============================================================================
# MOMENTUM INDICATORS
# =============================================================================


class MomentumIndicators:
    """Momentum indicators: RSI."""

    @staticmethod
    def calculate_rsi(values: Sequence[float], period: int = 14) -> float:
        """
        Calculate the latest Relative Strength Index.

        Seeds average gain/loss over the first `period` deltas, then applies
        Wilder smoothing for the rest of the series.

        Returns:
            RSI in [0, 100]; 50 when fewer than period + 1 values
        """
        if period <= 0 or len(values) < period + 1:
            return 50.0

        deltas = [values[i] - values[i - 1] for i in range(1, len(values))]
        gains = [d if d > 0 else 0.0 for d in deltas]
        losses = [-d if d < 0 else 0.0 for d in deltas]

        avg_gain = sum(gains[:period]) / period
        avg_loss = sum(losses[:period]) / period

        for i in range(period, len(deltas)):
            avg_gain = (avg_gain * (period - 1) + gains[i]) / period
            avg_loss = (avg_loss * (period - 1) + losses[i]) / period

        if avg_loss == 0:
            return 100.0
        rs = avg_gain / avg_loss
        return 100 - (100 / (1 + rs))


# =============================================================================
# VOLUME INDICATORS
# =============================================================================


class VolumeIndicators:
    """Volume-based detectors."""

    @staticmethod
    def detect_volume_spike(
        candles: Sequence[Candle], factor: float = 1.8, lookback: int = 9
    ) -> bool:
        """
        True when the latest volume exceeds `factor` x the mean of the
        `lookback` preceding volumes. Needs lookback + 1 candles.
        """
        if lookback <= 0 or len(candles) < lookback + 1:
            return False

        window = [c.volume for c in candles[-(lookback + 1):]]
        avg = simple_average(window[:-1])
        return window[-1] > avg * factor


# =============================================================================
# STRUCTURE DETECTORS
# =============================================================================


class StructureIndicators:
    """Order-block and fair-value-gap detectors."""

    @staticmethod
    def find_order_block(
        candles: Sequence[Candle],
        scan_bars: int = 5,
        body_ratio: float = 0.6,
        volume_lookback: int = 6,
    ) -> Optional[OrderBlock]:
        """
        Find the first large-body, above-average-volume candle among the
        `scan_bars` candles ending one bar before the latest (oldest first).

        Args:
            candles: Ascending candle series
            scan_bars: Number of candles scanned
            body_ratio: Minimum body / range ratio
            volume_lookback: Preceding candles averaged for the volume test

        Returns:
            OrderBlock or None
        """
        n = len(candles)
        if n < scan_bars + 1:
            return None

        for i in range(n - scan_bars - 1, n - 1):
            c = candles[i]
            start = max(0, i - volume_lookback)
            avg_volume = simple_average(x.volume for x in candles[start:i])
            if c.range > 0 and c.body >= c.range * body_ratio and c.volume > avg_volume:
                return OrderBlock(index=i, high=c.high, low=c.low, bullish=c.is_bullish)

        return None

    @staticmethod
    def find_fair_value_gaps(candles: Sequence[Candle]) -> List[FairValueGap]:
        """
        Detect fair value gaps on interior candles, in order of occurrence.

        Bullish gap: low > previous high, bounds [previous high, low].
        Bearish gap: high < previous low, bounds [high, previous low].
        """
        gaps: List[FairValueGap] = []
        for i in range(1, len(candles) - 1):
            prev, curr = candles[i - 1], candles[i]
            if curr.low > prev.high:
                gaps.append(FairValueGap(type=Trend.BULLISH, low=prev.high, high=curr.low, index=i))
            if curr.high < prev.low:
                gaps.append(FairValueGap(type=Trend.BEARISH, low=curr.high, high=prev.low, index=i))
        return gaps
