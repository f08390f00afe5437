"""
Timeframe Analyzer
Turns one timeframe's candle series into a TimeframeAnalysis record.
"""

import logging
from typing import Optional, Sequence

from .data_types import Candle, TimeframeAnalysis
from .errors import DataInsufficientError
from .indicator_config import DEFAULT_CONFIG, EngineConfig, safe_divide
from .indicators import (
    MomentumIndicators,
    StructureIndicators,
    TrendIndicators,
    VolatilityIndicators,
    VolumeIndicators,
)
from .signals import Trend

logger = logging.getLogger(__name__)

MIN_BARS = 2  # Need a previous close for momentum


class TimeframeAnalyzer:
    """
    Builds TimeframeAnalysis records using the indicator library.

    Args:
        config: Engine configuration (defaults to DEFAULT_CONFIG)
    """

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or DEFAULT_CONFIG

    def resolve_atr(
        self, middle: Sequence[Candle], lowest: Sequence[Candle], price: float
    ) -> float:
        """
        ATR used across the evaluation: middle timeframe first, then lowest,
        then a fixed fraction of price.
        """
        period = self.config.indicators.atr_period
        atr = VolatilityIndicators.calculate_atr(middle, period)
        if atr > 0:
            return atr
        atr = VolatilityIndicators.calculate_atr(lowest, period)
        if atr > 0:
            logger.debug("Middle timeframe ATR unavailable, using lowest timeframe ATR")
            return atr
        fallback_pct = self.config.analyzer.atr_fallback_pct
        logger.debug("No ATR available, falling back to %.4f of price", fallback_pct)
        return price * fallback_pct

    def is_momentum_strong(self, momentum: float, price: float, reference_atr: float) -> bool:
        """Strong when the close-to-close move is large relative to price or ATR."""
        thresholds = self.config.analyzer
        pct_move = safe_divide(abs(momentum), price, default=0.0)
        return (
            pct_move > thresholds.momentum_pct
            or abs(momentum) > reference_atr * thresholds.momentum_atr_fraction
        )

    def confidence_for(self, trend: Trend, volume_spike: bool) -> float:
        """60 base, +10 on a volume spike, +10 when the trend is not neutral."""
        thresholds = self.config.analyzer
        confidence = thresholds.base_confidence
        if volume_spike:
            confidence += thresholds.volume_spike_bonus
        if trend is not Trend.NEUTRAL:
            confidence += thresholds.trend_bonus
        return confidence

    def analyze(
        self, candles: Sequence[Candle], timeframe: str, reference_atr: float
    ) -> TimeframeAnalysis:
        """
        Analyze one timeframe.

        Args:
            candles: Ascending candle series
            timeframe: Label used in logs and errors (e.g. '15m')
            reference_atr: ATR used for the momentum-strength test

        Returns:
            TimeframeAnalysis

        Raises:
            DataInsufficientError: fewer than two candles
        """
        if len(candles) < MIN_BARS:
            raise DataInsufficientError(timeframe, len(candles), MIN_BARS)

        periods = self.config.indicators
        closes = [c.close for c in candles]
        last, prev = candles[-1], candles[-2]

        price = last.close
        momentum = last.close - prev.close
        trend = TrendIndicators.classify_structure(candles, periods.ema_fast, periods.ema_slow)
        volume_spike = VolumeIndicators.detect_volume_spike(
            candles, periods.volume_spike_factor, periods.volume_spike_lookback
        )

        analysis = TimeframeAnalysis(
            timeframe=timeframe,
            price=price,
            last=last,
            trend=trend,
            rsi=MomentumIndicators.calculate_rsi(closes, periods.rsi_period),
            volume_spike=volume_spike,
            momentum=momentum,
            momentum_strong=self.is_momentum_strong(momentum, price, reference_atr),
            order_block=StructureIndicators.find_order_block(
                candles,
                periods.order_block_scan_bars,
                periods.order_block_body_ratio,
                periods.order_block_volume_lookback,
            ),
            fair_value_gaps=tuple(StructureIndicators.find_fair_value_gaps(candles)),
            # TODO: feed support/resistance from a swing-level detector
            liquidity_levels=(),
            confidence=self.confidence_for(trend, volume_spike),
        )

        logger.debug(
            "%s: price=%.6f trend=%s rsi=%.1f spike=%s momentum=%.6f strong=%s",
            timeframe,
            price,
            trend.value,
            analysis.rsi,
            volume_spike,
            momentum,
            analysis.momentum_strong,
        )
        return analysis
