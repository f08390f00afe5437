"""
Bias Resolver and Momentum Confirmation Gate.

The higher and middle timeframe trends vote for a direction:

    score = (+1.0 / -1.0 / 0 higher) + (+0.8 / -0.8 / 0 middle)

LONG above +0.6, SHORT below -0.6, NEUTRAL in between. A missing higher
timeframe votes 0, so the middle timeframe alone (0.8) can still set the bias.
The lowest timeframe must then move in the bias direction, unless it shows a
strong move on a volume spike.
"""

from dataclasses import dataclass
from typing import Optional

from .calculations import round_half_up
from .data_types import TimeframeAnalysis
from .indicator_config import BiasThresholds, safe_divide
from .signals import Direction, Trend


@dataclass(frozen=True)
class BiasResolution:
    """Resolved multi-timeframe bias."""

    score: float
    bias: Direction
    confidence: int  # round(|score| / normalizer * 100)


def trend_contribution(trend: Trend, weight: float) -> float:
    """+weight for bullish, -weight for bearish, 0 for neutral."""
    if trend is Trend.BULLISH:
        return weight
    if trend is Trend.BEARISH:
        return -weight
    return 0.0


def bias_confidence(score: float, thresholds: BiasThresholds) -> int:
    return round_half_up(
        safe_divide(abs(score), thresholds.confidence_normalizer, default=0.0) * 100
    )


def resolve_bias(
    middle: TimeframeAnalysis,
    higher: Optional[TimeframeAnalysis],
    thresholds: BiasThresholds,
) -> BiasResolution:
    """
    Combine higher and middle timeframe trends into a directional bias.

    Args:
        middle: Middle timeframe analysis
        higher: Higher timeframe analysis, None when it could not be fetched
        thresholds: Bias weights and cutoffs

    Returns:
        BiasResolution
    """
    score = 0.0
    if higher is not None:
        score += trend_contribution(higher.trend, thresholds.higher_weight)
    score += trend_contribution(middle.trend, thresholds.middle_weight)

    if score > thresholds.long_threshold:
        bias = Direction.LONG
    elif score < thresholds.short_threshold:
        bias = Direction.SHORT
    else:
        bias = Direction.NEUTRAL

    return BiasResolution(score=score, bias=bias, confidence=bias_confidence(score, thresholds))


def confirms_bias(lowest: TimeframeAnalysis, bias: Direction) -> bool:
    """
    Momentum gate: the lowest timeframe's last move must agree with the bias,
    or be a strong move backed by a volume spike.
    """
    if lowest.momentum_direction is bias:
        return True
    return lowest.momentum_strong and lowest.volume_spike
