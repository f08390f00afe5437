"""Confidence blending and advisory position sizing."""

from .calculations import clip, round_half_up
from .indicator_config import ConfidenceBlend, safe_divide


def reward_to_risk(entry: float, stop_loss: float, take_profit: float) -> float:
    """|tp - entry| / |entry - sl|."""
    return safe_divide(abs(take_profit - entry), abs(entry - stop_loss), default=0.0)


def blend_confidence(
    probability: float,
    middle_confidence: float,
    momentum_strong: bool,
    blend: ConfidenceBlend,
) -> int:
    """
    Final confidence in percent:

        round(100 * (0.7 * p + 0.2 * conf_mid / 100 + 0.08 if momentum strong))

    clamped to [20, 98].
    """
    raw = (
        blend.probability_weight * probability
        + blend.middle_confidence_weight * (middle_confidence / 100)
        + (blend.momentum_bonus if momentum_strong else 0.0)
    )
    return int(clip(round_half_up(raw * 100), blend.min_confidence, blend.max_confidence))


def position_size(entry: float, stop_loss: float, blend: ConfidenceBlend) -> float:
    """Units such that hitting the stop loses the configured risk amount."""
    risk_per_unit = abs(entry - stop_loss)
    if risk_per_unit <= 0:
        return 0.0
    return round(blend.risk_amount / risk_per_unit, 4)
