"""
EV Selector
Evaluates expected value for each take-profit distance and picks the best.

    stop   = stop_multiplier * ATR
    target = multiplier * ATR
    EV     = p * target - (1 - p) * stop      (price units)
    R      = target / stop
"""

from typing import List, Optional, Sequence

from .data_types import TargetCandidate
from .indicator_config import DEFAULT_CONFIG, EngineConfig, TargetGrid, safe_divide


def build_candidates(
    probabilities: Sequence[float], atr: float, grid: TargetGrid
) -> List[TargetCandidate]:
    """Pair each grid multiplier with its probability and compute EV / R."""
    if len(probabilities) != len(grid.multipliers):
        raise ValueError(
            f"Expected {len(grid.multipliers)} probabilities, got {len(probabilities)}"
        )

    stop_distance = grid.stop_multiplier * atr
    candidates = []
    for multiplier, p in zip(grid.multipliers, probabilities):
        target_distance = multiplier * atr
        candidates.append(
            TargetCandidate(
                multiplier=multiplier,
                stop_distance=stop_distance,
                target_distance=target_distance,
                win_probability=p,
                expected_value=p * target_distance - (1 - p) * stop_distance,
                reward_to_risk=safe_divide(target_distance, stop_distance, default=0.0),
            )
        )
    return candidates


def select_best(candidates: Sequence[TargetCandidate]) -> Optional[TargetCandidate]:
    """
    Candidate with the strictly greatest EV, scanning in grid order.
    Ties keep the earlier (smaller) multiplier.
    """
    best: Optional[TargetCandidate] = None
    for candidate in candidates:
        if best is None or candidate.expected_value > best.expected_value:
            best = candidate
    return best


class EVSelector:
    """EV-based take-profit selection over the configured grid."""

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or DEFAULT_CONFIG

    def candidates(self, probabilities: Sequence[float], atr: float) -> List[TargetCandidate]:
        return build_candidates(probabilities, atr, self.config.targets)

    def select(self, probabilities: Sequence[float], atr: float) -> Optional[TargetCandidate]:
        return select_best(self.candidates(probabilities, atr))
