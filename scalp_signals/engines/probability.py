"""
Probability Estimator - heuristic win probability

The model is an ordered list of named scoring rules. Each rule contributes
`weight * factor(context)` where the factor is 1/0 for flag rules and a
continuous value for scaled rules. The summed score is clamped to [-10, +10]
and mapped through the logistic function.

Default rules (LONG shown, SHORT mirrors the trend tests):

    higher_trend_aligned     +1.2  higher TF trend bullish
    middle_trend_aligned     +0.9  middle TF trend bullish
    middle_confidence        conf/100 - 0.5
    middle_volume_spike      +0.6
    lowest_momentum_strong   +0.8
    lowest_volume_spike      +0.6
    lowest_body_expansion    +0.5  lowest TF body > 0.5 * ATR
    too_quiet                -0.5  ATR / price < 0.02%
    too_noisy                -0.6  ATR / price > 2%

ATR <= 0 short-circuits to a probability of 0.01.

The score does not depend on the take-profit distance, so every EV candidate
receives the same probability.
"""

from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

from .calculations import logistic
from .data_types import TimeframeAnalysis
from .indicator_config import DEFAULT_CONFIG, EngineConfig, ProbabilityWeights
from .signals import Direction


@dataclass(frozen=True)
class ScoringContext:
    """Features the scoring rules look at."""

    direction: Direction
    middle: TimeframeAnalysis
    lowest: TimeframeAnalysis
    higher: Optional[TimeframeAnalysis]
    atr: float

    @property
    def atr_pct(self) -> float:
        price = self.middle.price
        return self.atr / price if price else self.atr


@dataclass(frozen=True)
class ScoringRule:
    """Named, independently testable score contribution."""

    name: str
    weight: float
    factor: Callable[[ScoringContext], float]

    def contribution(self, ctx: ScoringContext) -> float:
        return self.weight * self.factor(ctx)

    @classmethod
    def flag(
        cls, name: str, weight: float, predicate: Callable[[ScoringContext], bool]
    ) -> "ScoringRule":
        return cls(name, weight, lambda ctx: 1.0 if predicate(ctx) else 0.0)

    @classmethod
    def scaled(
        cls, name: str, weight: float, value: Callable[[ScoringContext], float]
    ) -> "ScoringRule":
        return cls(name, weight, value)


@dataclass(frozen=True)
class ScoreBreakdown:
    """Per-rule contributions and their sum."""

    contributions: Tuple[Tuple[str, float], ...]

    @property
    def total(self) -> float:
        return sum(value for _, value in self.contributions)

    def get(self, name: str) -> float:
        for rule_name, value in self.contributions:
            if rule_name == name:
                return value
        raise KeyError(name)


def _higher_aligned(ctx: ScoringContext) -> bool:
    return ctx.higher is not None and ctx.higher.trend is ctx.direction.aligned_trend


def default_rules(weights: ProbabilityWeights) -> List[ScoringRule]:
    """Build the default ordered rule list from configured weights."""
    return [
        ScoringRule.flag("higher_trend_aligned", weights.higher_trend_aligned, _higher_aligned),
        ScoringRule.flag(
            "middle_trend_aligned",
            weights.middle_trend_aligned,
            lambda ctx: ctx.middle.trend is ctx.direction.aligned_trend,
        ),
        ScoringRule.scaled(
            "middle_confidence", 1.0, lambda ctx: ctx.middle.confidence / 100 - 0.5
        ),
        ScoringRule.flag(
            "middle_volume_spike", weights.middle_volume_spike, lambda ctx: ctx.middle.volume_spike
        ),
        ScoringRule.flag(
            "lowest_momentum_strong",
            weights.lowest_momentum_strong,
            lambda ctx: ctx.lowest.momentum_strong,
        ),
        ScoringRule.flag(
            "lowest_volume_spike", weights.lowest_volume_spike, lambda ctx: ctx.lowest.volume_spike
        ),
        ScoringRule.flag(
            "lowest_body_expansion",
            weights.lowest_body_expansion,
            lambda ctx: ctx.lowest.last.body > ctx.atr * weights.body_atr_fraction,
        ),
        ScoringRule.flag(
            "too_quiet",
            weights.too_quiet_penalty,
            lambda ctx: ctx.atr_pct < weights.too_quiet_atr_pct,
        ),
        ScoringRule.flag(
            "too_noisy",
            weights.too_noisy_penalty,
            lambda ctx: ctx.atr_pct > weights.too_noisy_atr_pct,
        ),
    ]


class ProbabilityEstimator:
    """
    Heuristic win-probability model.

    Args:
        config: Engine configuration (defaults to DEFAULT_CONFIG)
        rules: Optional custom rule list; defaults to default_rules(config.probability)
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        rules: Optional[Sequence[ScoringRule]] = None,
    ):
        self.config = config or DEFAULT_CONFIG
        self.weights = self.config.probability
        self.rules: Tuple[ScoringRule, ...] = tuple(
            rules if rules is not None else default_rules(self.weights)
        )

    def breakdown(self, ctx: ScoringContext) -> ScoreBreakdown:
        """Evaluate every rule in order."""
        return ScoreBreakdown(tuple((rule.name, rule.contribution(ctx)) for rule in self.rules))

    def estimate(self, ctx: ScoringContext) -> float:
        """Win probability for the context's direction."""
        if ctx.atr <= 0:
            return self.weights.degenerate_probability
        return logistic(self.breakdown(ctx).total, self.weights.score_clamp)

    def estimate_candidates(self, ctx: ScoringContext, multipliers: Sequence[float]) -> List[float]:
        """One probability per take-profit candidate, in grid order."""
        return [self.estimate(ctx) for _ in multipliers]
