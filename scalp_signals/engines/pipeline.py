"""
Signal Engine - staged evaluation pipeline

Stages run strictly in order:

    bias -> momentum gate -> probability -> EV selection -> levels -> confidence

Each stage returns Continue(state) or Terminal(signal). The orchestrator stops
at the first Terminal; the confidence stage always terminates with the
directional signal. There is no retry or loop inside the engine, and no
exception escapes SignalEngine.evaluate.
"""

import logging
from dataclasses import dataclass, replace
from typing import Callable, List, Optional, Sequence, Tuple, Union

from ..logging_config import log_exception
from .bias import bias_confidence, confirms_bias, resolve_bias
from .calculations import is_finite, round_half_up
from .confidence import blend_confidence, position_size, reward_to_risk
from .data_types import Candle, SignalDiagnostics, StageState, TimeframeAnalysis, TradeSignal
from .errors import ComputationError, DataInsufficientError
from .ev_selector import EVSelector
from .indicator_config import DEFAULT_CONFIG, EngineConfig
from .levels import LevelCalculator
from .probability import ProbabilityEstimator, ScoringContext
from .signals import Direction
from .timeframe_analyzer import TimeframeAnalyzer

logger = logging.getLogger(__name__)

REASON_INSUFFICIENT_DATA = "insufficient data"
REASON_NO_BIAS = "no clear multi-timeframe bias"
REASON_NOT_CONFIRMED = "lowest timeframe not confirming bias"
REASON_LOW_PROBABILITY = "model probability below {threshold:.0%}"
REASON_NO_CANDIDATE = "no target candidate"
REASON_INVALID_TARGET = "invalid target ordering"


@dataclass(frozen=True)
class Continue:
    """Stage passed; hand the updated state to the next stage."""

    state: StageState


@dataclass(frozen=True)
class Terminal:
    """Stage ended the evaluation with a final signal."""

    signal: TradeSignal


StageOutcome = Union[Continue, Terminal]
Stage = Callable[[StageState], StageOutcome]


class SignalEngine:
    """
    Fuses three timeframes into one advisory TradeSignal.

    The engine is stateless between calls: evaluate() is a pure function of the
    candles passed to it, so one instance can serve concurrent evaluations.

    Args:
        config: Engine configuration (defaults to DEFAULT_CONFIG)
        estimator: Optional probability estimator with custom rules
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        estimator: Optional[ProbabilityEstimator] = None,
    ):
        self.config = config or DEFAULT_CONFIG
        self.analyzer = TimeframeAnalyzer(self.config)
        self.estimator = estimator or ProbabilityEstimator(self.config)
        self.selector = EVSelector(self.config)
        self.level_calculator = LevelCalculator(self.config)

    @property
    def stages(self) -> List[Tuple[str, Stage]]:
        return [
            ("bias", self.resolve_bias_stage),
            ("momentum_gate", self.momentum_gate_stage),
            ("probability", self.probability_stage),
            ("ev_selection", self.ev_selection_stage),
            ("levels", self.levels_stage),
            ("confidence", self.confidence_stage),
        ]

    # -------------------------------------------------------------------------
    # Entry point
    # -------------------------------------------------------------------------

    def evaluate(
        self,
        symbol: str,
        higher: Optional[Sequence[Candle]],
        middle: Optional[Sequence[Candle]],
        lowest: Optional[Sequence[Candle]],
    ) -> TradeSignal:
        """
        Evaluate one symbol.

        Args:
            symbol: Instrument, e.g. 'BTCUSDT'
            higher: Higher timeframe candles, None when unavailable
            middle: Middle timeframe candles (required)
            lowest: Lowest timeframe candles (required)

        Returns:
            TradeSignal; NO_TRADE with the failure in `reason` on any error
        """
        try:
            outcome = self.prepare(symbol, higher, middle, lowest)
            if isinstance(outcome, Terminal):
                return outcome.signal
            return self.run_stages(outcome.state)
        except Exception as e:
            log_exception(logger, e, f"Analysis error for {symbol}")
            return TradeSignal.no_trade(symbol, f"analysis error: {e}")

    def prepare(
        self,
        symbol: str,
        higher: Optional[Sequence[Candle]],
        middle: Optional[Sequence[Candle]],
        lowest: Optional[Sequence[Candle]],
    ) -> StageOutcome:
        """Analyze each timeframe and build the initial stage state."""
        timeframes = self.config.timeframes
        if not middle or not lowest:
            logger.debug("%s: missing middle or lowest timeframe", symbol)
            return Terminal(TradeSignal.no_trade(symbol, REASON_INSUFFICIENT_DATA))

        price = lowest[-1].close
        atr = self.analyzer.resolve_atr(middle, lowest, price)
        if not is_finite(price, atr):
            raise ComputationError("prepare", f"non-finite price {price} or ATR {atr}")

        try:
            middle_analysis = self.analyzer.analyze(middle, timeframes.middle.interval, atr)
            lowest_analysis = self.analyzer.analyze(lowest, timeframes.lowest.interval, atr)
        except DataInsufficientError as e:
            logger.debug("%s: %s", symbol, e)
            return Terminal(TradeSignal.no_trade(symbol, REASON_INSUFFICIENT_DATA))

        higher_analysis: Optional[TimeframeAnalysis] = None
        if higher:
            try:
                higher_analysis = self.analyzer.analyze(higher, timeframes.higher.interval, atr)
            except DataInsufficientError as e:
                logger.debug("%s: higher timeframe ignored (%s)", symbol, e)

        return Continue(
            StageState(
                symbol=symbol,
                middle=middle_analysis,
                lowest=lowest_analysis,
                higher=higher_analysis,
                atr=atr,
                price=price,
            )
        )

    def run_stages(self, state: StageState) -> TradeSignal:
        """Thread state through the stages until one terminates."""
        for name, stage in self.stages:
            outcome = stage(state)
            if isinstance(outcome, Terminal):
                signal = outcome.signal
                logger.debug(
                    "%s: %s at stage '%s' (%s)",
                    state.symbol,
                    signal.direction.value,
                    name,
                    signal.reason or f"confidence {signal.confidence}",
                )
                return signal
            state = outcome.state
        raise ComputationError("pipeline", "no stage produced a final signal")

    # -------------------------------------------------------------------------
    # Stages
    # -------------------------------------------------------------------------

    def resolve_bias_stage(self, state: StageState) -> StageOutcome:
        resolution = resolve_bias(state.middle, state.higher, self.config.bias)
        if resolution.bias is Direction.NEUTRAL:
            return Terminal(
                TradeSignal.non_directional(
                    state.symbol, Direction.NEUTRAL, resolution.confidence, REASON_NO_BIAS
                )
            )
        return Continue(replace(state, bias=resolution.bias, bias_score=resolution.score))

    def momentum_gate_stage(self, state: StageState) -> StageOutcome:
        if confirms_bias(state.lowest, state.bias):
            return Continue(state)
        confidence = bias_confidence(state.bias_score, self.config.bias)
        return Terminal(TradeSignal.no_trade(state.symbol, REASON_NOT_CONFIRMED, confidence))

    def probability_stage(self, state: StageState) -> StageOutcome:
        ctx = ScoringContext(
            direction=state.bias,
            middle=state.middle,
            lowest=state.lowest,
            higher=state.higher,
            atr=state.atr,
        )
        probabilities = self.estimator.estimate_candidates(ctx, self.config.targets.multipliers)
        max_p = max(probabilities, default=0.0)
        min_p = self.config.probability.min_probability
        if max_p < min_p:
            return Terminal(
                TradeSignal.no_trade(
                    state.symbol,
                    REASON_LOW_PROBABILITY.format(threshold=min_p),
                    round_half_up(max_p * 100),
                )
            )
        return Continue(replace(state, probabilities=tuple(probabilities)))

    def ev_selection_stage(self, state: StageState) -> StageOutcome:
        best = self.selector.select(state.probabilities, state.atr)
        if best is None:
            return Terminal(TradeSignal.no_trade(state.symbol, REASON_NO_CANDIDATE))
        return Continue(replace(state, best=best))

    def levels_stage(self, state: StageState) -> StageOutcome:
        best = state.best
        if best is None:
            raise ComputationError("levels", "no selected candidate")

        levels = self.level_calculator.calculate(
            state.bias, state.price, state.middle, state.atr, best.target_distance
        )
        if not levels.is_ordered(state.bias):
            return Terminal(
                TradeSignal.no_trade(
                    state.symbol,
                    REASON_INVALID_TARGET,
                    round_half_up(best.win_probability * 100),
                )
            )
        return Continue(
            replace(
                state,
                entry=levels.entry,
                stop_loss=levels.stop_loss,
                take_profit=levels.take_profit,
            )
        )

    def confidence_stage(self, state: StageState) -> StageOutcome:
        best = state.best
        if best is None:
            raise ComputationError("confidence", "no selected candidate")

        blend = self.config.confidence
        confidence = blend_confidence(
            best.win_probability,
            state.middle.confidence,
            state.lowest.momentum_strong,
            blend,
        )
        diagnostics = SignalDiagnostics(
            chosen_multiplier=best.multiplier,
            probability=best.win_probability,
            expected_value=best.expected_value,
            candidate_probabilities=state.probabilities,
            atr=state.atr,
            middle_trend=state.middle.trend,
            higher_trend=state.higher.trend if state.higher is not None else None,
            lowest_momentum_strong=state.lowest.momentum_strong,
            middle_volume_spike=state.middle.volume_spike,
        )
        return Terminal(
            TradeSignal(
                symbol=state.symbol,
                direction=state.bias,
                confidence=confidence,
                entry=state.entry,
                stop_loss=state.stop_loss,
                take_profit=state.take_profit,
                reward_to_risk=reward_to_risk(state.entry, state.stop_loss, state.take_profit),
                position_size=position_size(state.entry, state.stop_loss, blend),
                diagnostics=diagnostics,
            )
        )
