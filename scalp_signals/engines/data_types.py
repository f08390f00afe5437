"""
Data types shared by the engine stages.

Candles are immutable; analysis records are built once per evaluation and never
mutated afterwards.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from .signals import Direction, Trend


@dataclass(frozen=True)
class Candle:
    """OHLCV candle structure."""

    time: int  # Open time, epoch milliseconds
    open: float
    high: float
    low: float
    close: float
    volume: float

    @property
    def datetime(self) -> datetime:
        """UTC datetime for the candle timestamp."""
        return datetime.fromtimestamp(self.time / 1000, tz=timezone.utc)

    @property
    def body(self) -> float:
        return abs(self.close - self.open)

    @property
    def range(self) -> float:
        return self.high - self.low

    @property
    def is_bullish(self) -> bool:
        return self.close > self.open


@dataclass(frozen=True)
class OrderBlock:
    """Large-body, high-volume candle taken as a supply/demand zone."""

    index: int
    high: float
    low: float
    bullish: bool


@dataclass(frozen=True)
class FairValueGap:
    """Price range skipped between two candle wicks."""

    type: Trend  # BULLISH or BEARISH
    low: float
    high: float
    index: int


@dataclass(frozen=True)
class LiquidityLevel:
    """Support or resistance price."""

    type: str  # 'support' or 'resistance'
    price: float


@dataclass(frozen=True)
class TimeframeAnalysis:
    """Structured analysis of one timeframe's candles."""

    timeframe: str
    price: float
    last: Candle
    trend: Trend
    rsi: float
    volume_spike: bool
    momentum: float  # Last close - previous close
    momentum_strong: bool
    order_block: Optional[OrderBlock] = None
    fair_value_gaps: Tuple[FairValueGap, ...] = ()
    liquidity_levels: Tuple[LiquidityLevel, ...] = ()
    confidence: float = 60.0

    @property
    def momentum_direction(self) -> Direction:
        """Direction implied by the latest close-to-close move."""
        if self.momentum > 0:
            return Direction.LONG
        if self.momentum < 0:
            return Direction.SHORT
        return Direction.NEUTRAL

    def levels_of(self, level_type: str) -> List[float]:
        return [lvl.price for lvl in self.liquidity_levels if lvl.type == level_type]


@dataclass(frozen=True)
class TargetCandidate:
    """One take-profit distance evaluated by the EV selector."""

    multiplier: float
    stop_distance: float
    target_distance: float
    win_probability: float
    expected_value: float
    reward_to_risk: float


@dataclass(frozen=True)
class SignalDiagnostics:
    """Model internals attached to a directional signal."""

    chosen_multiplier: float
    probability: float
    expected_value: float
    candidate_probabilities: Tuple[float, ...]
    atr: float
    middle_trend: Trend
    higher_trend: Optional[Trend]
    lowest_momentum_strong: bool
    middle_volume_spike: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "atr": self.atr,
            "p_candidates": [round(p, 4) for p in self.candidate_probabilities],
            "chosen_tp_multiplier": self.chosen_multiplier,
            "chosen_p": round(self.probability, 4),
            "ev": round(self.expected_value, 4),
            "m15_trend": self.middle_trend.value,
            "h1_trend": self.higher_trend.value if self.higher_trend is not None else None,
            "m5_momentum_strong": self.lowest_momentum_strong,
            "m15_volume_spike": self.middle_volume_spike,
        }


@dataclass(frozen=True)
class TradeSignal:
    """Advisory signal for one symbol. Price fields are set only on LONG/SHORT."""

    symbol: str
    direction: Direction
    confidence: int
    entry: Optional[float] = None
    stop_loss: Optional[float] = None
    take_profit: Optional[float] = None
    reward_to_risk: Optional[float] = None
    position_size: Optional[float] = None
    reason: Optional[str] = None
    diagnostics: Optional[SignalDiagnostics] = None

    @property
    def is_directional(self) -> bool:
        return self.direction.is_directional

    @classmethod
    def non_directional(
        cls, symbol: str, direction: Direction, confidence: int, reason: str
    ) -> "TradeSignal":
        return cls(symbol=symbol, direction=direction, confidence=confidence, reason=reason)

    @classmethod
    def no_trade(cls, symbol: str, reason: str, confidence: int = 0) -> "TradeSignal":
        return cls.non_directional(symbol, Direction.NO_TRADE, confidence, reason)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready representation."""
        data: Dict[str, Any] = {
            "symbol": self.symbol,
            "direction": self.direction.value,
            "confidence": self.confidence,
        }
        if self.reason is not None:
            data["reason"] = self.reason
        if self.is_directional:
            data.update(
                {
                    "entry": self.entry,
                    "sl": self.stop_loss,
                    "tp": self.take_profit,
                    "rr": (
                        round(self.reward_to_risk, 2) if self.reward_to_risk is not None else None
                    ),
                    "position_size": self.position_size,
                }
            )
        if self.diagnostics is not None:
            data["meta"] = self.diagnostics.to_dict()
        return data


@dataclass(frozen=True)
class StageState:
    """Values threaded between pipeline stages. Stages return updated copies."""

    symbol: str
    middle: TimeframeAnalysis
    lowest: TimeframeAnalysis
    higher: Optional[TimeframeAnalysis]
    atr: float
    price: float
    bias: Direction = Direction.NEUTRAL
    bias_score: float = 0.0
    probabilities: Tuple[float, ...] = ()
    best: Optional[TargetCandidate] = None
    entry: float = 0.0
    stop_loss: float = 0.0
    take_profit: float = 0.0
