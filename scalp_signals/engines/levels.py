"""
Level Calculator
Entry, stop-loss and take-profit prices, structure-aware where possible.
"""

from dataclasses import dataclass
from typing import Optional

from .data_types import TimeframeAnalysis
from .indicator_config import DEFAULT_CONFIG, EngineConfig
from .signals import Direction


@dataclass(frozen=True)
class TradeLevels:
    """Concrete prices for a directional signal."""

    entry: float
    stop_loss: float
    take_profit: float

    def is_ordered(self, direction: Direction) -> bool:
        """LONG: stop < entry < target. SHORT: target < entry < stop."""
        if direction is Direction.LONG:
            return self.stop_loss < self.entry < self.take_profit
        if direction is Direction.SHORT:
            return self.take_profit < self.entry < self.stop_loss
        return False


class LevelCalculator:
    """
    Computes trade levels.

    Entry moves into a middle-timeframe order block when one exists. The stop
    sits on the nearest liquidity level within one ATR, otherwise one stop unit
    of ATR away. A stop on the wrong side of entry falls back to the ATR offset.
    """

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or DEFAULT_CONFIG

    def entry_price(self, direction: Direction, price: float, middle: TimeframeAnalysis) -> float:
        ob = middle.order_block
        if ob is None:
            return price
        factors = self.config.levels
        if direction is Direction.LONG:
            return min(price, ob.low * factors.long_entry_ob_factor)
        return max(price, ob.high * factors.short_entry_ob_factor)

    def _atr_stop(self, direction: Direction, entry: float, atr: float) -> float:
        return entry - direction.sign * atr * self.config.targets.stop_multiplier

    def stop_loss(
        self, direction: Direction, entry: float, middle: TimeframeAnalysis, atr: float
    ) -> float:
        stop: Optional[float] = None

        if direction is Direction.LONG:
            supports = [p for p in middle.levels_of("support") if p < entry]
            if supports:
                stop = max(max(supports), entry - atr)
        else:
            resistances = [p for p in middle.levels_of("resistance") if p > entry]
            if resistances:
                stop = min(min(resistances), entry + atr)

        if stop is None:
            return self._atr_stop(direction, entry, atr)

        # Wrong-side stop falls back to the ATR offset
        if direction is Direction.LONG and stop >= entry:
            return self._atr_stop(direction, entry, atr)
        if direction is Direction.SHORT and stop <= entry:
            return self._atr_stop(direction, entry, atr)
        return stop

    def take_profit(self, direction: Direction, entry: float, target_distance: float) -> float:
        return entry + direction.sign * target_distance

    def calculate(
        self,
        direction: Direction,
        price: float,
        middle: TimeframeAnalysis,
        atr: float,
        target_distance: float,
    ) -> TradeLevels:
        """
        Args:
            direction: LONG or SHORT
            price: Current price (lowest timeframe close)
            middle: Middle timeframe analysis (order block, liquidity levels)
            atr: Evaluation ATR
            target_distance: Chosen EV candidate's target distance

        Returns:
            TradeLevels (ordering is not guaranteed; check is_ordered)
        """
        if not direction.is_directional:
            raise ValueError(f"Levels need LONG or SHORT, got {direction.value}")

        entry = self.entry_price(direction, price, middle)
        return TradeLevels(
            entry=entry,
            stop_loss=self.stop_loss(direction, entry, middle, atr),
            take_profit=self.take_profit(direction, entry, target_distance),
        )
