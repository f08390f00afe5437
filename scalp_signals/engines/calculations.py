"""
Shared math utilities for indicator calculations.
"""

import math
from typing import Iterable, List, Optional


def simple_average(values: Iterable[float], default: float = 0.0) -> float:
    """Return the arithmetic mean of values or a default if empty."""
    values_list = list(values)
    if not values_list:
        return default
    return sum(values_list) / len(values_list)


def calculate_ema(prices: List[float], period: int) -> List[float]:
    """Calculate Exponential Moving Average (SMA-seeded series)."""
    if len(prices) < period or period <= 0:
        return []

    multiplier = 2 / (period + 1)
    ema = [sum(prices[:period]) / period]  # Start with SMA

    for price in prices[period:]:
        ema.append(price * multiplier + ema[-1] * (1 - multiplier))

    return ema


def last_value(values: List[float]) -> Optional[float]:
    """Last element of a series, or None when the series is empty."""
    return values[-1] if values else None


def clip(value: float, min_val: float, max_val: float) -> float:
    """Clip value to range."""
    return max(min_val, min(max_val, value))


def logistic(score: float, bound: float = 10.0) -> float:
    """Map a score to (0, 1) after clamping it to [-bound, +bound]."""
    s = clip(score, -bound, bound)
    return 1 / (1 + math.exp(-s))


def is_finite(*values: float) -> bool:
    """True when every value is a finite number."""
    return all(math.isfinite(v) for v in values)


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves rounded up (2.5 -> 3)."""
    return int(math.floor(value + 0.5))
