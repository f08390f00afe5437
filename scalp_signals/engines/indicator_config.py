"""
Engine Configuration Module
Centralizes all magic numbers and thresholds for the signal engine.

Every threshold the pipeline consults lives here as an immutable dataclass so an
engine can be built with a tuned configuration without touching module state.
"""

from dataclasses import dataclass, field, replace
from typing import Tuple

# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================

EPSILON = 1e-9


def safe_divide(numerator: float, denominator: float, default: float = 0.0) -> float:
    """
    Safely divide two numbers, returning default if denominator is near zero.

    Args:
        numerator: The numerator
        denominator: The denominator
        default: Value to return if division is unsafe (default: 0.0)

    Returns:
        numerator / denominator if safe, otherwise default
    """
    return numerator / denominator if abs(denominator) > EPSILON else default


@dataclass(frozen=True)
class TimeframeSpec:
    """One timeframe fetched per evaluation."""

    label: str
    interval: str
    weight: float  # Relative importance, documentation only
    required: bool = True


@dataclass(frozen=True)
class TimeframeSet:
    """The higher / middle / lowest timeframes combined by the engine."""

    higher: TimeframeSpec = TimeframeSpec("H1", "1h", 1.3, required=False)
    middle: TimeframeSpec = TimeframeSpec("15M", "15m", 1.1)
    lowest: TimeframeSpec = TimeframeSpec("5M", "5m", 0.8)
    candle_limit: int = 300

    def all(self) -> Tuple[TimeframeSpec, TimeframeSpec, TimeframeSpec]:
        return (self.higher, self.middle, self.lowest)


@dataclass(frozen=True)
class IndicatorPeriods:
    """Indicator lookbacks and detector parameters."""

    atr_period: int = 14
    rsi_period: int = 14
    ema_fast: int = 8
    ema_slow: int = 34

    volume_spike_factor: float = 1.8
    volume_spike_lookback: int = 9  # Bars preceding the latest one

    order_block_scan_bars: int = 5  # Bars scanned, ending one before the latest
    order_block_body_ratio: float = 0.6  # Body / range
    order_block_volume_lookback: int = 6


@dataclass(frozen=True)
class AnalyzerThresholds:
    """Timeframe analyzer thresholds."""

    momentum_pct: float = 0.0006  # |close - prev close| / price
    momentum_atr_fraction: float = 0.15  # |close - prev close| / ATR
    atr_fallback_pct: float = 0.002  # ATR when neither TF can provide one

    base_confidence: float = 60.0
    volume_spike_bonus: float = 10.0
    trend_bonus: float = 10.0


@dataclass(frozen=True)
class BiasThresholds:
    """Multi-timeframe bias resolution."""

    higher_weight: float = 1.0
    middle_weight: float = 0.8
    long_threshold: float = 0.6  # score > this = LONG
    short_threshold: float = -0.6  # score < this = SHORT
    confidence_normalizer: float = 1.8  # max |score|


@dataclass(frozen=True)
class ProbabilityWeights:
    """Heuristic scoring weights for the win-probability model."""

    higher_trend_aligned: float = 1.2
    middle_trend_aligned: float = 0.9
    middle_volume_spike: float = 0.6
    lowest_momentum_strong: float = 0.8
    lowest_volume_spike: float = 0.6
    lowest_body_expansion: float = 0.5
    body_atr_fraction: float = 0.5  # Body > this * ATR counts as expansion

    too_quiet_atr_pct: float = 0.0002
    too_quiet_penalty: float = -0.5
    too_noisy_atr_pct: float = 0.02
    too_noisy_penalty: float = -0.6

    score_clamp: float = 10.0
    degenerate_probability: float = 0.01  # Used when ATR <= 0
    min_probability: float = 0.52


@dataclass(frozen=True)
class TargetGrid:
    """EV candidate grid, in ATR multiples."""

    multipliers: Tuple[float, ...] = (1.0, 1.5, 2.0, 3.0)
    stop_multiplier: float = 1.0


@dataclass(frozen=True)
class LevelThresholds:
    """Entry adjustment around a detected order block."""

    long_entry_ob_factor: float = 1.001
    short_entry_ob_factor: float = 0.999


@dataclass(frozen=True)
class ConfidenceBlend:
    """Final confidence blend and advisory sizing."""

    probability_weight: float = 0.7
    middle_confidence_weight: float = 0.2
    momentum_bonus: float = 0.08
    min_confidence: int = 20
    max_confidence: int = 98

    account_size: float = 1000.0  # Sizing demonstration only
    risk_percent: float = 0.5

    @property
    def risk_amount(self) -> float:
        return self.account_size * self.risk_percent / 100


@dataclass(frozen=True)
class ScannerSettings:
    """Periodic coin-list scanner."""

    interval_seconds: float = 7.5 * 60
    start_delay_seconds: float = 8.0
    min_confidence: float = 60.0
    duplicate_window_seconds: int = 60 * 60
    history_ttl_seconds: int = 60 * 60
    cycles_before_cleanup: int = 8
    history_cap: int = 1000
    max_consecutive_errors: int = 5
    circuit_breaker_pause_seconds: float = 10 * 60
    per_coin_delay_seconds: float = 1.0
    post_send_delay_seconds: float = 1.2
    timezone: str = "Asia/Ho_Chi_Minh"  # Daily signal counter rolls over at local midnight


@dataclass(frozen=True)
class EngineConfig:
    """
    Master configuration for the signal engine.

    Usage:
        config = EngineConfig()
        # Use defaults

        # Or customize:
        config = EngineConfig(
            targets=TargetGrid(multipliers=(1.0, 2.0)),
            probability=ProbabilityWeights(min_probability=0.55),
        )
    """

    timeframes: TimeframeSet = field(default_factory=TimeframeSet)
    indicators: IndicatorPeriods = field(default_factory=IndicatorPeriods)
    analyzer: AnalyzerThresholds = field(default_factory=AnalyzerThresholds)
    bias: BiasThresholds = field(default_factory=BiasThresholds)
    probability: ProbabilityWeights = field(default_factory=ProbabilityWeights)
    targets: TargetGrid = field(default_factory=TargetGrid)
    levels: LevelThresholds = field(default_factory=LevelThresholds)
    confidence: ConfidenceBlend = field(default_factory=ConfidenceBlend)
    scanner: ScannerSettings = field(default_factory=ScannerSettings)


# Global default config instance
DEFAULT_CONFIG = EngineConfig()


def get_config() -> EngineConfig:
    """Get the default configuration."""
    return DEFAULT_CONFIG


def create_aggressive_config() -> EngineConfig:
    """
    Create a more aggressive configuration with lower thresholds.
    More setups pass the bias and probability gates.
    """
    return replace(
        DEFAULT_CONFIG,
        indicators=IndicatorPeriods(volume_spike_factor=1.5),
        bias=BiasThresholds(long_threshold=0.5, short_threshold=-0.5),
        probability=ProbabilityWeights(min_probability=0.5),
    )


def create_conservative_config() -> EngineConfig:
    """
    Create a more conservative configuration with higher thresholds.
    Requires both trend timeframes to agree and a higher model probability.
    """
    return replace(
        DEFAULT_CONFIG,
        indicators=IndicatorPeriods(volume_spike_factor=2.2),
        bias=BiasThresholds(long_threshold=1.0, short_threshold=-1.0),
        probability=ProbabilityWeights(min_probability=0.6),
        targets=TargetGrid(multipliers=(1.5, 2.0, 3.0)),
    )


PROFILES = {
    "default": get_config,
    "aggressive": create_aggressive_config,
    "conservative": create_conservative_config,
}


def config_for_profile(profile: str) -> EngineConfig:
    """
    Look up a named configuration profile.

    Raises:
        ValueError: unknown profile name
    """
    try:
        return PROFILES[profile]()
    except KeyError:
        raise ValueError(
            f"Unknown profile {profile!r}. Must be one of: {sorted(PROFILES)}"
        ) from None
