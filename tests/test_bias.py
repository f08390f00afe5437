"""
Tests for bias resolution and the momentum confirmation gate.
"""

import pytest

from builders import make_analysis
from scalp_signals.engines.bias import (
    bias_confidence,
    confirms_bias,
    resolve_bias,
    trend_contribution,
)
from scalp_signals.engines.indicator_config import BiasThresholds
from scalp_signals.engines.signals import Direction, Trend

THRESHOLDS = BiasThresholds()


class TestResolveBias:
    """Tests for resolve_bias."""

    @pytest.mark.parametrize(
        "higher,middle,score,bias",
        [
            (Trend.BULLISH, Trend.BULLISH, 1.8, Direction.LONG),
            (Trend.BEARISH, Trend.BEARISH, -1.8, Direction.SHORT),
            (Trend.BULLISH, Trend.NEUTRAL, 1.0, Direction.LONG),
            (Trend.NEUTRAL, Trend.BEARISH, -0.8, Direction.SHORT),
            (Trend.BULLISH, Trend.BEARISH, 0.2, Direction.NEUTRAL),
            (Trend.BEARISH, Trend.BULLISH, -0.2, Direction.NEUTRAL),
            (Trend.NEUTRAL, Trend.NEUTRAL, 0.0, Direction.NEUTRAL),
        ],
    )
    def test_score_table(self, higher, middle, score, bias):
        resolution = resolve_bias(
            make_analysis(trend=middle), make_analysis(trend=higher, timeframe="1h"), THRESHOLDS
        )

        assert resolution.score == pytest.approx(score)
        assert resolution.bias == bias

    def test_missing_higher_timeframe_votes_zero(self):
        """Middle timeframe alone: 0.8 > 0.6 resolves LONG."""
        resolution = resolve_bias(make_analysis(trend=Trend.BULLISH), None, THRESHOLDS)

        assert resolution.score == pytest.approx(0.8)
        assert resolution.bias == Direction.LONG

    def test_neutral_confidence(self):
        """A 0.4 score is NEUTRAL with confidence round(0.4 / 1.8 * 100) = 22."""
        thresholds = BiasThresholds(middle_weight=0.4)
        resolution = resolve_bias(make_analysis(trend=Trend.BULLISH), None, thresholds)

        assert resolution.bias == Direction.NEUTRAL
        assert resolution.confidence == 22

    def test_full_agreement_confidence(self):
        resolution = resolve_bias(
            make_analysis(trend=Trend.BULLISH), make_analysis(trend=Trend.BULLISH), THRESHOLDS
        )

        assert resolution.confidence == 100

    def test_threshold_is_exclusive(self):
        """A score equal to the threshold stays NEUTRAL."""
        thresholds = BiasThresholds(middle_weight=0.6)
        resolution = resolve_bias(make_analysis(trend=Trend.BULLISH), None, thresholds)

        assert resolution.bias == Direction.NEUTRAL


class TestHelpers:
    """Tests for the scoring helpers."""

    def test_trend_contribution(self):
        assert trend_contribution(Trend.BULLISH, 0.8) == 0.8
        assert trend_contribution(Trend.BEARISH, 0.8) == -0.8
        assert trend_contribution(Trend.NEUTRAL, 0.8) == 0.0

    def test_bias_confidence_uses_absolute_score(self):
        assert bias_confidence(-0.2, THRESHOLDS) == 11
        assert bias_confidence(0.0, THRESHOLDS) == 0


class TestMomentumGate:
    """Tests for confirms_bias."""

    def test_agreeing_move_confirms(self):
        assert confirms_bias(make_analysis(momentum=1.0), Direction.LONG) is True
        assert confirms_bias(make_analysis(momentum=-1.0), Direction.SHORT) is True

    def test_opposing_move_rejects(self):
        assert confirms_bias(make_analysis(momentum=-1.0), Direction.LONG) is False
        assert confirms_bias(make_analysis(momentum=1.0), Direction.SHORT) is False

    def test_flat_move_rejects(self):
        assert confirms_bias(make_analysis(momentum=0.0), Direction.LONG) is False

    def test_strong_move_on_spike_overrides(self):
        lowest = make_analysis(momentum=-3.0, momentum_strong=True, volume_spike=True)

        assert confirms_bias(lowest, Direction.LONG) is True

    def test_strong_move_without_spike_rejects(self):
        lowest = make_analysis(momentum=-3.0, momentum_strong=True, volume_spike=False)

        assert confirms_bias(lowest, Direction.LONG) is False
