"""
Tests for confidence blending and position sizing.
"""

import pytest

from scalp_signals.engines.confidence import blend_confidence, position_size, reward_to_risk
from scalp_signals.engines.indicator_config import ConfidenceBlend


@pytest.fixture
def blend():
    return ConfidenceBlend()


class TestBlendConfidence:
    def test_strong_setup(self, blend):
        """0.7 * 0.99261 + 0.2 * 0.8 + 0.08 = 0.9348."""
        assert blend_confidence(0.99261, 80.0, True, blend) == 93

    def test_without_momentum_bonus(self, blend):
        """0.7 * 0.6 + 0.2 * 0.6 = 0.54."""
        assert blend_confidence(0.6, 60.0, False, blend) == 54

    def test_clamped_to_floor(self, blend):
        assert blend_confidence(0.0, 0.0, False, blend) == 20

    def test_clamped_to_ceiling(self):
        generous = ConfidenceBlend(momentum_bonus=0.5)

        assert blend_confidence(1.0, 100.0, True, generous) == 98

    def test_returns_int(self, blend):
        assert isinstance(blend_confidence(0.55, 70.0, False, blend), int)


class TestRewardToRisk:
    def test_ratio(self):
        assert reward_to_risk(100.0, 99.0, 103.0) == 3.0
        assert reward_to_risk(100.0, 102.0, 97.0) == 1.5

    def test_zero_risk(self):
        assert reward_to_risk(100.0, 100.0, 103.0) == 0.0


class TestPositionSize:
    def test_risk_amount_over_stop_distance(self, blend):
        """Risk 0.5% of 1000 = 5 units of quote currency."""
        assert blend.risk_amount == 5.0
        assert position_size(100.0, 99.0, blend) == 5.0
        assert position_size(53600.0, 53500.0, blend) == 0.05

    def test_rounded_to_four_places(self, blend):
        assert position_size(100.0, 97.0, blend) == 1.6667

    def test_zero_distance(self, blend):
        assert position_size(100.0, 100.0, blend) == 0.0
