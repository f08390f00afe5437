import os
import sys

import pytest

TESTS_DIR = os.path.dirname(__file__)
PROJECT_ROOT = os.path.abspath(os.path.join(TESTS_DIR, ".."))
for path in (PROJECT_ROOT, TESTS_DIR):
    if path not in sys.path:
        sys.path.insert(0, path)

from builders import trending_candles  # noqa: E402


@pytest.fixture
def rising_candles():
    """60 rising candles: ATR exactly 100, +60 per bar, flat volume."""
    return trending_candles(60)


@pytest.fixture
def rising_spike_candles():
    """Rising candles whose last bar trades 5x the usual volume."""
    return trending_candles(60, last_volume=500.0)


@pytest.fixture
def falling_candles():
    return trending_candles(60, step=-60.0)
