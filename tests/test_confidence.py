"""Tests for confidence scoring."""

import pytest

from trueaudio.core.confidence import round_half_up, score_confidence


class TestScoreConfidence:

    @pytest.mark.parametrize("dynamic_range,artificial,peaks,expected", [
        (40.0, False, 0, 100),
        (30.0, False, 5, 100),
        (29.9, False, 0, 70),
        (40.0, True, 0, 50),
        (40.0, False, 6, 80),
        (20.0, True, 0, 35),
        (20.0, True, 10, 28),
    ])
    def test_penalties_multiply(self, dynamic_range, artificial, peaks, expected):
        assert score_confidence(dynamic_range, artificial, peaks) == expected

    def test_returns_int(self):
        assert isinstance(score_confidence(10.0, True, 10), int)


class TestRoundHalfUp:

    @pytest.mark.parametrize("value,expected", [
        (72.5, 73),
        (72.4999, 72),
        (2.5, 3),
        (0.5, 1),
        (-2.5, -2),
        (100.0, 100),
    ])
    def test_rounds_half_toward_positive_infinity(self, value, expected):
        assert round_half_up(value) == expected
