"""Unit tests for liekf.manifolds.small_angle."""

import numpy as np
import pytest

from liekf.manifolds.small_angle import (
    SMALL_ANGLE_THRESHOLD,
    cosc,
    is_small_angle,
    one_minus_cos_over_sq,
    sinc,
    theta_minus_sin_over_sq,
)


class TestSmallAngleCoefficients:
    """Series and closed forms of A, B, C, D."""

    def test_values_at_zero(self):
        assert sinc(0.0) == 1.0
        assert cosc(0.0) == 0.0
        assert theta_minus_sin_over_sq(0.0) == 0.0
        assert one_minus_cos_over_sq(0.0) == 0.5

    def test_threshold(self):
        assert is_small_angle(0.5 * SMALL_ANGLE_THRESHOLD)
        assert is_small_angle(-0.5 * SMALL_ANGLE_THRESHOLD)
        assert not is_small_angle(SMALL_ANGLE_THRESHOLD)

    @pytest.mark.parametrize("theta", [0.3, -1.2, 2.5])
    def test_closed_forms(self, theta):
        assert np.isclose(sinc(theta), np.sin(theta) / theta)
        assert np.isclose(cosc(theta), (1 - np.cos(theta)) / theta)
        assert np.isclose(theta_minus_sin_over_sq(theta), (theta - np.sin(theta)) / theta**2)
        assert np.isclose(one_minus_cos_over_sq(theta), (1 - np.cos(theta)) / theta**2)

    @pytest.mark.parametrize(
        "func", [sinc, cosc, theta_minus_sin_over_sq, one_minus_cos_over_sq]
    )
    def test_continuous_across_threshold(self, func):
        below = func((1 - 1e-6) * SMALL_ANGLE_THRESHOLD)
        above = func((1 + 1e-6) * SMALL_ANGLE_THRESHOLD)
        assert abs(below - above) < 1e-7

    def test_odd_and_even(self):
        theta = 1e-6
        assert sinc(-theta) == sinc(theta)
        assert one_minus_cos_over_sq(-theta) == one_minus_cos_over_sq(theta)
        assert cosc(-theta) == -cosc(theta)
        assert theta_minus_sin_over_sq(-theta) == -theta_minus_sin_over_sq(theta)
