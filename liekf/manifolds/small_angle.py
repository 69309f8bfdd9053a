"""
Small-angle safe trigonometric coefficients for SE(2).

Every closed-form expression of the SE(2) exponential, logarithm and their
Jacobians is written in terms of four functions of the rotation angle θ:

    A(θ) = sin θ / θ
    B(θ) = (1 - cos θ) / θ
    C(θ) = (θ - sin θ) / θ²
    D(θ) = (1 - cos θ) / θ²

All four suffer catastrophic cancellation near θ = 0. Below
SMALL_ANGLE_THRESHOLD they are replaced by their Taylor series truncated to
fourth order in θ. This module is the only place where the threshold and
the series live.
"""

import numpy as np

SMALL_ANGLE_THRESHOLD = 1e-4


def is_small_angle(theta: float) -> bool:
    """Return True when the series branch is used for ``theta``."""
    return abs(theta) < SMALL_ANGLE_THRESHOLD


def sinc(theta: float) -> float:
    """A(θ) = sin θ / θ."""
    if is_small_angle(theta):
        t2 = theta * theta
        return 1.0 - t2 / 6.0 + t2 * t2 / 120.0
    return np.sin(theta) / theta


def cosc(theta: float) -> float:
    """B(θ) = (1 - cos θ) / θ."""
    if is_small_angle(theta):
        t2 = theta * theta
        return theta * (0.5 - t2 / 24.0 + t2 * t2 / 720.0)
    return (1.0 - np.cos(theta)) / theta


def theta_minus_sin_over_sq(theta: float) -> float:
    """C(θ) = (θ - sin θ) / θ²."""
    if is_small_angle(theta):
        t2 = theta * theta
        return theta * (1.0 / 6.0 - t2 / 120.0 + t2 * t2 / 5040.0)
    return (theta - np.sin(theta)) / (theta * theta)


def one_minus_cos_over_sq(theta: float) -> float:
    """D(θ) = (1 - cos θ) / θ²."""
    if is_small_angle(theta):
        t2 = theta * theta
        return 0.5 - t2 / 24.0 + t2 * t2 / 720.0
    return (1.0 - np.cos(theta)) / (theta * theta)
