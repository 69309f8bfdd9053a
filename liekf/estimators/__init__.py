"""
On-manifold estimators for Lie-group states.

Available estimators:
    - Extended Kalman Filter (EKF), right-tangent error
    - Square-root EKF (SEKF), QR array algorithms on P = Uᵀ U
    - Invariant EKF (IEKF), left-invariant error
    - Unscented Kalman Filter on manifolds (UKFM)

All implement ManifoldEstimator. Use make_estimator() to pick a variant at
construction time.
"""

from enum import Enum
from typing import Optional

import numpy as np

from liekf.estimators.base import ManifoldEstimator
from liekf.estimators.extended_kalman_filter import ExtendedKalmanFilter
from liekf.estimators.invariant_extended_kalman_filter import InvariantExtendedKalmanFilter
from liekf.estimators.square_root_extended_kalman_filter import SquareRootExtendedKalmanFilter
from liekf.estimators.unscented_kalman_filter_manifolds import (
    UnscentedKalmanFilterManifolds,
    karcher_mean,
)
from liekf.manifolds import LieGroup


class EstimatorKind(Enum):
    EKF = "EKF"
    SEKF = "SEKF"
    IEKF = "IEKF"
    UKFM = "UKFM"

    @classmethod
    def parse(cls, kind) -> "EstimatorKind":
        """Accept an EstimatorKind or its case-insensitive name."""
        if isinstance(kind, cls):
            return kind
        try:
            return cls(str(kind).upper())
        except ValueError:
            valid = ", ".join(k.value for k in cls)
            raise ValueError(f"Unknown estimator kind {kind!r}, expected one of {valid}") from None


_ESTIMATORS = {
    EstimatorKind.EKF: ExtendedKalmanFilter,
    EstimatorKind.SEKF: SquareRootExtendedKalmanFilter,
    EstimatorKind.IEKF: InvariantExtendedKalmanFilter,
    EstimatorKind.UKFM: UnscentedKalmanFilterManifolds,
}


def make_estimator(
    kind,
    X0: Optional[LieGroup] = None,
    P0: Optional[np.ndarray] = None,
    **options,
) -> ManifoldEstimator:
    """
    Construct an estimator variant.

    Args:
        kind: EstimatorKind or its name ("EKF", "SEKF", "IEKF", "UKFM").
        X0: Initial mean.
        P0: Initial covariance, in the variant's own tangent convention
            (left tangent for the IEKF).
        **options: Variant-specific keyword arguments (alpha, beta, kappa
            for the UKFM).

    Returns:
        A ManifoldEstimator.

    Raises:
        ValueError: Unknown kind.
    """
    return _ESTIMATORS[EstimatorKind.parse(kind)](X0, P0, **options)


__all__ = [
    "ManifoldEstimator",
    "EstimatorKind",
    "make_estimator",
    # Variants
    "ExtendedKalmanFilter",
    "SquareRootExtendedKalmanFilter",
    "InvariantExtendedKalmanFilter",
    "UnscentedKalmanFilterManifolds",
    "karcher_mean",
]
