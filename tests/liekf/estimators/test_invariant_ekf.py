"""
Unit tests for the left-invariant EKF.

Tests cover:
    - Trajectory-independent pose block of the left-tangent transition
    - Right/left covariance mapping through the adjoint
    - Left retraction in the update
"""

import unittest

import numpy as np
from numpy.testing import assert_allclose

from liekf.estimators import ExtendedKalmanFilter, InvariantExtendedKalmanFilter
from liekf.manifolds import SE2
from liekf.models import (
    DiffDriveSystemModel,
    Landmark2DMeasurementModel,
    MeasurementModelBundleWrapper,
)
from liekf.state import DiffDriveState, Kinematics


def left_covariance(X, P_right):
    Ad = X.adj()
    return Ad @ P_right @ Ad.T


class TestIEKFPrediction(unittest.TestCase):
    """Time update in the left tangent."""

    def setUp(self):
        self.kinematics = Kinematics(0.15, 0.15, 0.4)
        self.u = np.array([0.3, -0.1])

    def test_pose_transition_is_identity(self):
        """Without process noise the left-tangent pose covariance is constant."""
        model = DiffDriveSystemModel(self.kinematics, with_calibration=False)
        X = SE2(1.0, -2.0, 0.7)
        P = np.diag([0.1, 0.2, 0.05])
        iekf = InvariantExtendedKalmanFilter(X, P)
        for _ in range(50):
            iekf.predict(model, self.u, dt=0.01)
        assert_allclose(iekf.get_covariance(), P, atol=1e-12)

    def test_right_covariance_matches_ekf(self):
        model = DiffDriveSystemModel(self.kinematics)
        model.set_covariance(np.diag([9e-5, 9e-5]))
        model.set_calibration_drift(np.full(3, 1e-6))
        X = DiffDriveState.from_vector(1.0, -2.0, 0.7, 0.15, 0.14, 0.4)
        P = np.diag([0.1, 0.2, 0.05, 1e-4, 1e-4, 1e-4])

        ekf = ExtendedKalmanFilter(X, P)
        iekf = InvariantExtendedKalmanFilter(X, left_covariance(X, P))
        ekf.predict(model, self.u, dt=0.01)
        iekf.predict(model, self.u, dt=0.01)

        self.assertEqual(iekf.get_state(), ekf.get_state())
        assert_allclose(iekf.get_right_covariance(), ekf.get_covariance(), atol=1e-12)


class TestIEKFCovarianceMapping(unittest.TestCase):
    """get_right_covariance() inverts the adjoint mapping."""

    def test_roundtrip(self):
        X = DiffDriveState.from_vector(3.0, -1.0, 2.2, 0.15, 0.15, 0.4)
        A = np.random.default_rng(7).standard_normal((6, 6))
        P_right = 0.01 * A @ A.T
        iekf = InvariantExtendedKalmanFilter(X, left_covariance(X, P_right))
        assert_allclose(iekf.get_right_covariance(), P_right, atol=1e-12)

    def test_identity_mean(self):
        P = np.diag([0.1, 0.2, 0.3])
        iekf = InvariantExtendedKalmanFilter(SE2(), P)
        assert_allclose(iekf.get_right_covariance(), P)


class TestIEKFUpdate(unittest.TestCase):
    """Update with left retraction X̂' = Exp(K r) ∘ X̂."""

    def setUp(self):
        self.X = DiffDriveState.from_vector(0.5, -0.3, 0.2, 0.15, 0.15, 0.4)
        self.P_right = np.diag([0.01, 0.02, 0.005, 1e-5, 1e-5, 1e-5])
        self.model = MeasurementModelBundleWrapper(
            Landmark2DMeasurementModel(np.array([2.0, 1.0]), 1e-4 * np.eye(2))
        )

    def test_left_retraction(self):
        P_left = left_covariance(self.X, self.P_right)
        iekf = InvariantExtendedKalmanFilter(self.X, P_left)
        y = self.model.h(self.X) + np.array([0.01, -0.02])
        iekf.update(self.model, y)

        H = self.model.H(self.X) @ self.X.inverse().adj()
        S = H @ P_left @ H.T + self.model.covariance
        K = P_left @ H.T @ np.linalg.inv(S)
        expected = self.X.lplus(K @ (y - self.model.h(self.X)))
        self.assertTrue(iekf.get_state().isapprox(expected, tol=1e-12))

    def test_matching_update_agrees_with_ekf(self):
        """With a zero residual both variants give the same right covariance."""
        ekf = ExtendedKalmanFilter(self.X, self.P_right)
        iekf = InvariantExtendedKalmanFilter(self.X, left_covariance(self.X, self.P_right))
        y = self.model.h(self.X)
        ekf.update(self.model, y)
        iekf.update(self.model, y)
        self.assertTrue(iekf.get_state().isapprox(self.X, tol=1e-14))
        assert_allclose(iekf.get_right_covariance(), ekf.get_covariance(), atol=1e-14)


if __name__ == "__main__":
    unittest.main()
