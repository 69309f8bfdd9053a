"""
Unit tests for the on-manifold Extended Kalman Filter.

Tests cover:
    - Prediction P' = F P Fᵀ + Q with F evaluated at the pre-prediction mean
    - Update with right retraction and Joseph-form covariance
    - Initialization and dimension checks
"""

import unittest

import numpy as np
from numpy.testing import assert_allclose

from liekf.errors import DimensionError, DomainError, ProgrammerError
from liekf.estimators import ExtendedKalmanFilter
from liekf.manifolds import SE2
from liekf.models import (
    DiffDriveSystemModel,
    Landmark2DMeasurementModel,
    MeasurementModelBundleWrapper,
)
from liekf.state import DiffDriveState, Kinematics


class TestEKFPrediction(unittest.TestCase):
    """Time update on the composite state."""

    def setUp(self):
        self.model = DiffDriveSystemModel(Kinematics(0.15, 0.15, 0.4))
        self.model.set_covariance(np.diag([9e-5, 9e-5]))
        self.model.set_calibration_drift(np.full(3, 1e-6))
        self.X0 = DiffDriveState.from_vector(1.0, 2.0, 0.4, 0.15, 0.14, 0.4)
        self.P0 = np.diag([0.1, 0.1, 0.05, 1e-4, 1e-4, 1e-4])
        self.u = np.array([0.005, 0.0035])

    def test_mean_follows_process_model(self):
        ekf = ExtendedKalmanFilter(self.X0, self.P0)
        ekf.predict(self.model, self.u, dt=0.01)
        self.assertEqual(ekf.get_state(), self.model.f(self.X0, self.u))

    def test_covariance_propagation(self):
        """F is evaluated at X̂ before the prediction."""
        ekf = ExtendedKalmanFilter(self.X0, self.P0)
        ekf.predict(self.model, self.u, dt=0.01)

        F, _ = self.model.jacobians(self.X0, self.u)
        Q = self.model.process_covariance(self.X0, self.u, 0.01)
        assert_allclose(ekf.get_covariance(), F @ self.P0 @ F.T + Q, atol=1e-15)

    def test_get_covariance_returns_copy(self):
        ekf = ExtendedKalmanFilter(self.X0, self.P0)
        P = ekf.get_covariance()
        P[0, 0] = 100.0
        self.assertEqual(ekf.get_covariance()[0, 0], 0.1)

    def test_predict_before_initialization(self):
        ekf = ExtendedKalmanFilter()
        with self.assertRaises(ProgrammerError):
            ekf.predict(self.model, self.u)
        with self.assertRaises(ProgrammerError):
            ekf.set_covariance(self.P0)

    def test_non_positive_calibration_leaves_state(self):
        X = self.X0.with_calibration(np.array([0.15, 0.15, -0.4]))
        ekf = ExtendedKalmanFilter(X, self.P0)
        with self.assertRaises(DomainError):
            ekf.predict(self.model, self.u, dt=0.01)
        self.assertEqual(ekf.get_state(), X)
        assert_allclose(ekf.get_covariance(), self.P0)


class TestEKFUpdate(unittest.TestCase):
    """Measurement update with a wrapped landmark model."""

    def setUp(self):
        self.X = DiffDriveState.from_vector(0.5, -0.3, 0.2, 0.15, 0.15, 0.4)
        self.P = np.diag([0.01, 0.02, 0.005, 1e-5, 1e-5, 1e-5])
        self.landmark = Landmark2DMeasurementModel(np.array([2.0, 1.0]), 1e-4 * np.eye(2))
        self.model = MeasurementModelBundleWrapper(self.landmark)

    def test_update_equations(self):
        ekf = ExtendedKalmanFilter(self.X, self.P)
        y = self.model.h(self.X) + np.array([0.01, -0.02])
        ekf.update(self.model, y)

        H = self.model.H(self.X)
        R = self.model.covariance
        S = H @ self.P @ H.T + R
        K = self.P @ H.T @ np.linalg.inv(S)
        r = y - self.model.h(self.X)
        A = np.eye(6) - K @ H
        expected_P = A @ self.P @ A.T + K @ R @ K.T

        self.assertTrue(ekf.get_state().isapprox(self.X.rplus(K @ r), tol=1e-12))
        assert_allclose(ekf.get_covariance(), expected_P, atol=1e-15)
        r_stored, S_stored = ekf.get_innovation()
        assert_allclose(r_stored, r)
        assert_allclose(S_stored, S)

    def test_update_reduces_uncertainty(self):
        ekf = ExtendedKalmanFilter(self.X, self.P)
        ekf.update(self.model, self.model.h(self.X))
        self.assertLess(np.trace(ekf.get_covariance()[:3, :3]), np.trace(self.P[:3, :3]))
        # Landmarks carry no information on the calibration block
        assert_allclose(ekf.get_covariance()[3:, 3:], self.P[3:, 3:])

    def test_unwrapped_model_on_composite_state(self):
        ekf = ExtendedKalmanFilter(self.X, self.P)
        with self.assertRaises(DimensionError):
            ekf.update(self.landmark, np.zeros(2))

    def test_measurement_shape(self):
        ekf = ExtendedKalmanFilter(self.X, self.P)
        with self.assertRaises(DimensionError):
            ekf.update(self.model, np.zeros(3))

    def test_pose_only_state(self):
        ekf = ExtendedKalmanFilter(SE2(0.5, -0.3, 0.2), self.P[:3, :3])
        ekf.update(self.landmark, self.landmark.h(SE2(0.5, -0.3, 0.2)))
        self.assertEqual(ekf.get_covariance().shape, (3, 3))


class TestEKFInitialization(unittest.TestCase):
    """set_state / set_covariance contract."""

    def test_covariance_shape(self):
        with self.assertRaises(DimensionError):
            ExtendedKalmanFilter(SE2(), np.eye(6))

    def test_rejects_asymmetric_covariance(self):
        P = np.eye(3)
        P[0, 1] = 0.5
        with self.assertRaises(DomainError):
            ExtendedKalmanFilter(SE2(), P)

    def test_rejects_indefinite_covariance(self):
        with self.assertRaises(DomainError):
            ExtendedKalmanFilter(SE2(), np.diag([1.0, -1.0, 1.0]))

    def test_state_change_drops_mismatched_covariance(self):
        ekf = ExtendedKalmanFilter(SE2(), np.eye(3))
        ekf.set_state(DiffDriveState.from_vector(0.0, 0.0, 0.0, 0.15, 0.15, 0.4))
        self.assertIsNone(ekf.get_covariance())

    def test_rejects_non_group_state(self):
        with self.assertRaises(DimensionError):
            ExtendedKalmanFilter(np.zeros(3))


if __name__ == "__main__":
    unittest.main()
