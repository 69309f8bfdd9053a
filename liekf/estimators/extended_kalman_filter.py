"""
Extended Kalman Filter on a Lie group.

The error is defined in the right tangent of the mean, X = X̂ ⊞ δ with
δ ~ N(0, P), so the filter equations are the familiar EKF ones with the
Euclidean plus and minus replaced by the on-manifold retractions.

Implements:
    - Prediction
      X̂' = f(X̂, u)
      P'  = F P Fᵀ + Q,   F = ∂f/∂X in the right tangent
    - Update
      r = y ⊖ h(X̂),   S = H P Hᵀ + R,   K = P Hᵀ S⁻¹
      X̂' = X̂ ⊞ K r
      P'  = (I - K H) P (I - K H)ᵀ + K R Kᵀ   (Joseph form)

Reference:
    J. Sola, J. Deray, D. Atchuthan, "A micro Lie theory for state
    estimation in robotics", 2018, Sec. V.
"""

from typing import Optional, Tuple

import numpy as np
from scipy.linalg import cho_solve

from liekf.estimators.base import (
    ManifoldEstimator,
    check_covariance,
    check_finite,
    check_finite_state,
    check_jacobian,
    check_measurement,
    check_measurement_covariance,
    check_state,
    exclusive_call,
    innovation_factor,
    require_initialized,
    require_state,
    symmetrize,
)
from liekf.manifolds import LieGroup


class ExtendedKalmanFilter(ManifoldEstimator):
    """
    Error-state EKF with right-tangent covariance.

    Attributes:
        X: Current mean (Lie group element).
        P: Current covariance (n×n) in the right tangent of X.

    Example:
        >>> ekf = ExtendedKalmanFilter(model.initial_state(), 1e-4 * np.eye(6))
        >>> ekf.predict(model, u, dt=0.01)
        >>> ekf.update(MeasurementModelBundleWrapper(landmark_model), y)
    """

    def __init__(self, X0: Optional[LieGroup] = None, P0: Optional[np.ndarray] = None):
        self._X: Optional[LieGroup] = None
        self._P: Optional[np.ndarray] = None
        self._I: Optional[np.ndarray] = None
        self._in_call = False
        self._innovation: Optional[Tuple[np.ndarray, np.ndarray]] = None
        if X0 is not None:
            self.set_state(X0)
        if P0 is not None:
            self.set_covariance(P0)

    def set_state(self, X0: LieGroup) -> None:
        with exclusive_call(self, "set_state"):
            X0 = check_state(X0)
            if self._P is not None and self._P.shape[0] != X0.dof:
                self._P = None
            self._X = X0
            self._I = np.eye(X0.dof)

    def set_covariance(self, P0: np.ndarray) -> None:
        with exclusive_call(self, "set_covariance"):
            require_state(self, self._X, "set_covariance")
            self._P = check_covariance(P0, self._X.dof)

    def get_state(self) -> LieGroup:
        return self._X

    def get_covariance(self) -> np.ndarray:
        return None if self._P is None else self._P.copy()

    def get_innovation(self) -> Tuple[np.ndarray, np.ndarray]:
        """(r, S) of the last successful update, or None."""
        return self._innovation

    def predict(self, system_model, u: np.ndarray, dt: Optional[float] = None) -> None:
        """
        Time update.

        The Jacobians are evaluated at the pre-prediction mean X̂, before f
        is applied.

        Args:
            system_model: Provides f(X, u), jacobians(X, u) and
                process_covariance(X, u, dt).
            u: Integrated control.
            dt: Step length forwarded to the process covariance.

        Raises:
            DomainError: Invalid control or calibration (state unchanged).
            NonFiniteCovarianceError: Propagated covariance not finite.
        """
        with exclusive_call(self, "predict"):
            require_initialized(self, self._X, self._P, "predict")
            X, P = self._X, self._P
            n = X.dof

            J_X, _ = system_model.jacobians(X, u)
            F = check_jacobian(J_X, (n, n), "J_X", "predict")
            Q = check_jacobian(system_model.process_covariance(X, u, dt), (n, n), "Q", "predict")
            X_new = system_model.f(X, u)

            P_new = symmetrize(F @ P @ F.T + Q)
            check_finite(P_new, "predict")

            self._X, self._P = X_new, P_new

    def update(self, measurement_model, y: np.ndarray) -> None:
        """
        Measurement update with Joseph-form covariance.

        Args:
            measurement_model: Provides h(X), H(X), covariance and
                innovation(z, ẑ).
            y: Observation.

        Raises:
            DomainError: R is not symmetric PSD (state unchanged).
            InnovationCovarianceError: S is not positive definite.
            NonFiniteCovarianceError: Posterior covariance not finite.
        """
        with exclusive_call(self, "update"):
            require_initialized(self, self._X, self._P, "update")
            X, P = self._X, self._P
            m = measurement_model.dim
            n = X.dof

            R = check_measurement_covariance(measurement_model.covariance, m)
            y = check_measurement(y, m)

            z_pred = measurement_model.h(X)
            H = check_jacobian(measurement_model.H(X), (m, n), "H", "update")
            r = measurement_model.innovation(y, z_pred)

            S = symmetrize(H @ P @ H.T + R)
            S_factor = innovation_factor(S)
            # K = P Hᵀ S⁻¹ = (S⁻¹ H P)ᵀ
            K = cho_solve(S_factor, H @ P).T

            X_new = X.rplus(K @ r)

            A = self._I - K @ H
            P_new = symmetrize(A @ P @ A.T + K @ R @ K.T)
            check_finite(P_new, "update")
            check_finite_state(X_new, "update")

            self._X, self._P = X_new, P_new
            self._innovation = (r, S)

    def __repr__(self) -> str:
        return f"ExtendedKalmanFilter(X={self._X!r})"
