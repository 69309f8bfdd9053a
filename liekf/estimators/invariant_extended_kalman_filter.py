"""
Invariant Extended Kalman Filter on a Lie group.

The error is defined in the left tangent, X = Exp(δ) ∘ X̂ with
δ ~ N(0, P), and corrections are applied by left retraction. System and
measurement models keep expressing their Jacobians in the right tangent;
the filter maps them through the adjoint:

    F_L = Ad(X̂') F_R Ad(X̂)⁻¹
    Q_L = Ad(X̂') Q_R Ad(X̂')ᵀ
    H_L = H_R Ad(X̂)⁻¹

For the pose block of the differential drive, F_R = Ad(Exp(-ξ)) and
Ad(X̂') = Ad(X̂) Ad(Exp(ξ)), so the pose-to-pose block of F_L is the
identity: the left-invariant error does not depend on the trajectory.

Reference:
    A. Barrau, S. Bonnabel, "The invariant extended Kalman filter as a
    stable observer", IEEE TAC, 2017.
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


class InvariantExtendedKalmanFilter(ManifoldEstimator):
    """
    Left-invariant EKF.

    get_covariance() returns P in the left tangent of the mean;
    get_right_covariance() maps it to the right tangent, the convention of
    the other estimators.
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
        """Install P0, expressed in the left tangent of the current mean."""
        with exclusive_call(self, "set_covariance"):
            require_state(self, self._X, "set_covariance")
            self._P = check_covariance(P0, self._X.dof)

    def get_state(self) -> LieGroup:
        return self._X

    def get_covariance(self) -> np.ndarray:
        return None if self._P is None else self._P.copy()

    def get_right_covariance(self) -> np.ndarray:
        """P mapped to the right tangent: Ad(X̂)⁻¹ P Ad(X̂)⁻ᵀ."""
        if self._P is None:
            return None
        Ad_inv = self._X.inverse().adj()
        return symmetrize(Ad_inv @ self._P @ Ad_inv.T)

    def get_innovation(self) -> Tuple[np.ndarray, np.ndarray]:
        return self._innovation

    def predict(self, system_model, u: np.ndarray, dt: Optional[float] = None) -> None:
        """
        Time update in the left tangent.

        Raises:
            DomainError: Invalid control or calibration (state unchanged).
            NonFiniteCovarianceError: Propagated covariance not finite.
        """
        with exclusive_call(self, "predict"):
            require_initialized(self, self._X, self._P, "predict")
            X, P = self._X, self._P
            n = X.dof

            J_X, _ = system_model.jacobians(X, u)
            F_R = check_jacobian(J_X, (n, n), "J_X", "predict")
            Q_R = check_jacobian(system_model.process_covariance(X, u, dt), (n, n), "Q", "predict")
            X_new = system_model.f(X, u)

            Ad_new = X_new.adj()
            F_L = Ad_new @ F_R @ X.inverse().adj()
            Q_L = Ad_new @ Q_R @ Ad_new.T

            P_new = symmetrize(F_L @ P @ F_L.T + Q_L)
            check_finite(P_new, "predict")

            self._X, self._P = X_new, P_new

    def update(self, measurement_model, y: np.ndarray) -> None:
        """
        Measurement update with left retraction X̂' = Exp(K r) ∘ X̂.

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
            H_R = check_jacobian(measurement_model.H(X), (m, n), "H", "update")
            H = H_R @ X.inverse().adj()
            r = measurement_model.innovation(y, z_pred)

            S = symmetrize(H @ P @ H.T + R)
            S_factor = innovation_factor(S)
            K = cho_solve(S_factor, H @ P).T

            X_new = X.lplus(K @ r)

            A = self._I - K @ H
            P_new = symmetrize(A @ P @ A.T + K @ R @ K.T)
            check_finite(P_new, "update")
            check_finite_state(X_new, "update")

            self._X, self._P = X_new, P_new
            self._innovation = (r, S)

    def __repr__(self) -> str:
        return f"InvariantExtendedKalmanFilter(X={self._X!r})"
