"""
Square-root Extended Kalman Filter on a Lie group.

Same error definition and linearisation as the EKF, but the covariance is
carried as an upper-triangular factor U with P = Uᵀ U and both steps are
computed by orthogonal triangularisation (QR) of a pre-array. P is never
formed inside the recursion, which keeps it symmetric and PSD by
construction.

Implements:
    - Prediction
      qr([U Fᵀ ; L_Q]) = [U' ; 0],   Q = L_Qᵀ L_Q
    - Update
      qr([[L_R, 0], [U Hᵀ, U]]) = [[B₁₁, B₁₂], [0, B₂₂]],   R = L_Rᵀ L_R
      S = B₁₁ᵀ B₁₁,   K = (B₁₁⁻¹ B₁₂)ᵀ,   U' = B₂₂
      X̂' = X̂ ⊞ K r

Reference:
    P. Kaminski, A. Bryson, S. Schmidt, "Discrete square root filtering:
    a survey of current techniques", IEEE TAC, 1971.
"""

from typing import Optional, Tuple

import numpy as np
from scipy.linalg import solve_triangular

from liekf.errors import InnovationCovarianceError
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
    psd_factor,
    require_initialized,
    require_state,
    upper_triangular_factor,
)
from liekf.manifolds import LieGroup

# Relative floor below which a diagonal of B₁₁ is treated as zero
PIVOT_TOL = 1e-12


def _positive_diagonal(U: np.ndarray) -> np.ndarray:
    """Flip row signs so the triangular factor has a non-negative diagonal."""
    signs = np.where(np.diag(U) < 0.0, -1.0, 1.0)
    return signs[:, np.newaxis] * U


class SquareRootExtendedKalmanFilter(ManifoldEstimator):
    """
    Square-root EKF with right-tangent covariance.

    The factor convention is upper-triangular: P = Uᵀ U, as produced by
    QR. get_sqrt_covariance() returns U.
    """

    def __init__(self, X0: Optional[LieGroup] = None, P0: Optional[np.ndarray] = None):
        self._X: Optional[LieGroup] = None
        self._U: Optional[np.ndarray] = None
        self._in_call = False
        self._innovation: Optional[Tuple[np.ndarray, np.ndarray]] = None
        if X0 is not None:
            self.set_state(X0)
        if P0 is not None:
            self.set_covariance(P0)

    def set_state(self, X0: LieGroup) -> None:
        with exclusive_call(self, "set_state"):
            X0 = check_state(X0)
            if self._U is not None and self._U.shape[0] != X0.dof:
                self._U = None
            self._X = X0

    def set_covariance(self, P0: np.ndarray) -> None:
        """Install P0; singular P0 is accepted and factored through eigh."""
        with exclusive_call(self, "set_covariance"):
            require_state(self, self._X, "set_covariance")
            P0 = check_covariance(P0, self._X.dof)
            self._U = _positive_diagonal(upper_triangular_factor(P0))

    def get_state(self) -> LieGroup:
        return self._X

    def get_covariance(self) -> np.ndarray:
        return None if self._U is None else self._U.T @ self._U

    def get_sqrt_covariance(self) -> np.ndarray:
        """Upper-triangular U with P = Uᵀ U."""
        return None if self._U is None else self._U.copy()

    def get_innovation(self) -> Tuple[np.ndarray, np.ndarray]:
        return self._innovation

    def predict(self, system_model, u: np.ndarray, dt: Optional[float] = None) -> None:
        """
        Time update by QR of [U Fᵀ ; L_Q].

        Raises:
            DomainError: Invalid control or calibration (state unchanged).
            NonFiniteCovarianceError: Propagated factor not finite.
        """
        with exclusive_call(self, "predict"):
            require_initialized(self, self._X, self._U, "predict")
            X, U = self._X, self._U
            n = X.dof

            J_X, _ = system_model.jacobians(X, u)
            F = check_jacobian(J_X, (n, n), "J_X", "predict")
            Q = check_jacobian(system_model.process_covariance(X, u, dt), (n, n), "Q", "predict")
            X_new = system_model.f(X, u)

            pre_array = np.vstack([U @ F.T, psd_factor(Q)])
            check_finite(pre_array, "predict")
            U_new = _positive_diagonal(np.linalg.qr(pre_array, mode="r"))
            check_finite(U_new, "predict")

            self._X, self._U = X_new, U_new

    def update(self, measurement_model, y: np.ndarray) -> None:
        """
        Measurement update by QR of the joint pre-array.

        Raises:
            DomainError: R is not symmetric PSD (state unchanged).
            InnovationCovarianceError: S = B₁₁ᵀ B₁₁ is not positive definite.
            NonFiniteCovarianceError: Posterior factor not finite.
        """
        with exclusive_call(self, "update"):
            require_initialized(self, self._X, self._U, "update")
            X, U = self._X, self._U
            m = measurement_model.dim
            n = X.dof

            R = check_measurement_covariance(measurement_model.covariance, m)
            y = check_measurement(y, m)

            z_pred = measurement_model.h(X)
            H = check_jacobian(measurement_model.H(X), (m, n), "H", "update")
            r = measurement_model.innovation(y, z_pred)

            pre_array = np.zeros((m + n, m + n))
            pre_array[:m, :m] = upper_triangular_factor(R)
            pre_array[m:, :m] = U @ H.T
            pre_array[m:, m:] = U
            check_finite(pre_array, "update")

            B = np.linalg.qr(pre_array, mode="r")
            B11, B12, B22 = B[:m, :m], B[:m, m:], B[m:, m:]

            pivots = np.abs(np.diag(B11))
            if not np.all(np.isfinite(B11)) or np.any(pivots <= PIVOT_TOL * max(1.0, pivots.max())):
                raise InnovationCovarianceError(
                    "Innovation covariance is not positive definite",
                    "update",
                    eigenvalues=np.linalg.eigvalsh(B11.T @ B11) if np.all(np.isfinite(B11)) else None,
                )

            K = solve_triangular(B11, B12, lower=False).T
            X_new = X.rplus(K @ r)
            U_new = _positive_diagonal(B22)
            check_finite(U_new, "update")
            check_finite_state(X_new, "update")

            self._X, self._U = X_new, U_new
            self._innovation = (r, B11.T @ B11)

    def __repr__(self) -> str:
        return f"SquareRootExtendedKalmanFilter(X={self._X!r})"
