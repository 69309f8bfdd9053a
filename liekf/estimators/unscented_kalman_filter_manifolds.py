"""
Unscented Kalman Filter on manifolds (UKF-M).

Sigma points are drawn in the right tangent of the mean and retracted
onto the group, X_i = X̂ ⊞ ξ_i. After propagation the predicted mean is
the weighted Karcher (Fréchet) mean of the propagated points and the
predicted covariance is the weighted scatter of their right-minus
deviations from it.

Implements:
    - Sigma points: ξ_0 = 0, ξ_{±j} = ±√(n+λ) L_j with P = Σ_j L_j L_jᵀ
      λ = α²(n+κ) - n
      W_m0 = λ/(n+λ), W_c0 = W_m0 + 1 - α² + β, W_i = 1/(2(n+λ))
    - Prediction
      X̂' = argmin Σ W_mi ||f(X_i, u) ⊟ X̂'||²   (Karcher mean)
      P'  = Σ W_ci δ_i δ_iᵀ + Q,   δ_i = f(X_i, u) ⊟ X̂'
    - Update
      ẑ = Σ W_mi h(X_i),  P_zz = Σ W_ci Δz_i Δz_iᵀ + R,  P_xz = Σ W_ci ξ_i Δz_iᵀ
      K = P_xz P_zz⁻¹,  X̂' = X̂ ⊞ K (y ⊖ ẑ),  P' = P - K P_zz Kᵀ

Reference:
    M. Brossard, A. Barrau, S. Bonnabel, "A code for unscented Kalman
    filtering on manifolds (UKF-M)", ICRA 2020.
"""

from typing import List, Optional, Sequence, Tuple

import numpy as np
from scipy.linalg import cho_solve

from liekf.errors import DomainError, KarcherMeanConvergenceError
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
    psd_factor,
    require_initialized,
    require_state,
    symmetrize,
)
from liekf.manifolds import LieGroup

KARCHER_TOL = 1e-8
KARCHER_MAX_ITERATIONS = 10


def karcher_mean(
    points: Sequence[LieGroup],
    weights: np.ndarray,
    initial: LieGroup,
    tol: float = KARCHER_TOL,
    max_iterations: int = KARCHER_MAX_ITERATIONS,
) -> Tuple[LieGroup, int]:
    """
    Weighted mean of group elements by Gauss-Newton on the right tangent.

    Iterates X ← X ⊞ Σ w_i (X_i ⊟ X) until the step norm drops below tol.

    Args:
        points: Group elements of the same type.
        weights: Weights summing to one (may be negative).
        initial: Starting guess.
        tol: Convergence threshold on the step norm.
        max_iterations: Iteration cap.

    Returns:
        (mean, iterations used).

    Raises:
        KarcherMeanConvergenceError: If the cap is reached first.
    """
    mean = initial
    step_norm = float("inf")
    for iteration in range(1, max_iterations + 1):
        step = sum(w * p.rminus(mean) for w, p in zip(weights, points))
        step_norm = float(np.linalg.norm(step))
        if not np.isfinite(step_norm):
            break
        mean = mean.rplus(step)
        if step_norm < tol:
            return mean, iteration
    raise KarcherMeanConvergenceError(
        f"Karcher mean did not converge in {max_iterations} iterations "
        f"(last step {step_norm:.3e})",
        "predict",
        iterations=max_iterations,
        residual=step_norm,
    )


class UnscentedKalmanFilterManifolds(ManifoldEstimator):
    """
    UKF-M with right-tangent sigma points and covariance.

    Args:
        X0: Initial mean.
        P0: Initial covariance.
        alpha: Sigma-point spread.
        beta: Prior-distribution parameter (2 is optimal for Gaussians).
        kappa: Secondary scaling parameter.

    Example:
        >>> ukf = UnscentedKalmanFilterManifolds(X0, P0, alpha=1e-3)
        >>> ukf.predict(model, u, dt=0.01)
    """

    def __init__(
        self,
        X0: Optional[LieGroup] = None,
        P0: Optional[np.ndarray] = None,
        alpha: float = 1e-3,
        beta: float = 2.0,
        kappa: float = 0.0,
    ):
        if not alpha > 0.0:
            raise DomainError(f"alpha must be positive, got {alpha}", "__init__")
        self.alpha = float(alpha)
        self.beta = float(beta)
        self.kappa = float(kappa)

        self._X: Optional[LieGroup] = None
        self._P: Optional[np.ndarray] = None
        self._in_call = False
        self._innovation: Optional[Tuple[np.ndarray, np.ndarray]] = None
        self.last_karcher_iterations = 0

        self.Wm: Optional[np.ndarray] = None
        self.Wc: Optional[np.ndarray] = None
        self._scale = 0.0

        if X0 is not None:
            self.set_state(X0)
        if P0 is not None:
            self.set_covariance(P0)

    def _compute_weights(self, n: int) -> None:
        lambda_ = self.alpha**2 * (n + self.kappa) - n
        if n + lambda_ <= 0.0:
            raise DomainError(
                f"n + lambda must be positive, got {n + lambda_} (alpha={self.alpha}, kappa={self.kappa})",
                "set_state",
            )
        self._scale = n + lambda_
        self.Wm = np.full(2 * n + 1, 0.5 / (n + lambda_))
        self.Wc = self.Wm.copy()
        self.Wm[0] = lambda_ / (n + lambda_)
        self.Wc[0] = self.Wm[0] + (1.0 - self.alpha**2 + self.beta)

    def set_state(self, X0: LieGroup) -> None:
        with exclusive_call(self, "set_state"):
            X0 = check_state(X0)
            if self._X is None or self._X.dof != X0.dof:
                self._compute_weights(X0.dof)
                self._P = None
            self._X = X0

    def set_covariance(self, P0: np.ndarray) -> None:
        with exclusive_call(self, "set_covariance"):
            require_state(self, self._X, "set_covariance")
            self._P = check_covariance(P0, self._X.dof)

    def get_state(self) -> LieGroup:
        return self._X

    def get_covariance(self) -> np.ndarray:
        return None if self._P is None else self._P.copy()

    def get_innovation(self) -> Tuple[np.ndarray, np.ndarray]:
        return self._innovation

    def _sigma_offsets(self, P: np.ndarray) -> np.ndarray:
        """Tangent offsets ξ_i, shape (2n+1, n), with ξ_0 = 0."""
        n = P.shape[0]
        L = np.sqrt(self._scale) * psd_factor(P)
        offsets = np.zeros((2 * n + 1, n))
        offsets[1 : n + 1] = L
        offsets[n + 1 :] = -L
        return offsets

    def _sigma_points(self, X: LieGroup, offsets: np.ndarray) -> List[LieGroup]:
        return [X] + [X.rplus(xi) for xi in offsets[1:]]

    def predict(self, system_model, u: np.ndarray, dt: Optional[float] = None) -> None:
        """
        Unscented time update.

        Raises:
            DomainError: Invalid control or calibration at the mean or at a
                sigma point (state unchanged).
            KarcherMeanConvergenceError: Predicted mean did not converge.
            NonFiniteCovarianceError: Propagated covariance not finite.
        """
        with exclusive_call(self, "predict"):
            require_initialized(self, self._X, self._P, "predict")
            X, P = self._X, self._P
            n = X.dof

            Q = check_jacobian(system_model.process_covariance(X, u, dt), (n, n), "Q", "predict")
            offsets = self._sigma_offsets(P)
            propagated = [system_model.f(Xi, u) for Xi in self._sigma_points(X, offsets)]

            X_new, iterations = karcher_mean(propagated, self.Wm, propagated[0])
            deviations = np.array([Xi.rminus(X_new) for Xi in propagated])
            P_new = symmetrize((self.Wc[:, np.newaxis] * deviations).T @ deviations + Q)
            check_finite(P_new, "predict")
            check_finite_state(X_new, "predict")

            self._X, self._P = X_new, P_new
            self.last_karcher_iterations = iterations

    def update(self, measurement_model, y: np.ndarray) -> None:
        """
        Unscented measurement update.

        Raises:
            DomainError: R is not symmetric PSD (state unchanged).
            InnovationCovarianceError: P_zz is not positive definite.
            NonFiniteCovarianceError: Posterior covariance not finite.
        """
        with exclusive_call(self, "update"):
            require_initialized(self, self._X, self._P, "update")
            X, P = self._X, self._P
            m = measurement_model.dim

            R = check_measurement_covariance(measurement_model.covariance, m)
            y = check_measurement(y, m)

            offsets = self._sigma_offsets(P)
            z_sigma = np.array([measurement_model.h(Xi) for Xi in self._sigma_points(X, offsets)])
            z_hat = self.Wm @ z_sigma
            dz = np.array([measurement_model.innovation(z, z_hat) for z in z_sigma])

            weighted_dz = self.Wc[:, np.newaxis] * dz
            P_zz = symmetrize(weighted_dz.T @ dz + R)
            P_xz = offsets.T @ weighted_dz

            S_factor = innovation_factor(P_zz)
            K = cho_solve(S_factor, P_xz.T).T
            r = measurement_model.innovation(y, z_hat)

            X_new = X.rplus(K @ r)
            P_new = symmetrize(P - K @ P_zz @ K.T)
            check_finite(P_new, "update")
            check_finite_state(X_new, "update")

            self._X, self._P = X_new, P_new
            self._innovation = (r, P_zz)

    def __repr__(self) -> str:
        return f"UnscentedKalmanFilterManifolds(X={self._X!r}, alpha={self.alpha})"
