"""
Shared contract of the on-manifold estimators.

ManifoldEstimator is a pure interface: the four variants (EKF, SEKF, IEKF,
UKFM) share no state, only the predict/update contract below. The helper
functions in this module implement the checks every variant performs so
that tolerances and error reporting are identical across them.

Contract:
    set_state(X0), set_covariance(P0)
    get_state() -> X, get_covariance() -> P
    predict(system_model, u, dt=None)
    update(measurement_model, y)

Every call fully commits before returning. When a numerical failure is
detected the call raises a NumericalError and the estimator keeps its
previous state and covariance. Domain errors (non-PSD R, non-positive
calibration) are detected before any mutation as well.
"""

from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Optional, Tuple

import numpy as np
from scipy.linalg import LinAlgError, cho_factor

from liekf.errors import (
    DimensionError,
    DomainError,
    InnovationCovarianceError,
    NonFiniteCovarianceError,
    ProgrammerError,
    ReentrancyError,
)
from liekf.manifolds import LieGroup

# Numerical floor for symmetry and PSD checks
SYMMETRY_TOL = 1e-9
PSD_TOL = 1e-10


class ManifoldEstimator(ABC):
    """Interface of a recursive Bayesian estimator on a Lie group."""

    @abstractmethod
    def set_state(self, X0: LieGroup) -> None:
        """Install the mean."""

    @abstractmethod
    def set_covariance(self, P0: np.ndarray) -> None:
        """Install the covariance (symmetric PSD, in the estimator's tangent)."""

    @abstractmethod
    def get_state(self) -> LieGroup:
        """Current mean."""

    @abstractmethod
    def get_covariance(self) -> np.ndarray:
        """Copy of the current covariance."""

    @abstractmethod
    def predict(self, system_model, u: np.ndarray, dt: Optional[float] = None) -> None:
        """Advance mean and covariance by one integrated control u."""

    @abstractmethod
    def update(self, measurement_model, y: np.ndarray) -> None:
        """Absorb one observation y."""

    @abstractmethod
    def get_innovation(self) -> Tuple[np.ndarray, np.ndarray]:
        """Residual and innovation covariance of the last update."""


@contextmanager
def exclusive_call(estimator, operation: str):
    """
    Reject reentrant calls into the same estimator.

    The estimator must carry a boolean ``_in_call`` attribute.
    """
    if estimator._in_call:
        raise ReentrancyError(
            f"{type(estimator).__name__}.{operation} called from inside a model callback",
            operation,
        )
    estimator._in_call = True
    try:
        yield
    finally:
        estimator._in_call = False


def symmetrize(P: np.ndarray) -> np.ndarray:
    """P ← ½(P + Pᵀ)."""
    return 0.5 * (P + P.T)


def check_state(X: LieGroup, operation: str = "set_state") -> LieGroup:
    if not isinstance(X, LieGroup):
        raise DimensionError(
            f"State must be a Lie group element, got {type(X).__name__}", operation
        )
    if not np.all(np.isfinite(X.coeffs())):
        raise DomainError(f"State must be finite, got {X!r}", operation)
    return X


def check_covariance(P: np.ndarray, dim: int, operation: str = "set_covariance") -> np.ndarray:
    """
    Validate a state covariance.

    Args:
        P: Candidate covariance.
        dim: Tangent dimension of the state.
        operation: Name reported in errors.

    Returns:
        Float copy of P.

    Raises:
        DimensionError: Wrong shape.
        DomainError: Not finite, not symmetric, or not PSD.
    """
    P = np.array(P, dtype=float)
    if P.shape != (dim, dim):
        raise DimensionError(
            f"Covariance shape {P.shape} inconsistent with state dimension {dim}",
            operation,
        )
    if not np.all(np.isfinite(P)):
        raise DomainError("Covariance must be finite", operation)
    scale = max(1.0, float(np.max(np.abs(P))))
    if np.max(np.abs(P - P.T)) > SYMMETRY_TOL * scale:
        raise DomainError("Covariance must be symmetric (symmetrize before setting)", operation)
    eigenvalues = np.linalg.eigvalsh(P)
    if np.any(eigenvalues < -PSD_TOL * scale):
        raise DomainError(
            f"Covariance must be positive semi-definite, got eigenvalues {eigenvalues}",
            operation,
        )
    return P


def check_measurement_covariance(R: np.ndarray, dim: int, operation: str = "update") -> np.ndarray:
    """
    Validate the covariance carried by a measurement model.

    Raises:
        DimensionError: R is not (dim, dim).
        DomainError: R is not finite, symmetric and PSD.
    """
    R = np.asarray(R, dtype=float)
    if R.shape != (dim, dim):
        raise DimensionError(f"R shape {R.shape} inconsistent with measurement dimension {dim}", operation)
    if not np.all(np.isfinite(R)):
        raise DomainError("Measurement covariance must be finite", operation)
    scale = max(1.0, float(np.max(np.abs(R))))
    if np.max(np.abs(R - R.T)) > SYMMETRY_TOL * scale:
        raise DomainError("Measurement covariance must be symmetric", operation)
    eigenvalues = np.linalg.eigvalsh(R)
    if np.any(eigenvalues < -PSD_TOL * scale):
        raise DomainError(
            f"Measurement covariance must be positive semi-definite, got eigenvalues {eigenvalues}",
            operation,
        )
    return R


def check_measurement(y: np.ndarray, dim: int, operation: str = "update") -> np.ndarray:
    y = np.asarray(y, dtype=float)
    if y.shape != (dim,):
        raise DimensionError(f"Measurement must have shape ({dim},), got {y.shape}", operation)
    if not np.all(np.isfinite(y)):
        raise DomainError(f"Measurement must be finite, got {y}", operation)
    return y


def check_jacobian(J: np.ndarray, shape: Tuple[int, int], name: str, operation: str) -> np.ndarray:
    J = np.asarray(J, dtype=float)
    if J.shape != shape:
        raise DimensionError(f"{name} has shape {J.shape}, expected {shape}", operation)
    return J


def check_finite(P: np.ndarray, operation: str) -> None:
    """Raise NonFiniteCovarianceError if P holds NaN or Inf."""
    if not np.all(np.isfinite(P)):
        raise NonFiniteCovarianceError(
            f"Covariance is not finite after {operation}", operation
        )


def innovation_factor(S: np.ndarray, operation: str = "update"):
    """
    Cholesky factor of the innovation covariance S.

    Returns:
        Factor usable with scipy.linalg.cho_solve.

    Raises:
        InnovationCovarianceError: If S is not positive definite.
    """
    if not np.all(np.isfinite(S)):
        raise InnovationCovarianceError("Innovation covariance is not finite", operation)
    try:
        return cho_factor(S, lower=True, check_finite=False)
    except LinAlgError:
        raise InnovationCovarianceError(
            "Innovation covariance is not positive definite",
            operation,
            eigenvalues=np.linalg.eigvalsh(symmetrize(S)),
        ) from None


def psd_factor(M: np.ndarray) -> np.ndarray:
    """
    Square-root factor F of a symmetric PSD matrix with M = Fᵀ F.

    Uses an eigen-decomposition, so singular matrices are accepted. F is
    not triangular; it is meant to be stacked into QR pre-arrays.
    """
    eigenvalues, eigenvectors = np.linalg.eigh(symmetrize(M))
    return np.sqrt(np.clip(eigenvalues, 0.0, None))[:, np.newaxis] * eigenvectors.T


def upper_triangular_factor(M: np.ndarray) -> np.ndarray:
    """
    Upper-triangular U with M = Uᵀ U for a symmetric PSD matrix.

    Cholesky when M is positive definite; otherwise QR of the
    eigen-decomposition based factor.
    """
    try:
        return np.linalg.cholesky(M).T
    except np.linalg.LinAlgError:
        return np.linalg.qr(psd_factor(M), mode="r")


def require_initialized(estimator, X, P, operation: str) -> None:
    if X is None or P is None:
        raise ProgrammerError(
            f"{type(estimator).__name__}: state and covariance must be set before {operation}",
            operation,
        )


def require_state(estimator, X, operation: str) -> None:
    if X is None:
        raise ProgrammerError(
            f"{type(estimator).__name__}: state must be set before {operation}", operation
        )


def check_finite_state(X: LieGroup, operation: str) -> None:
    """Raise NonFiniteCovarianceError if the corrected mean is not finite."""
    if not np.all(np.isfinite(X.coeffs())):
        raise NonFiniteCovarianceError(f"Mean is not finite after {operation}", operation)
