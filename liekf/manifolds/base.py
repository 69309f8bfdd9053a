"""
Base class for Lie group elements.

Subclasses provide the group law (compose, inverse), the exponential and
logarithm maps and the analytic Jacobians. The plus/minus retractions and
the operator shorthands are derived here once, following the conventions of
"A micro Lie theory for state estimation in robotics" (Sola et al., 2018):

    right plus   X ⊞ τ  = X ∘ Exp(τ)
    left plus    τ ⊕ X  = Exp(τ) ∘ X
    right minus  Y ⊟ X  = Log(X⁻¹ ∘ Y)
    left minus   Y ⊖ X  = Log(Y ∘ X⁻¹)

Elements are immutable values: every operation returns a new element.
"""

from abc import ABC, abstractmethod

import numpy as np


class LieGroup(ABC):
    """Abstract Lie group element with a vector tangent space."""

    @property
    @abstractmethod
    def dof(self) -> int:
        """Dimension of the tangent space."""

    @abstractmethod
    def compose(self, other: "LieGroup") -> "LieGroup":
        """Group composition self ∘ other."""

    @abstractmethod
    def inverse(self) -> "LieGroup":
        """Group inverse."""

    @abstractmethod
    def log(self) -> np.ndarray:
        """Logarithmic map to the tangent space at the identity."""

    @abstractmethod
    def exp(self, tau: np.ndarray) -> "LieGroup":
        """Exponential map of ``tau`` onto a group element of this type."""

    @abstractmethod
    def adj(self) -> np.ndarray:
        """Adjoint matrix, mapping right-tangent vectors to left-tangent ones."""

    @abstractmethod
    def rjac(self, tau: np.ndarray) -> np.ndarray:
        """Right Jacobian of Exp at ``tau``."""

    @abstractmethod
    def rjacinv(self, tau: np.ndarray) -> np.ndarray:
        """Inverse of the right Jacobian of Exp at ``tau``."""

    @abstractmethod
    def coeffs(self) -> np.ndarray:
        """Copy of the underlying storage coefficients."""

    def ljac(self, tau: np.ndarray) -> np.ndarray:
        """Left Jacobian of Exp at ``tau``, J_l(τ) = J_r(-τ)."""
        return self.rjac(-np.asarray(tau, dtype=float))

    def ljacinv(self, tau: np.ndarray) -> np.ndarray:
        """Inverse of the left Jacobian of Exp at ``tau``."""
        return self.rjacinv(-np.asarray(tau, dtype=float))

    def rplus(self, tau: np.ndarray) -> "LieGroup":
        return self.compose(self.exp(tau))

    def lplus(self, tau: np.ndarray) -> "LieGroup":
        return self.exp(tau).compose(self)

    def rminus(self, other: "LieGroup") -> np.ndarray:
        return other.inverse().compose(self).log()

    def lminus(self, other: "LieGroup") -> np.ndarray:
        return self.compose(other.inverse()).log()

    def between(self, other: "LieGroup") -> "LieGroup":
        """Relative element self⁻¹ ∘ other."""
        return self.inverse().compose(other)

    def isapprox(self, other: "LieGroup", tol: float = 1e-10) -> bool:
        """True when the tangent distance to ``other`` is below ``tol``."""
        return bool(np.linalg.norm(self.rminus(other)) <= tol)

    def copy(self) -> "LieGroup":
        # Elements are immutable, so the copy can share storage semantics
        return self

    def __matmul__(self, other: "LieGroup") -> "LieGroup":
        return self.compose(other)

    def __add__(self, tau: np.ndarray) -> "LieGroup":
        return self.rplus(tau)

    def __sub__(self, other: "LieGroup") -> np.ndarray:
        return self.rminus(other)

    def __eq__(self, other: object) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        return bool(np.array_equal(self.coeffs(), other.coeffs()))

    def __hash__(self) -> int:
        return hash((type(self).__name__, self.coeffs().tobytes()))


def weighted_norm(tau: np.ndarray, W: np.ndarray = None) -> float:
    """
    Weighted norm of a tangent vector, ||τ||_W = sqrt(τᵀ W τ).

    Args:
        tau: Tangent vector (n,).
        W: Symmetric PSD weight matrix (n×n). Identity when None.

    Returns:
        Non-negative scalar norm.

    Raises:
        ValueError: If W does not match the tangent dimension.
    """
    tau = np.asarray(tau, dtype=float)
    if W is None:
        return float(np.linalg.norm(tau))
    W = np.asarray(W, dtype=float)
    if W.shape != (tau.size, tau.size):
        raise ValueError(
            f"W shape {W.shape} inconsistent with tangent dimension {tau.size}"
        )
    return float(np.sqrt(max(tau @ W @ tau, 0.0)))
