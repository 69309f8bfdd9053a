"""The trivial Lie group Rⁿ under addition.

Used for the calibration block of the composite state. Every Jacobian
is the identity and Exp/Log are the identity map on coefficients.
"""

import numpy as np

from liekf.errors import DimensionError
from liekf.manifolds.base import LieGroup


class Rn(LieGroup):
    """Vector group element of dimension n."""

    def __init__(self, coeffs: np.ndarray):
        coeffs = np.array(coeffs, dtype=np.float64).reshape(-1)
        if coeffs.size == 0:
            raise DimensionError("Rn element must have at least one coefficient")
        coeffs.flags.writeable = False
        self._coeffs = coeffs

    @classmethod
    def identity(cls, n: int) -> "Rn":
        return cls(np.zeros(n))

    @classmethod
    def exp(cls, tau: np.ndarray) -> "Rn":
        return cls(tau)

    @property
    def dof(self) -> int:
        return self._coeffs.size

    def coeffs(self) -> np.ndarray:
        return self._coeffs.copy()

    def _check(self, other: "Rn") -> None:
        if not isinstance(other, Rn):
            raise TypeError(f"Cannot combine Rn with {type(other).__name__}")
        if other.dof != self.dof:
            raise DimensionError(f"Rn dimension mismatch: {self.dof} vs {other.dof}")

    def compose(self, other: "Rn") -> "Rn":
        self._check(other)
        return Rn(self._coeffs + other._coeffs)

    def inverse(self) -> "Rn":
        return Rn(-self._coeffs)

    def log(self) -> np.ndarray:
        return self._coeffs.copy()

    def rplus(self, tau: np.ndarray) -> "Rn":
        tau = np.asarray(tau, dtype=float)
        if tau.shape != (self.dof,):
            raise DimensionError(
                f"R{self.dof} tangent must have shape ({self.dof},), got {tau.shape}"
            )
        return Rn(self._coeffs + tau)

    lplus = rplus

    def adj(self) -> np.ndarray:
        return np.eye(self.dof)

    def rjac(self, tau: np.ndarray) -> np.ndarray:
        return np.eye(np.asarray(tau).size)

    def rjacinv(self, tau: np.ndarray) -> np.ndarray:
        return np.eye(np.asarray(tau).size)

    def __getitem__(self, index):
        return self._coeffs[index]

    def __len__(self) -> int:
        return self.dof

    def __repr__(self) -> str:
        values = ", ".join(f"{v:.6g}" for v in self._coeffs)
        return f"R{self.dof}([{values}])"
