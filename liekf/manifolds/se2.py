"""SE(2), the group of rigid motions of the plane.

An element is stored as (x, y, cos θ, sin θ): the rotation is a unit
complex number, so composition never wraps the heading and trajectories
can be unwrapped afterwards. ``angle()`` reports θ in (-π, π].

Tangent vectors (se(2)) are arrays τ = (v_x, v_y, ω) of shape (3,).

Key operations:
    - compose / inverse / between
    - exp / log (closed form, small-angle safe)
    - rplus / rminus / lplus / lminus (from LieGroup)
    - rjac / rjacinv / ljac / ljacinv
    - adj
    - act: action on points of R², with Jacobians

Closed forms follow "A micro Lie theory for state estimation in robotics"
(Sola et al., 2018), Appendix A. Near θ = 0 every expression goes through
liekf.manifolds.small_angle.
"""

from typing import Tuple

import numpy as np

from liekf.errors import DimensionError
from liekf.manifolds.base import LieGroup
from liekf.manifolds.small_angle import (
    cosc,
    one_minus_cos_over_sq,
    sinc,
    theta_minus_sin_over_sq,
)


def _as_tangent(tau: np.ndarray) -> np.ndarray:
    tau = np.asarray(tau, dtype=float)
    if tau.shape != (3,):
        raise DimensionError(f"se(2) tangent must have shape (3,), got {tau.shape}")
    return tau


class SE2(LieGroup):
    """
    Planar rigid transform.

    Attributes:
        x, y: Translation (meters).
        real, imag: cos θ and sin θ of the rotation.

    Examples:
        >>> X = SE2(1.0, 2.0, np.pi / 2)
        >>> X.act(np.array([1.0, 0.0]))
        array([1., 3.])
        >>> X.compose(X.inverse()).isapprox(SE2.identity())
        True
    """

    DoF = 3
    Dim = 2

    def __init__(self, x: float = 0.0, y: float = 0.0, theta: float = 0.0):
        self._coeffs = np.array(
            [float(x), float(y), np.cos(theta), np.sin(theta)], dtype=np.float64
        )
        self._coeffs.flags.writeable = False

    @classmethod
    def from_coeffs(cls, coeffs: np.ndarray) -> "SE2":
        """
        Build an element from (x, y, cos θ, sin θ), renormalizing the rotation.

        Raises:
            DimensionError: If coeffs does not have shape (4,).
            ValueError: If the rotation part is zero.
        """
        coeffs = np.asarray(coeffs, dtype=float)
        if coeffs.shape != (4,):
            raise DimensionError(f"SE2 coeffs must have shape (4,), got {coeffs.shape}")
        n = np.hypot(coeffs[2], coeffs[3])
        if not n > 0.0:
            raise ValueError("SE2 rotation part must be non-zero")
        obj = cls.__new__(cls)
        obj._coeffs = np.array(
            [coeffs[0], coeffs[1], coeffs[2] / n, coeffs[3] / n], dtype=np.float64
        )
        obj._coeffs.flags.writeable = False
        return obj

    @classmethod
    def from_array(cls, arr: np.ndarray) -> "SE2":
        """Build an element from [x, y, θ]."""
        arr = np.asarray(arr, dtype=float)
        if arr.shape != (3,):
            raise DimensionError(f"Array must have shape (3,), got {arr.shape}")
        return cls(arr[0], arr[1], arr[2])

    @classmethod
    def from_matrix(cls, T: np.ndarray) -> "SE2":
        """Build an element from a 3×3 homogeneous matrix."""
        T = np.asarray(T, dtype=float)
        if T.shape != (3, 3):
            raise DimensionError(f"T must have shape (3, 3), got {T.shape}")
        return cls.from_coeffs(np.array([T[0, 2], T[1, 2], T[0, 0], T[1, 0]]))

    @classmethod
    def identity(cls) -> "SE2":
        return cls(0.0, 0.0, 0.0)

    @classmethod
    def exp(cls, tau: np.ndarray) -> "SE2":
        """
        Exponential map se(2) -> SE(2).

        Exp(ρ, θ) = (V(θ) ρ, θ),  V(θ) = [[A, -B], [B, A]]

        with A = sin θ/θ and B = (1 - cos θ)/θ.

        Args:
            tau: Tangent (v_x, v_y, ω).

        Returns:
            SE2 element.
        """
        rho1, rho2, theta = _as_tangent(tau)
        A = sinc(theta)
        B = cosc(theta)
        x = A * rho1 - B * rho2
        y = B * rho1 + A * rho2
        return cls.from_coeffs(np.array([x, y, np.cos(theta), np.sin(theta)]))

    @property
    def dof(self) -> int:
        return self.DoF

    @property
    def x(self) -> float:
        return float(self._coeffs[0])

    @property
    def y(self) -> float:
        return float(self._coeffs[1])

    @property
    def real(self) -> float:
        return float(self._coeffs[2])

    @property
    def imag(self) -> float:
        return float(self._coeffs[3])

    def angle(self) -> float:
        """Heading θ in (-π, π]."""
        theta = float(np.arctan2(self._coeffs[3], self._coeffs[2]))
        return np.pi if theta == -np.pi else theta

    def translation(self) -> np.ndarray:
        return self._coeffs[:2].copy()

    def rotation(self) -> np.ndarray:
        c, s = self._coeffs[2], self._coeffs[3]
        return np.array([[c, -s], [s, c]])

    def coeffs(self) -> np.ndarray:
        return self._coeffs.copy()

    def to_array(self) -> np.ndarray:
        """Return [x, y, θ] with θ in (-π, π]."""
        return np.array([self.x, self.y, self.angle()], dtype=np.float64)

    def to_matrix(self) -> np.ndarray:
        c, s = self._coeffs[2], self._coeffs[3]
        return np.array(
            [[c, -s, self._coeffs[0]], [s, c, self._coeffs[1]], [0.0, 0.0, 1.0]]
        )

    def compose(self, other: "SE2") -> "SE2":
        """
        Rigid composition self ∘ other.

            t = t1 + R1 t2
            R = R1 R2
        """
        if not isinstance(other, SE2):
            raise TypeError(f"Cannot compose SE2 with {type(other).__name__}")
        x1, y1, c1, s1 = self._coeffs
        x2, y2, c2, s2 = other._coeffs
        return SE2.from_coeffs(
            np.array(
                [
                    x1 + c1 * x2 - s1 * y2,
                    y1 + s1 * x2 + c1 * y2,
                    c1 * c2 - s1 * s2,
                    s1 * c2 + c1 * s2,
                ]
            )
        )

    def inverse(self) -> "SE2":
        """Inverse (-Rᵀ t, Rᵀ)."""
        x, y, c, s = self._coeffs
        return SE2.from_coeffs(np.array([-(c * x + s * y), -(-s * x + c * y), c, -s]))

    def log(self) -> np.ndarray:
        """
        Logarithmic map SE(2) -> se(2).

        θ = atan2(sin θ, cos θ) in (-π, π], ρ = V(θ)⁻¹ t.

        Returns:
            Tangent (v_x, v_y, ω).
        """
        x, y = self._coeffs[0], self._coeffs[1]
        theta = self.angle()
        A = sinc(theta)
        B = cosc(theta)
        den = A * A + B * B
        rho1 = (A * x + B * y) / den
        rho2 = (-B * x + A * y) / den
        return np.array([rho1, rho2, theta])

    def adj(self) -> np.ndarray:
        """Adjoint Ad_X = [[R, -[1]ₓ t], [0, 1]]."""
        x, y, c, s = self._coeffs
        return np.array([[c, -s, y], [s, c, -x], [0.0, 0.0, 1.0]])

    @staticmethod
    def rjac(tau: np.ndarray) -> np.ndarray:
        """
        Right Jacobian of Exp.

            J_r = [[ A, B, ρ1 C - ρ2 D],
                   [-B, A, ρ1 D + ρ2 C],
                   [ 0, 0, 1          ]]
        """
        rho1, rho2, theta = _as_tangent(tau)
        A = sinc(theta)
        B = cosc(theta)
        C = theta_minus_sin_over_sq(theta)
        D = one_minus_cos_over_sq(theta)
        return np.array(
            [
                [A, B, rho1 * C - rho2 * D],
                [-B, A, rho1 * D + rho2 * C],
                [0.0, 0.0, 1.0],
            ]
        )

    @staticmethod
    def rjacinv(tau: np.ndarray) -> np.ndarray:
        """Inverse right Jacobian, by block inversion of rjac."""
        J = SE2.rjac(tau)
        A, B = J[0, 0], J[0, 1]
        den = A * A + B * B
        M_inv = np.array([[A, -B], [B, A]]) / den
        J_inv = np.eye(3)
        J_inv[:2, :2] = M_inv
        J_inv[:2, 2] = -M_inv @ J[:2, 2]
        return J_inv

    @staticmethod
    def ljac(tau: np.ndarray) -> np.ndarray:
        return SE2.rjac(-_as_tangent(tau))

    @staticmethod
    def ljacinv(tau: np.ndarray) -> np.ndarray:
        return SE2.rjacinv(-_as_tangent(tau))

    def act(self, p: np.ndarray) -> np.ndarray:
        """Transform a point: X · p = R p + t."""
        p = np.asarray(p, dtype=float)
        if p.shape != (2,):
            raise DimensionError(f"p must have shape (2,), got {p.shape}")
        return self.rotation() @ p + self._coeffs[:2]

    def act_jacobians(self, p: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """
        Jacobians of X · p.

        Returns:
            (J_X, J_p): J_X = [R | R [1]ₓ p] (2×3) in the right tangent of X,
            J_p = R (2×2).
        """
        p = np.asarray(p, dtype=float)
        if p.shape != (2,):
            raise DimensionError(f"p must have shape (2,), got {p.shape}")
        R = self.rotation()
        J_X = np.zeros((2, 3))
        J_X[:, :2] = R
        J_X[:, 2] = R @ np.array([-p[1], p[0]])
        return J_X, R

    def __repr__(self) -> str:
        return f"SE2(x={self.x:.6g}, y={self.y:.6g}, theta={self.angle():.6g})"
