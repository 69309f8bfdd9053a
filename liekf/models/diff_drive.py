"""
Differential-drive process model with an optional calibration sub-state.

The control is a pair of integrated wheel-angle increments
u = (φ_l·Δt, φ_r·Δt). Assuming constant wheel velocities over a step the
vehicle travels an arc of length dℓ and turns by dθ:

    dℓ = ½ (r_l φ_l + r_r φ_r)
    dθ = (r_r φ_r - r_l φ_l) / d_w

The arc is the se(2) tangent ξ_P = (dℓ, 0, dθ) and the pose is advanced
by right composition, X' = X ⊞ ξ. The lateral component is zero in the
nominal model; lateral wheel slippage enters only through the process
covariance. With calibration enabled the state is a DiffDriveState and
(r_l, r_r, d_w) are read from its R³ block, which is otherwise constant
and drifts only through injected process noise.

Noise conventions:
    - set_covariance(U) installs the continuous-time rate of the wheel-angle
      noise (rad²/s). Over one step of length Δt the integrated increments
      carry covariance U·Δt, so Δt is applied exactly once, by
      process_covariance(). The model itself never rescales u.
    - set_slip_variance(q) and set_calibration_drift(q) are rates as well
      (m²/s and units²/s).
    - If process_covariance() is called without Δt, all three are taken
      as per-step covariances.

Reference:
    J. Deray, J. Sola, J. Andrade-Cetto, "Joint on-manifold
    self-calibration of odometry model and sensor extrinsics using
    pre-integration", ECMR 2019.
"""

from typing import Optional, Tuple, Union

import numpy as np

from liekf.errors import DimensionError, DomainError
from liekf.manifolds import SE2
from liekf.state import CALIBRATION_SLICE, POSE_SLICE, DiffDriveState, Kinematics, check_calibration

State = Union[SE2, DiffDriveState]


class DiffDriveSystemModel:
    """
    Differential-drive motion model f(X, u) = X ⊞ ξ(X, u).

    Attributes:
        kinematics: Nominal (r_l, r_r, d_w). Used directly when calibration is
            disabled, and as the seed of the calibration block otherwise.
        with_calibration: True if the state is a DiffDriveState.

    Example:
        >>> model = DiffDriveSystemModel(Kinematics(0.15, 0.15, 0.4))
        >>> model.set_covariance(np.diag([9e-5, 9e-5]))
        >>> X = model.initial_state()
        >>> X_next = model(X, np.array([0.005, 0.0035]))
    """

    def __init__(self, kinematics: Kinematics, with_calibration: bool = True):
        if not isinstance(kinematics, Kinematics):
            raise TypeError(f"kinematics must be Kinematics, got {type(kinematics).__name__}")
        self.kinematics = kinematics
        self.with_calibration = bool(with_calibration)
        self._U = np.zeros((2, 2))
        self._slip_variance = 0.0
        self._calibration_drift = np.zeros(3)

    @property
    def state_dof(self) -> int:
        return 6 if self.with_calibration else 3

    def initial_state(self, pose: Optional[SE2] = None) -> State:
        """State at ``pose`` (identity by default) seeded with the kinematics."""
        pose = SE2.identity() if pose is None else pose
        if self.with_calibration:
            return DiffDriveState.from_kinematics(pose, self.kinematics)
        return pose

    def set_covariance(self, U: np.ndarray) -> None:
        """
        Install the wheel-angle noise rate U (2×2, rad²/s).

        Raises:
            DimensionError: If U is not 2×2.
            DomainError: If U is not symmetric positive semi-definite.
        """
        U = np.asarray(U, dtype=float)
        if U.shape != (2, 2):
            raise DimensionError(f"U must have shape (2, 2), got {U.shape}", "set_covariance")
        if not np.allclose(U, U.T) or np.any(np.linalg.eigvalsh(U) < -1e-12):
            raise DomainError("U must be symmetric positive semi-definite", "set_covariance")
        self._U = U.copy()

    def get_covariance(self) -> np.ndarray:
        return self._U.copy()

    def set_slip_variance(self, variance: float) -> None:
        """Install the lateral slip rate (m²/s)."""
        if not np.isfinite(variance) or variance < 0.0:
            raise DomainError(f"Slip variance must be non-negative, got {variance}")
        self._slip_variance = float(variance)

    def set_calibration_drift(self, variances: np.ndarray) -> None:
        """Install the random-walk rates of (r_l, r_r, d_w) (units²/s)."""
        variances = np.asarray(variances, dtype=float)
        if variances.shape != (3,):
            raise DimensionError(f"Calibration drift must have shape (3,), got {variances.shape}")
        if not np.all(np.isfinite(variances)) or np.any(variances < 0.0):
            raise DomainError(f"Calibration drift must be non-negative, got {variances}")
        self._calibration_drift = variances.copy()

    def _check_state(self, X: State) -> None:
        expected = DiffDriveState if self.with_calibration else SE2
        if not isinstance(X, expected):
            raise DimensionError(
                f"State must be {expected.__name__} for with_calibration="
                f"{self.with_calibration}, got {type(X).__name__}"
            )

    def calibration(self, X: State) -> np.ndarray:
        """(r_l, r_r, d_w) in effect at state X."""
        self._check_state(X)
        if self.with_calibration:
            c = X.calibration.coeffs()
            check_calibration(c, "DiffDriveSystemModel")
            return c
        return self.kinematics.as_array()

    @staticmethod
    def _control(u: np.ndarray) -> np.ndarray:
        u = np.asarray(u, dtype=float)
        if u.shape != (2,):
            raise DimensionError(f"Control must have shape (2,), got {u.shape}")
        if not np.all(np.isfinite(u)):
            raise DomainError(f"Control must be finite, got {u}")
        return u

    def tangent(self, X: State, u: np.ndarray) -> np.ndarray:
        """Pose increment ξ_P = (dℓ, 0, dθ) produced by control u at X."""
        phi_l, phi_r = self._control(u)
        r_l, r_r, d_w = self.calibration(X)
        dl = 0.5 * (r_l * phi_l + r_r * phi_r)
        dtheta = (r_r * phi_r - r_l * phi_l) / d_w
        return np.array([dl, 0.0, dtheta])

    def f(self, X: State, u: np.ndarray) -> State:
        """Propagate X by one integrated control u."""
        xi = self.tangent(X, u)
        if self.with_calibration:
            return X.rplus(np.concatenate([xi, np.zeros(3)]))
        return X.rplus(xi)

    __call__ = f

    def _partials(self, X: State, u: np.ndarray):
        """∂ξ_P/∂u (3×2) and ∂ξ_P/∂c (3×3)."""
        phi_l, phi_r = self._control(u)
        r_l, r_r, d_w = self.calibration(X)
        dtheta = (r_r * phi_r - r_l * phi_l) / d_w

        d_xi_d_u = np.array(
            [
                [0.5 * r_l, 0.5 * r_r],
                [0.0, 0.0],
                [-r_l / d_w, r_r / d_w],
            ]
        )
        d_xi_d_c = np.array(
            [
                [0.5 * phi_l, 0.5 * phi_r, 0.0],
                [0.0, 0.0, 0.0],
                [-phi_l / d_w, phi_r / d_w, -dtheta / d_w],
            ]
        )
        return d_xi_d_u, d_xi_d_c

    def jacobians(self, X: State, u: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """
        Jacobians of f in the right tangent.

        Returns:
            (J_X, J_W) where
                J_X = [[Ad(Exp(-ξ)), J_r(ξ) ∂ξ/∂c],
                       [0,           I₃         ]]      (n×n)
                J_W = [[J_r(ξ) ∂ξ/∂u],
                       [0           ]]                   (n×2)
            The calibration rows/columns are absent when calibration is
            disabled.
        """
        xi = self.tangent(X, u)
        Jr = SE2.rjac(xi)
        Ad_inv = SE2.exp(-xi).adj()
        d_xi_d_u, d_xi_d_c = self._partials(X, u)

        n = self.state_dof
        J_X = np.eye(n)
        J_X[POSE_SLICE, POSE_SLICE] = Ad_inv
        J_W = np.zeros((n, 2))
        J_W[POSE_SLICE, :] = Jr @ d_xi_d_u
        if self.with_calibration:
            J_X[POSE_SLICE, CALIBRATION_SLICE] = Jr @ d_xi_d_c
        return J_X, J_W

    def process_covariance(
        self, X: State, u: np.ndarray, dt: Optional[float] = None
    ) -> np.ndarray:
        """
        Process covariance Q in the right tangent at f(X, u).

            Q = J_W (U Δt) J_Wᵀ + q_slip Δt · j jᵀ + diag(0, q_drift Δt)

        where j = J_r(ξ) e_y maps lateral slip into the pose tangent.

        Args:
            X: State at which the step starts.
            u: Integrated control.
            dt: Step length (s). None means U and the rates are per-step.

        Returns:
            Symmetric PSD matrix (n×n).
        """
        if dt is None:
            scale = 1.0
        else:
            if not np.isfinite(dt) or dt <= 0.0:
                raise DomainError(f"dt must be positive, got {dt}", "process_covariance")
            scale = float(dt)

        _, J_W = self.jacobians(X, u)
        Q = J_W @ (self._U * scale) @ J_W.T

        if self._slip_variance > 0.0:
            j = SE2.rjac(self.tangent(X, u))[:, 1]
            Q[POSE_SLICE, POSE_SLICE] += self._slip_variance * scale * np.outer(j, j)

        if self.with_calibration:
            Q[CALIBRATION_SLICE, CALIBRATION_SLICE] += np.diag(self._calibration_drift * scale)

        return 0.5 * (Q + Q.T)
