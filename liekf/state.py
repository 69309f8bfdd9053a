"""
Composite state of the self-calibrating differential drive.

The state X = (P, c) is a Bundle whose first block is the SE(2) pose and
whose second block is R³ holding the calibration parameters
c = (r_l, r_r, d_w): left wheel radius, right wheel radius and wheel
separation, all in meters. The tangent space is R⁶ ordered

    (v_x, v_y, ω, δr_l, δr_r, δd_w)

and the covariance is 6×6, expressed in that tangent.

Also defines Kinematics, the nominal (r_l, r_r, d_w) triple used to seed
the calibration block or, when calibration is disabled, used directly by
the system model.
"""

from dataclasses import dataclass

import numpy as np

from liekf.errors import DimensionError, DomainError
from liekf.manifolds import SE2, Bundle, Rn

POSE_SLICE = slice(0, 3)
CALIBRATION_SLICE = slice(3, 6)
STATE_DOF = 6


def check_calibration(values: np.ndarray, operation: str = "calibration") -> None:
    """
    Raise DomainError unless every calibration parameter is finite and > 0.

    Args:
        values: (r_l, r_r, d_w).
        operation: Name reported in the error.
    """
    values = np.asarray(values, dtype=float)
    if values.shape != (3,):
        raise DimensionError(
            f"Calibration must have shape (3,), got {values.shape}", operation
        )
    if not np.all(np.isfinite(values)) or np.any(values <= 0.0):
        raise DomainError(
            f"Calibration parameters must be finite and positive, got {values}",
            operation,
        )


@dataclass(frozen=True)
class Kinematics:
    """
    Nominal differential-drive kinematics.

    Attributes:
        left_radius: Effective left wheel radius (m).
        right_radius: Effective right wheel radius (m).
        wheel_separation: Distance between the wheel contact points (m).
    """

    left_radius: float
    right_radius: float
    wheel_separation: float

    def __post_init__(self) -> None:
        check_calibration(self.as_array(), "Kinematics")

    def as_array(self) -> np.ndarray:
        return np.array(
            [self.left_radius, self.right_radius, self.wheel_separation], dtype=float
        )


class DiffDriveState(Bundle):
    """
    Bundle(SE2, R³) with named accessors.

    Example:
        >>> X = DiffDriveState(SE2(0.0, 0.0, 0.0), Rn([0.15, 0.15, 0.4]))
        >>> X.wheel_separation
        0.4
    """

    def __init__(self, pose: SE2, calibration: Rn):
        if not isinstance(pose, SE2):
            raise TypeError(f"pose must be SE2, got {type(pose).__name__}")
        if not isinstance(calibration, Rn) or calibration.dof != 3:
            raise TypeError("calibration must be an R3 element")
        super().__init__(pose, calibration)

    @classmethod
    def from_vector(
        cls,
        x: float,
        y: float,
        theta: float,
        left_radius: float,
        right_radius: float,
        wheel_separation: float,
    ) -> "DiffDriveState":
        return cls(
            SE2(x, y, theta), Rn([left_radius, right_radius, wheel_separation])
        )

    @classmethod
    def from_kinematics(cls, pose: SE2, kinematics: Kinematics) -> "DiffDriveState":
        return cls(pose, Rn(kinematics.as_array()))

    @property
    def pose(self) -> SE2:
        return self.element(0)

    @property
    def calibration(self) -> Rn:
        return self.element(1)

    @property
    def left_radius(self) -> float:
        return float(self.calibration[0])

    @property
    def right_radius(self) -> float:
        return float(self.calibration[1])

    @property
    def wheel_separation(self) -> float:
        return float(self.calibration[2])

    def with_calibration(self, calibration: np.ndarray) -> "DiffDriveState":
        """Copy of this state with the calibration block replaced."""
        return DiffDriveState(self.pose, Rn(calibration))
