"""
Measurement models acting on the SE(2) pose.

Provides:
    - Landmark2DMeasurementModel: known landmark b observed in the robot
      frame, y = X⁻¹ · b (range and bearing put in Cartesian form)
    - PositionMeasurementModel: absolute position fix, y = t(X)
    - MeasurementModelBundleWrapper: lifts a model defined on one element
      of a Bundle to the whole composite state

All Jacobians are taken in the right tangent of the element they act on.
Models carry immutable configuration only (landmark, covariance) and no
state between calls, so they can be shared freely.

Covariances are not checked for positive semi-definiteness here; the
estimators do that at update time and report a DomainError without
touching their state.
"""

from abc import ABC, abstractmethod
from typing import Optional

import numpy as np

from liekf.errors import DimensionError, DomainError
from liekf.manifolds import SE2, Bundle, LieGroup


class MeasurementModel(ABC):
    """
    Interface shared by every measurement model.

    Subclasses implement h (expected measurement) and H (Jacobian in the
    right tangent of the state they receive).
    """

    def __init__(self, R: np.ndarray, dim: int):
        R = np.array(R, dtype=float)
        if R.shape != (dim, dim):
            raise DimensionError(f"R must have shape ({dim}, {dim}), got {R.shape}")
        R.flags.writeable = False
        self._R = R
        self.dim = dim

    @property
    def covariance(self) -> np.ndarray:
        """Measurement noise covariance R (copy)."""
        return self._R.copy()

    @abstractmethod
    def h(self, X: LieGroup) -> np.ndarray:
        """Expected measurement at X."""

    @abstractmethod
    def H(self, X: LieGroup) -> np.ndarray:
        """Jacobian ∂h/∂X in the right tangent of X."""

    def __call__(self, X: LieGroup) -> np.ndarray:
        return self.h(X)

    def innovation(self, z_measured: np.ndarray, z_predicted: np.ndarray) -> np.ndarray:
        """Residual r = z - ẑ. Both measurements live in R²."""
        z_measured = np.asarray(z_measured, dtype=float)
        z_predicted = np.asarray(z_predicted, dtype=float)
        if z_measured.shape != (self.dim,) or z_predicted.shape != (self.dim,):
            raise DimensionError(
                f"Measurements must have shape ({self.dim},), got "
                f"{z_measured.shape} and {z_predicted.shape}"
            )
        return z_measured - z_predicted


def _as_pose(X: LieGroup, model_name: str) -> SE2:
    if not isinstance(X, SE2):
        raise DimensionError(
            f"{model_name} acts on SE2, got {type(X).__name__}; "
            "wrap it with MeasurementModelBundleWrapper for composite states"
        )
    return X


class Landmark2DMeasurementModel(MeasurementModel):
    """
    Known landmark observed in the robot frame.

        y = h(X, b) = X⁻¹ · b = Rᵀ (b - t)

    Jacobian (right tangent):
        H = [-I₂ | -[1]ₓ y],   [1]ₓ y = (-y₂, y₁)

    Example:
        >>> model = Landmark2DMeasurementModel(np.array([2.0, 0.0]), 1e-4 * np.eye(2))
        >>> model(SE2(1.0, 0.0, 0.0))
        array([1., 0.])
    """

    def __init__(self, landmark: np.ndarray, R: np.ndarray):
        super().__init__(R, dim=2)
        landmark = np.array(landmark, dtype=float)
        if landmark.shape != (2,):
            raise DimensionError(f"Landmark must have shape (2,), got {landmark.shape}")
        landmark.flags.writeable = False
        self._landmark = landmark

    @property
    def landmark(self) -> np.ndarray:
        return self._landmark.copy()

    def h(self, X: LieGroup) -> np.ndarray:
        pose = _as_pose(X, "Landmark2DMeasurementModel")
        return pose.inverse().act(self._landmark)

    def H(self, X: LieGroup) -> np.ndarray:
        y = self.h(X)
        return np.array(
            [
                [-1.0, 0.0, y[1]],
                [0.0, -1.0, -y[0]],
            ]
        )

    def __repr__(self) -> str:
        return f"Landmark2DMeasurementModel(landmark={self._landmark.tolist()})"


class PositionMeasurementModel(MeasurementModel):
    """
    Absolute 2-D position fix (e.g. a GNSS or motion-capture position).

        y = h(X) = t(X),   H = [R(X) | 0]
    """

    def __init__(self, R: np.ndarray):
        super().__init__(R, dim=2)

    def h(self, X: LieGroup) -> np.ndarray:
        return _as_pose(X, "PositionMeasurementModel").translation()

    def H(self, X: LieGroup) -> np.ndarray:
        pose = _as_pose(X, "PositionMeasurementModel")
        H = np.zeros((2, 3))
        H[:, :2] = pose.rotation()
        return H

    def __repr__(self) -> str:
        return "PositionMeasurementModel()"


class MeasurementModelBundleWrapper(MeasurementModel):
    """
    Lift a sub-state measurement model to a composite (Bundle) state.

    The wrapped model is evaluated on ``X.element(index)``; its Jacobian is
    placed in the columns of that element's tangent and zero-padded
    elsewhere. Expectation, covariance and residual are those of the wrapped
    model, unchanged.

    Args:
        model: Model acting on a single Bundle element.
        index: Position of that element within the Bundle.

    Example:
        >>> lm = Landmark2DMeasurementModel(np.array([2.0, 1.0]), 1e-4 * np.eye(2))
        >>> wrapped = MeasurementModelBundleWrapper(lm)
        >>> wrapped.H(X).shape   # X a DiffDriveState
        (2, 6)
    """

    def __init__(self, model: MeasurementModel, index: int = 0):
        if not isinstance(model, MeasurementModel):
            raise TypeError(f"model must be a MeasurementModel, got {type(model).__name__}")
        if isinstance(model, MeasurementModelBundleWrapper):
            raise TypeError("Bundles do not nest; wrap the element model directly")
        self.model = model
        self.index = int(index)
        self.dim = model.dim

    @property
    def covariance(self) -> np.ndarray:
        return self.model.covariance

    def _sub_state(self, X: LieGroup) -> LieGroup:
        if not isinstance(X, Bundle):
            raise DimensionError(
                f"MeasurementModelBundleWrapper expects a Bundle state, got {type(X).__name__}"
            )
        if not 0 <= self.index < X.size:
            raise DimensionError(f"Element index {self.index} out of range for Bundle of size {X.size}")
        return X.element(self.index)

    def h(self, X: LieGroup) -> np.ndarray:
        return self.model.h(self._sub_state(X))

    def H(self, X: LieGroup) -> np.ndarray:
        H_sub = self.model.H(self._sub_state(X))
        H = np.zeros((self.dim, X.dof))
        H[:, X.tangent_slice(self.index)] = H_sub
        return H

    def innovation(self, z_measured: np.ndarray, z_predicted: np.ndarray) -> np.ndarray:
        return self.model.innovation(z_measured, z_predicted)

    def __repr__(self) -> str:
        return f"MeasurementModelBundleWrapper({self.model!r}, index={self.index})"


def create_measurement_noise_covariance(
    noise_std,
    dim: Optional[int] = None,
    correlation: Optional[np.ndarray] = None,
) -> np.ndarray:
    """
    Measurement covariance R from per-axis standard deviations.

    Args:
        noise_std: Per-axis std, shape (m,), or a scalar shared by ``dim``
            axes (isotropic sensor noise).
        dim: Number of axes when ``noise_std`` is a scalar.
        correlation: Optional unit-diagonal correlation matrix (m, m).

    Returns:
        R = Σ C Σ with Σ = diag(noise_std).

    Example:
        >>> create_measurement_noise_covariance(0.01, dim=2)
        array([[0.0001, 0.    ],
               [0.    , 0.0001]])
    """
    sigma = np.asarray(noise_std, dtype=float)
    if sigma.ndim == 0:
        if dim is None:
            raise DimensionError("dim is required for a scalar noise_std", "noise covariance")
        sigma = np.full(dim, float(sigma))
    elif sigma.ndim != 1 or (dim is not None and sigma.shape != (dim,)):
        raise DimensionError(f"noise_std has shape {sigma.shape}", "noise covariance")
    if not np.all(np.isfinite(sigma)) or np.any(sigma < 0.0):
        raise DomainError(f"noise_std must be finite and non-negative, got {sigma}", "noise covariance")

    R = np.outer(sigma, sigma)
    if correlation is None:
        return np.diag(np.diag(R))

    correlation = np.asarray(correlation, dtype=float)
    if correlation.shape != R.shape:
        raise DimensionError(
            f"correlation must be {R.shape}, got {correlation.shape}", "noise covariance"
        )
    if not np.allclose(correlation, correlation.T) or not np.allclose(np.diag(correlation), 1.0):
        raise DomainError("correlation must be symmetric with a unit diagonal", "noise covariance")
    return R * correlation
