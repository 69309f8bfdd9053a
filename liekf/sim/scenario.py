"""
Scenario runner: simulate the vehicle and run several estimators side by side.

Each period of the time grid:
    1. scripted parameter jumps due at t_k are applied to the truth
    2. the truth advances with the nominal control; the measured (noisy)
       control is handed to the dead-reckoning integrator and to every
       estimator's predict
    3. at t_{k+1}, landmark and position-fix updates fire according to
       the RateScheduler

Numerical failures are transactional inside the estimators; the runner
records them and resets the affected estimator's covariance to its prior
around the current mean, then carries on.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

import numpy as np
from tqdm import tqdm

from liekf.config import ScenarioConfig
from liekf.errors import NumericalError
from liekf.estimators import (
    EstimatorKind,
    InvariantExtendedKalmanFilter,
    ManifoldEstimator,
    make_estimator,
)
from liekf.manifolds import SE2, Bundle, LieGroup
from liekf.models import (
    DiffDriveSystemModel,
    Landmark2DMeasurementModel,
    MeasurementModelBundleWrapper,
    PositionMeasurementModel,
)
from liekf.sim.scheduler import RateScheduler
from liekf.sim.simulator import DiffDriveSimulator
from liekf.state import POSE_SLICE

ALL_KINDS = tuple(kind.value for kind in EstimatorKind)


@dataclass(frozen=True)
class FailureRecord:
    """A numerical failure reported by an estimator during a run."""

    time: float
    estimator: str
    operation: str
    error: str
    message: str


@dataclass
class ScenarioResult:
    """
    Recorded run.

    Index 0 of every sequence is the initial instant t = 0; index k + 1
    holds the values after period k.

    Attributes:
        times: Time grid (N,).
        true_states: True DiffDriveState per instant.
        unfiltered_states: Dead-reckoning states (no updates).
        estimates: Mean per instant, keyed by estimator name.
        covariances: Covariances (N, n, n) in the right tangent of the
            mean, keyed by estimator name.
        failures: Numerical failures, in order of occurrence.
        config: Configuration of the run.
    """

    times: np.ndarray
    true_states: List[LieGroup]
    unfiltered_states: List[LieGroup]
    estimates: Dict[str, List[LieGroup]]
    covariances: Dict[str, np.ndarray]
    failures: List[FailureRecord] = field(default_factory=list)
    config: Optional[ScenarioConfig] = None

    @property
    def estimator_names(self) -> List[str]:
        return list(self.estimates)

    def true_poses(self) -> np.ndarray:
        return pose_array(self.true_states)

    def unfiltered_poses(self) -> np.ndarray:
        return pose_array(self.unfiltered_states)

    def estimated_poses(self, name: str) -> np.ndarray:
        return pose_array(self.estimates[name])

    def true_calibration(self) -> np.ndarray:
        return calibration_array(self.true_states)

    def estimated_calibration(self, name: str) -> np.ndarray:
        return calibration_array(self.estimates[name])


def _pose(X: LieGroup) -> SE2:
    return X.element(0) if isinstance(X, Bundle) else X


def pose_array(states: Sequence[LieGroup]) -> np.ndarray:
    """
    (N, 3) array of (x, y, θ) with θ unwrapped along the sequence.

    Accepts SE2 elements or Bundles whose first element is SE2.
    """
    poses = [_pose(X) for X in states]
    out = np.array([[p.x, p.y, p.angle()] for p in poses])
    if len(out):
        out[:, 2] = np.unwrap(out[:, 2])
    return out


def calibration_array(states: Sequence[LieGroup]) -> np.ndarray:
    """
    (N, 3) array of (r_l, r_r, d_w).

    Raises:
        ValueError: If the states carry no calibration block.
    """
    if not states or not isinstance(states[0], Bundle):
        raise ValueError("States carry no calibration block")
    return np.array([X.element(1).coeffs() for X in states])


def build_system_model(config: ScenarioConfig) -> DiffDriveSystemModel:
    """Filter-side process model with the modelled noise of ``config``."""
    model = DiffDriveSystemModel(config.kinematics, with_calibration=config.with_calibration)
    model.set_covariance(config.process.U)
    model.set_slip_variance(config.process.slip_rate)
    model.set_calibration_drift(np.array(config.process.calibration_drift))
    return model


def build_measurement_models(config: ScenarioConfig):
    """
    Filter-side landmark and position models.

    Returns:
        (list of landmark models, position model), wrapped for the
        composite state when calibration is estimated.
    """
    sensors = config.sensors
    landmark_models = [
        Landmark2DMeasurementModel(np.array(b), sensors.landmark_covariance)
        for b in sensors.landmarks
    ]
    position_model = PositionMeasurementModel(sensors.position_covariance)
    if config.with_calibration:
        landmark_models = [MeasurementModelBundleWrapper(m) for m in landmark_models]
        position_model = MeasurementModelBundleWrapper(position_model)
    return landmark_models, position_model


def initial_belief(config: ScenarioConfig, X_true: LieGroup, rng: np.random.Generator):
    """
    Initial mean and right-tangent covariance.

    The mean is X_true ⊞ δ with δ ~ N(0, P₀) when the configuration asks
    for a sampled initial error, X_true otherwise.
    """
    if not config.with_calibration:
        X_true = _pose(X_true)
    P0 = config.initial.covariance(X_true.dof)
    if config.initial.sample_initial_error:
        delta = np.sqrt(np.diag(P0)) * rng.standard_normal(X_true.dof)
        return X_true.rplus(delta), P0
    return X_true, P0


def to_estimator_tangent(estimator: ManifoldEstimator, X: LieGroup, P_right: np.ndarray) -> np.ndarray:
    """Express a right-tangent covariance in the estimator's own tangent."""
    if isinstance(estimator, InvariantExtendedKalmanFilter):
        Ad = X.adj()
        P = Ad @ P_right @ Ad.T
        return 0.5 * (P + P.T)
    return P_right


def right_covariance(estimator: ManifoldEstimator) -> np.ndarray:
    """Covariance of ``estimator`` in the right tangent of its mean."""
    if isinstance(estimator, InvariantExtendedKalmanFilter):
        return estimator.get_right_covariance()
    return estimator.get_covariance()


def run_scenario(
    config: Optional[ScenarioConfig] = None,
    kinds: Sequence = ALL_KINDS,
    rng: Optional[np.random.Generator] = None,
    progress: bool = True,
) -> ScenarioResult:
    """
    Simulate ``config`` and run one estimator per entry of ``kinds``.

    All estimators receive the same measured controls and observations.

    Args:
        config: Scenario; ScenarioConfig.default() when None.
        kinds: EstimatorKind values or names.
        rng: Random generator; default_rng(config.seed) when None.
        progress: Show a tqdm progress bar.

    Returns:
        ScenarioResult with N = n_steps + 1 recorded instants.

    Example:
        >>> result = run_scenario(ScenarioConfig.default(), kinds=["EKF"], progress=False)
        >>> result.estimated_calibration("EKF")[-1]
    """
    config = ScenarioConfig.default() if config is None else config
    rng = np.random.default_rng(config.seed) if rng is None else rng

    scheduler = RateScheduler.from_config(config.sensors)
    simulator = DiffDriveSimulator(config, rng)
    system_model = build_system_model(config)
    landmark_models, position_model = build_measurement_models(config)

    X0, P0 = initial_belief(config, simulator.state, rng)
    estimators: Dict[str, ManifoldEstimator] = {}
    for kind in kinds:
        estimator = make_estimator(kind, X0)
        estimator.set_covariance(to_estimator_tangent(estimator, X0, P0))
        estimators[EstimatorKind.parse(kind).value] = estimator

    n_steps = scheduler.n_steps(config.duration)
    n = X0.dof
    times = np.arange(n_steps + 1) * scheduler.dt
    true_states = [simulator.state]
    unfiltered = X0
    unfiltered_states = [unfiltered]
    estimates = {name: [est.get_state()] for name, est in estimators.items()}
    covariances = {name: np.empty((n_steps + 1, n, n)) for name in estimators}
    for name, est in estimators.items():
        covariances[name][0] = right_covariance(est)
    failures: List[FailureRecord] = []

    def guarded(name: str, estimator: ManifoldEstimator, operation: str, *args) -> None:
        try:
            getattr(estimator, operation)(*args)
        except NumericalError as e:
            failures.append(
                FailureRecord(simulator.time, name, operation, type(e).__name__, str(e))
            )
            X = estimator.get_state()
            estimator.set_covariance(to_estimator_tangent(estimator, X, P0))

    for k in tqdm(range(n_steps), desc="Simulating", unit="step", disable=not progress):
        simulator.apply_jumps(scheduler.time(k))
        _, u = simulator.step()

        unfiltered = system_model.f(unfiltered, u)
        for name, est in estimators.items():
            guarded(name, est, "predict", system_model, u, scheduler.dt)

        if scheduler.landmarks_due(k + 1):
            for model, y in zip(landmark_models, simulator.observe_landmarks()):
                for name, est in estimators.items():
                    guarded(name, est, "update", model, y)

        if scheduler.position_due(k + 1):
            y = simulator.observe_position()
            for name, est in estimators.items():
                guarded(name, est, "update", position_model, y)

        true_states.append(simulator.state)
        unfiltered_states.append(unfiltered)
        for name, est in estimators.items():
            estimates[name].append(est.get_state())
            covariances[name][k + 1] = right_covariance(est)

    return ScenarioResult(
        times=times,
        true_states=true_states,
        unfiltered_states=unfiltered_states,
        estimates=estimates,
        covariances=covariances,
        failures=failures,
        config=config,
    )


def pose_covariances(result: ScenarioResult, name: str) -> np.ndarray:
    """(N, 3, 3) pose block of the recorded covariances."""
    return result.covariances[name][:, POSE_SLICE, POSE_SLICE]
