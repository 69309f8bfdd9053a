"""
Simulation driver for the self-calibration scenarios.

- RateScheduler: fixed time grid with sensor rates as divisors
- DiffDriveSimulator: ground truth, noisy controls and observations
- run_scenario: run several estimators on one simulated trajectory
"""

from liekf.config import ParameterJump
from liekf.sim.scenario import (
    ALL_KINDS,
    FailureRecord,
    ScenarioResult,
    build_measurement_models,
    build_system_model,
    calibration_array,
    initial_belief,
    pose_array,
    pose_covariances,
    right_covariance,
    run_scenario,
    to_estimator_tangent,
)
from liekf.sim.scheduler import RateScheduler
from liekf.sim.simulator import DiffDriveSimulator

__all__ = [
    "RateScheduler",
    "ParameterJump",
    "DiffDriveSimulator",
    "run_scenario",
    "ScenarioResult",
    "FailureRecord",
    "ALL_KINDS",
    "build_system_model",
    "build_measurement_models",
    "initial_belief",
    "to_estimator_tangent",
    "right_covariance",
    "pose_array",
    "calibration_array",
    "pose_covariances",
]
