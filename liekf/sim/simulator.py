"""
Ground-truth simulation of a differential drive with scripted calibration jumps.

The simulator owns the true DiffDriveState (the calibration block holds the
true wheel radii and separation) and produces the noisy data the filters
consume:

    - control: nominal wheel speeds plus white rate noise of std √(q/Δt),
      integrated over Δt, so the increments carry covariance q·Δt
    - landmarks: y = X⁻¹·b + v,  v ~ N(0, σ² I)
    - position fixes: y = t(X) + v

The truth is propagated with the noiseless nominal control, and
optionally perturbed by lateral slip. Parameter jumps change only the true
calibration; the filters must discover them.
"""

from typing import List, Optional, Tuple

import numpy as np

from liekf.config import ParameterJump, ScenarioConfig
from liekf.manifolds import SE2
from liekf.models import (
    DiffDriveSystemModel,
    Landmark2DMeasurementModel,
    PositionMeasurementModel,
    create_measurement_noise_covariance,
)
from liekf.state import DiffDriveState


class DiffDriveSimulator:
    """
    Simulated vehicle and sensors.

    Attributes:
        state: True DiffDriveState.
        time: Simulated time (s) of ``state``.
        landmark_models: One model per landmark, acting on SE2.
        position_model: Position-fix model acting on SE2.
        applied_jumps: Jumps already applied, in order.
    """

    def __init__(self, config: ScenarioConfig, rng: Optional[np.random.Generator] = None):
        self.config = config
        self.rng = np.random.default_rng(config.seed) if rng is None else rng
        self.dt = config.sensors.dt

        self.model = DiffDriveSystemModel(config.kinematics, with_calibration=True)
        self.state = DiffDriveState.from_kinematics(SE2(*config.initial.pose), config.kinematics)
        self.time = 0.0
        self.steps = 0

        noise = config.noise
        landmark_R = create_measurement_noise_covariance(noise.landmark_std, dim=2)
        self.landmark_models = [
            Landmark2DMeasurementModel(np.array(b), landmark_R)
            for b in config.sensors.landmarks
        ]
        self.position_model = PositionMeasurementModel(
            create_measurement_noise_covariance(noise.position_std, dim=2)
        )

        self._pending_jumps: List[ParameterJump] = list(config.jumps)
        self.applied_jumps: List[ParameterJump] = []

    @property
    def nominal_control(self) -> np.ndarray:
        """Nominal wheel speeds (rad/s)."""
        return np.array(self.config.control)

    def apply_jumps(self, t: float) -> List[ParameterJump]:
        """Apply every pending jump with jump.time <= t. Returns those applied."""
        applied = []
        while self._pending_jumps and self._pending_jumps[0].time <= t:
            jump = self._pending_jumps.pop(0)
            self.state = self.state.with_calibration(np.array(jump.calibration))
            applied.append(jump)
        self.applied_jumps.extend(applied)
        return applied

    def measured_control(self) -> np.ndarray:
        """Noisy integrated wheel-angle increments (φ_l·Δt, φ_r·Δt)."""
        std = np.sqrt(self.config.noise.wheel_noise_rate / self.dt)
        noisy_rate = self.nominal_control + std * self.rng.standard_normal(2)
        return noisy_rate * self.dt

    def step(self) -> Tuple[np.ndarray, np.ndarray]:
        """
        Advance the truth by one period.

        Returns:
            (true increments, measured increments).
        """
        u_true = self.nominal_control * self.dt
        u_measured = self.measured_control()

        self.state = self.model.f(self.state, u_true)
        slip_rate = self.config.noise.slip_rate
        if slip_rate > 0.0:
            lateral = np.sqrt(slip_rate * self.dt) * self.rng.standard_normal()
            self.state = self.state.rplus(np.array([0.0, lateral, 0.0, 0.0, 0.0, 0.0]))
        self.steps += 1
        self.time = self.steps * self.dt
        return u_true, u_measured

    def observe_landmarks(self) -> List[np.ndarray]:
        """Noisy observation of every landmark from the true pose, in landmark order."""
        std = self.config.noise.landmark_std
        pose = self.state.pose
        return [model.h(pose) + std * self.rng.standard_normal(2) for model in self.landmark_models]

    def observe_position(self) -> np.ndarray:
        std = self.config.noise.position_std
        return self.position_model.h(self.state.pose) + std * self.rng.standard_normal(2)

    def __repr__(self) -> str:
        return f"DiffDriveSimulator(t={self.time:.2f}, state={self.state!r})"
