"""
Scenario configuration for the self-calibration driver.

A ScenarioConfig gathers everything the driver needs to build a run:
the nominal kinematics and control, sensor layout and rates, the noise
actually injected by the simulator, the noise the filters model, the
initial belief and the scripted parameter jumps.

Configurations are frozen dataclasses validated on construction. They can
be read from JSON with load_config(); see config/diff_drive_self_calib.json
for the reference scenario, which ScenarioConfig.default() reproduces.
"""

import json
import warnings
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, Tuple, Union

import numpy as np

from liekf.models.measurement_models import create_measurement_noise_covariance
from liekf.state import Kinematics, check_calibration


def _check_non_negative(name: str, values) -> None:
    values = np.atleast_1d(np.asarray(values, dtype=float))
    if not np.all(np.isfinite(values)) or np.any(values < 0.0):
        raise ValueError(f"{name} must be finite and non-negative, got {values}")


@dataclass(frozen=True)
class ParameterJump:
    """
    Scripted change of the true calibration, applied to the simulator only.

    Attributes:
        time: Time (s) from which the new calibration holds.
        calibration: New (r_l, r_r, d_w) in meters.
    """

    time: float
    calibration: Tuple[float, float, float]

    def __post_init__(self) -> None:
        if not np.isfinite(self.time) or self.time < 0:
            raise ValueError(f"Jump time must be non-negative, got {self.time}")
        object.__setattr__(self, "calibration", tuple(float(c) for c in self.calibration))
        check_calibration(np.array(self.calibration), "ParameterJump")


@dataclass(frozen=True)
class SensorConfig:
    """
    Sensor layout, rates and the measurement covariances used by the filters.

    Attributes:
        control_rate: Odometry rate (Hz); base period Δt = 1 / control_rate.
        landmark_rate: Landmark update rate (Hz), 0 disables landmarks.
        position_rate: Position-fix update rate (Hz), 0 disables fixes.
        landmarks: Known landmark positions (m).
        landmark_std: Per-axis landmark measurement std (m).
        position_std: Per-axis position-fix std (m).
    """

    control_rate: int = 100
    landmark_rate: int = 50
    position_rate: int = 10
    landmarks: Tuple[Tuple[float, float], ...] = ((2.0, 0.0), (2.0, 1.0), (2.0, -1.0))
    landmark_std: float = 0.01
    position_std: float = float(np.sqrt(6e-3))

    def __post_init__(self) -> None:
        if int(self.control_rate) != self.control_rate or self.control_rate <= 0:
            raise ValueError(f"control_rate must be a positive integer, got {self.control_rate}")
        for name in ("landmark_rate", "position_rate"):
            rate = getattr(self, name)
            if int(rate) != rate or rate < 0:
                raise ValueError(f"{name} must be a non-negative integer, got {rate}")
            if rate > 0 and self.control_rate % rate != 0:
                raise ValueError(
                    f"{name}={rate} Hz must divide control_rate={self.control_rate} Hz"
                )
            if rate == self.control_rate:
                warnings.warn(
                    f"{name} equals control_rate ({rate} Hz): an update after every prediction",
                    UserWarning,
                )
        landmarks = tuple(tuple(float(v) for v in b) for b in self.landmarks)
        if any(len(b) != 2 for b in landmarks):
            raise ValueError(f"Landmarks must be 2-D points, got {self.landmarks}")
        object.__setattr__(self, "landmarks", landmarks)
        _check_non_negative("landmark_std", self.landmark_std)
        _check_non_negative("position_std", self.position_std)

    @property
    def dt(self) -> float:
        return 1.0 / self.control_rate

    @property
    def landmark_covariance(self) -> np.ndarray:
        return create_measurement_noise_covariance(self.landmark_std, dim=2)

    @property
    def position_covariance(self) -> np.ndarray:
        return create_measurement_noise_covariance(self.position_std, dim=2)


@dataclass(frozen=True)
class NoiseConfig:
    """
    Noise injected by the simulator.

    Attributes:
        wheel_noise_rate: Wheel-speed noise rate (rad²/s); samples are drawn
            with std √(rate/Δt) and integrated over Δt.
        slip_rate: Lateral slip rate (m²/s).
        landmark_std: Landmark measurement noise std (m).
        position_std: Position-fix noise std (m).
    """

    wheel_noise_rate: float = 9e-5
    slip_rate: float = 0.0
    landmark_std: float = 0.01
    position_std: float = float(np.sqrt(6e-3))

    def __post_init__(self) -> None:
        for name in ("wheel_noise_rate", "slip_rate", "landmark_std", "position_std"):
            _check_non_negative(name, getattr(self, name))


@dataclass(frozen=True)
class ProcessConfig:
    """
    Process noise modelled by the filters (all continuous-time rates).

    Attributes:
        wheel_noise_rate: Diagonal of U (rad²/s).
        slip_rate: Lateral slip rate (m²/s).
        calibration_drift: Random-walk rates of (r_l, r_r, d_w) (m²/s).

    On a path with a constant wheel-speed ratio the landmark and position
    updates observe only two combinations of (r_l, r_r, d_w). The
    separation therefore does not drift by default (and has a zero prior
    variance in InitialConfig); a non-zero d_w rate lets the filters slide
    along the unobservable direction instead of tracking the radii.
    """

    wheel_noise_rate: Tuple[float, float] = (9e-5, 9e-5)
    slip_rate: float = 0.0
    calibration_drift: Tuple[float, float, float] = (1e-6, 1e-6, 0.0)

    def __post_init__(self) -> None:
        object.__setattr__(self, "wheel_noise_rate", tuple(float(v) for v in self.wheel_noise_rate))
        object.__setattr__(self, "calibration_drift", tuple(float(v) for v in self.calibration_drift))
        if len(self.wheel_noise_rate) != 2:
            raise ValueError(f"wheel_noise_rate needs 2 entries, got {self.wheel_noise_rate}")
        if len(self.calibration_drift) != 3:
            raise ValueError(f"calibration_drift needs 3 entries, got {self.calibration_drift}")
        _check_non_negative("wheel_noise_rate", self.wheel_noise_rate)
        _check_non_negative("slip_rate", self.slip_rate)
        _check_non_negative("calibration_drift", self.calibration_drift)

    @property
    def U(self) -> np.ndarray:
        return np.diag(self.wheel_noise_rate)


@dataclass(frozen=True)
class InitialConfig:
    """
    Initial true pose and initial filter belief.

    Attributes:
        pose: True initial (x, y, θ).
        covariance_diagonal: Diagonal of P₀ in the right tangent,
            (x, y, θ, r_l, r_r, d_w). Only the first three entries are used
            when calibration is disabled. The d_w entry is zero by default,
            see ProcessConfig.
        sample_initial_error: Draw the initial mean from N(X_true, P₀)
            instead of starting at the truth.
    """

    pose: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    covariance_diagonal: Tuple[float, ...] = (0.1, 0.1, 0.17, 1e-6, 1e-6, 0.0)
    sample_initial_error: bool = True

    def __post_init__(self) -> None:
        object.__setattr__(self, "pose", tuple(float(v) for v in self.pose))
        object.__setattr__(
            self, "covariance_diagonal", tuple(float(v) for v in self.covariance_diagonal)
        )
        if len(self.pose) != 3:
            raise ValueError(f"pose needs (x, y, theta), got {self.pose}")
        if len(self.covariance_diagonal) not in (3, 6):
            raise ValueError(
                f"covariance_diagonal needs 3 or 6 entries, got {len(self.covariance_diagonal)}"
            )
        _check_non_negative("covariance_diagonal", self.covariance_diagonal)

    def covariance(self, dof: int) -> np.ndarray:
        diagonal = self.covariance_diagonal
        if dof > len(diagonal):
            raise ValueError(f"covariance_diagonal has {len(diagonal)} entries, state needs {dof}")
        return np.diag(diagonal[:dof])


@dataclass(frozen=True)
class ScenarioConfig:
    """
    Complete description of a self-calibration run.

    Attributes:
        duration: Simulated time (s).
        control: Nominal wheel speeds (φ_l, φ_r) in rad/s.
        kinematics: Nominal kinematics; true at t = 0 and the filters' prior.
        with_calibration: Estimate the calibration sub-state.
        sensors: Sensor layout and modelled measurement noise.
        noise: Noise injected by the simulator.
        process: Process noise modelled by the filters.
        initial: Initial pose and belief.
        jumps: Scripted calibration changes, applied to the truth only.
        seed: Seed of numpy's default_rng.
    """

    duration: float = 240.0
    control: Tuple[float, float] = (0.5, 0.35)
    kinematics: Kinematics = field(default_factory=lambda: Kinematics(0.15, 0.15, 0.4))
    with_calibration: bool = True
    sensors: SensorConfig = field(default_factory=SensorConfig)
    noise: NoiseConfig = field(default_factory=NoiseConfig)
    process: ProcessConfig = field(default_factory=ProcessConfig)
    initial: InitialConfig = field(default_factory=InitialConfig)
    jumps: Tuple[ParameterJump, ...] = ()
    seed: int = 0

    def __post_init__(self) -> None:
        if not np.isfinite(self.duration) or self.duration <= 0:
            raise ValueError(f"duration must be positive, got {self.duration}")
        object.__setattr__(self, "control", tuple(float(v) for v in self.control))
        if len(self.control) != 2 or not np.all(np.isfinite(self.control)):
            raise ValueError(f"control needs finite (phi_l, phi_r), got {self.control}")
        object.__setattr__(self, "jumps", tuple(sorted(self.jumps, key=lambda j: j.time)))
        for jump in self.jumps:
            if jump.time > self.duration:
                warnings.warn(
                    f"Parameter jump at t={jump.time} s is after the end of the run "
                    f"({self.duration} s)",
                    UserWarning,
                )

    @property
    def n_steps(self) -> int:
        return int(round(self.duration * self.sensors.control_rate))

    @classmethod
    def default(cls) -> "ScenarioConfig":
        """Reference run: 15% tyre squeeze on both wheels at t = 120 s."""
        return cls(jumps=(ParameterJump(120.0, (0.1275, 0.1275, 0.4)),))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScenarioConfig":
        """
        Build a configuration from a JSON-like dictionary.

        Missing keys take their default values.

        Raises:
            ValueError: Unknown keys or invalid values.
        """
        data = dict(data)
        known = set(cls.__dataclass_fields__)
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown configuration keys: {sorted(unknown)}")

        nested = {
            "sensors": SensorConfig,
            "noise": NoiseConfig,
            "process": ProcessConfig,
            "initial": InitialConfig,
        }
        for key, section_cls in nested.items():
            if key in data:
                section = dict(data[key])
                bad = set(section) - set(section_cls.__dataclass_fields__)
                if bad:
                    raise ValueError(f"Unknown keys in '{key}': {sorted(bad)}")
                if key == "sensors" and "landmarks" in section:
                    section["landmarks"] = tuple(tuple(b) for b in section["landmarks"])
                data[key] = section_cls(**section)
        if "kinematics" in data:
            data["kinematics"] = Kinematics(**data["kinematics"])
        if "jumps" in data:
            data["jumps"] = tuple(
                ParameterJump(float(j["time"]), tuple(j["calibration"])) for j in data["jumps"]
            )
        return cls(**data)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-serialisable dictionary, the inverse of from_dict()."""
        data = asdict(self)
        data["sensors"]["landmarks"] = [list(b) for b in self.sensors.landmarks]
        data["jumps"] = [
            {"time": j.time, "calibration": list(j.calibration)} for j in self.jumps
        ]
        return data


def load_config(path: Union[str, Path]) -> ScenarioConfig:
    """
    Load a ScenarioConfig from a JSON file.

    Args:
        path: Path to the JSON file.

    Returns:
        Validated configuration.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the content is not a valid configuration.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")
    with open(path, "r") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"Configuration root must be an object, got {type(data).__name__}")
    return ScenarioConfig.from_dict(data)


def save_config(config: ScenarioConfig, path: Union[str, Path]) -> None:
    """Write a configuration as indented JSON."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        json.dump(config.to_dict(), f, indent=2)
