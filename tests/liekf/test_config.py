"""Unit tests for liekf.config."""

import dataclasses
import json
from pathlib import Path

import numpy as np
import pytest
from numpy.testing import assert_allclose

from liekf.config import (
    InitialConfig,
    NoiseConfig,
    ParameterJump,
    ProcessConfig,
    ScenarioConfig,
    SensorConfig,
    load_config,
    save_config,
)
from liekf.errors import DomainError
from liekf.state import Kinematics

REFERENCE_JSON = Path(__file__).resolve().parents[2] / "config" / "diff_drive_self_calib.json"


class TestDefaults:
    """The built-in reference run and the shipped JSON agree."""

    def test_default_matches_reference_file(self):
        loaded = load_config(REFERENCE_JSON)
        default = ScenarioConfig.default()
        assert loaded.sensors.position_std == pytest.approx(default.sensors.position_std)
        assert loaded.noise.position_std == pytest.approx(default.noise.position_std)
        loaded = dataclasses.replace(
            loaded,
            sensors=dataclasses.replace(loaded.sensors, position_std=default.sensors.position_std),
            noise=dataclasses.replace(loaded.noise, position_std=default.noise.position_std),
        )
        assert loaded == default

    def test_reference_values(self):
        config = ScenarioConfig.default()
        assert config.n_steps == 24000
        assert config.sensors.dt == pytest.approx(0.01)
        assert config.kinematics == Kinematics(0.15, 0.15, 0.4)
        assert config.jumps == (ParameterJump(120.0, (0.1275, 0.1275, 0.4)),)
        assert_allclose(config.sensors.landmark_covariance, 1e-4 * np.eye(2))
        assert_allclose(config.sensors.position_covariance, 6e-3 * np.eye(2))

    def test_separation_is_pinned(self):
        config = ScenarioConfig.default()
        assert config.process.calibration_drift[2] == 0.0
        assert config.initial.covariance(6)[5, 5] == 0.0
        assert config.process.calibration_drift[0] > 0.0

    def test_jumps_are_sorted(self):
        config = ScenarioConfig(
            jumps=(ParameterJump(50.0, (0.1, 0.1, 0.4)), ParameterJump(10.0, (0.2, 0.2, 0.4)))
        )
        assert [j.time for j in config.jumps] == [10.0, 50.0]


class TestValidation:
    """Invalid values are rejected on construction."""

    def test_rate_must_divide_control_rate(self):
        with pytest.raises(ValueError, match="must divide"):
            SensorConfig(landmark_rate=30)

    def test_rate_equal_to_control_rate_warns(self):
        with pytest.warns(UserWarning):
            SensorConfig(landmark_rate=100)

    def test_jump_after_end_warns(self):
        with pytest.warns(UserWarning):
            ScenarioConfig(duration=10.0, jumps=(ParameterJump(20.0, (0.1, 0.1, 0.4)),))

    def test_negative_jump_time(self):
        with pytest.raises(ValueError):
            ParameterJump(-1.0, (0.1, 0.1, 0.4))

    def test_non_positive_jump_calibration(self):
        with pytest.raises(DomainError):
            ParameterJump(1.0, (0.1, -0.1, 0.4))

    def test_non_positive_duration(self):
        with pytest.raises(ValueError):
            ScenarioConfig(duration=0.0)

    def test_negative_noise(self):
        with pytest.raises(ValueError):
            NoiseConfig(wheel_noise_rate=-1.0)
        with pytest.raises(ValueError):
            ProcessConfig(calibration_drift=(1e-6, -1e-6, 0.0))

    def test_bad_landmarks(self):
        with pytest.raises(ValueError):
            SensorConfig(landmarks=((1.0, 2.0, 3.0),))

    def test_initial_covariance_length(self):
        with pytest.raises(ValueError):
            InitialConfig(covariance_diagonal=(0.1, 0.1))


class TestDerivedQuantities:
    def test_process_U(self):
        assert_allclose(ProcessConfig(wheel_noise_rate=(1e-4, 2e-4)).U, np.diag([1e-4, 2e-4]))

    def test_initial_covariance(self):
        initial = InitialConfig()
        assert initial.covariance(6).shape == (6, 6)
        assert_allclose(np.diag(initial.covariance(3)), [0.1, 0.1, 0.17])

    def test_initial_covariance_too_short(self):
        with pytest.raises(ValueError):
            InitialConfig(covariance_diagonal=(0.1, 0.1, 0.1)).covariance(6)


class TestSerialization:
    """JSON loading and saving."""

    def test_roundtrip(self, tmp_path):
        config = dataclasses.replace(ScenarioConfig.default(), duration=60.0, seed=7)
        path = tmp_path / "nested" / "config.json"
        save_config(config, path)
        assert load_config(path) == config

    def test_missing_keys_take_defaults(self):
        config = ScenarioConfig.from_dict({"duration": 5.0, "sensors": {"position_rate": 0}})
        assert config.duration == 5.0
        assert config.sensors.position_rate == 0
        assert config.sensors.landmark_rate == 50
        assert config.jumps == ()

    def test_unknown_key(self):
        with pytest.raises(ValueError, match="Unknown"):
            ScenarioConfig.from_dict({"duraton": 5.0})

    def test_unknown_nested_key(self):
        with pytest.raises(ValueError, match="sensors"):
            ScenarioConfig.from_dict({"sensors": {"gps_rate": 10}})

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "absent.json")

    def test_non_object_root(self, tmp_path):
        path = tmp_path / "list.json"
        path.write_text(json.dumps([1, 2, 3]))
        with pytest.raises(ValueError):
            load_config(path)
