"""Unit tests for liekf.sim.simulator."""

import numpy as np
import pytest

from liekf.config import NoiseConfig, ParameterJump, ScenarioConfig
from liekf.sim import DiffDriveSimulator


@pytest.fixture
def noiseless_config():
    return ScenarioConfig(
        duration=10.0,
        noise=NoiseConfig(wheel_noise_rate=0.0, landmark_std=0.0, position_std=0.0),
        jumps=(ParameterJump(0.05, (0.1275, 0.1275, 0.4)),),
    )


class TestDiffDriveSimulator:
    """Ground truth and sensor generation."""

    def test_noiseless_control(self, noiseless_config):
        sim = DiffDriveSimulator(noiseless_config)
        u_true, u_measured = sim.step()
        np.testing.assert_allclose(u_true, [0.005, 0.0035])
        np.testing.assert_array_equal(u_measured, u_true)
        assert sim.time == 0.01
        assert sim.steps == 1

    def test_noiseless_observations(self, noiseless_config):
        sim = DiffDriveSimulator(noiseless_config)
        for _ in range(10):
            sim.step()
        ys = sim.observe_landmarks()
        assert len(ys) == 3
        for y, model in zip(ys, sim.landmark_models):
            np.testing.assert_allclose(y, model.h(sim.state.pose))
        np.testing.assert_allclose(sim.observe_position(), sim.state.pose.translation())

    def test_jump_changes_truth_only_once_due(self, noiseless_config):
        sim = DiffDriveSimulator(noiseless_config)
        assert sim.apply_jumps(0.04) == []
        assert sim.state.left_radius == 0.15
        applied = sim.apply_jumps(0.05)
        assert len(applied) == 1
        assert sim.state.left_radius == 0.1275
        assert sim.apply_jumps(1.0) == []
        assert sim.applied_jumps == applied

    def test_control_noise_statistics(self):
        config = ScenarioConfig(noise=NoiseConfig(wheel_noise_rate=9e-5))
        sim = DiffDriveSimulator(config, np.random.default_rng(0))
        samples = np.array([sim.measured_control() for _ in range(20000)])
        # Increments carry covariance rate·Δt
        np.testing.assert_allclose(samples.var(axis=0), 9e-5 * 0.01, rtol=0.05)
        np.testing.assert_allclose(samples.mean(axis=0), [0.005, 0.0035], atol=1e-4)

    def test_slip_moves_laterally(self):
        config = ScenarioConfig(control=(0.0, 0.0), noise=NoiseConfig(wheel_noise_rate=0.0, slip_rate=1e-2))
        sim = DiffDriveSimulator(config, np.random.default_rng(1))
        for _ in range(100):
            sim.step()
        assert sim.state.pose.x == 0.0
        assert abs(sim.state.pose.y) > 0.0

    def test_seeded_runs_repeat(self):
        a = DiffDriveSimulator(ScenarioConfig(seed=3))
        b = DiffDriveSimulator(ScenarioConfig(seed=3))
        for _ in range(5):
            np.testing.assert_array_equal(a.step()[1], b.step()[1])

    def test_sensor_covariances_follow_noise_config(self):
        config = ScenarioConfig(noise=NoiseConfig(landmark_std=0.02, position_std=0.5))
        simulator = DiffDriveSimulator(config)
        np.testing.assert_allclose(simulator.landmark_models[0].covariance, 4e-4 * np.eye(2))
        np.testing.assert_allclose(simulator.position_model.covariance, 0.25 * np.eye(2))
