"""Unit tests for liekf.sim.scheduler."""

import numpy as np
import pytest

from liekf.config import SensorConfig
from liekf.sim import RateScheduler


class TestRateScheduler:
    """Fixed time grid with integer sensor divisors."""

    def test_divisors(self):
        scheduler = RateScheduler(100, 50, 10)
        assert scheduler.dt == 0.01
        assert scheduler.landmark_divisor == 2
        assert scheduler.position_divisor == 10

    def test_due_steps(self):
        scheduler = RateScheduler(100, 50, 10)
        assert [k for k in range(21) if scheduler.position_due(k)] == [0, 10, 20]
        assert [k for k in range(7) if scheduler.landmarks_due(k)] == [0, 2, 4, 6]

    def test_disabled_sensors(self):
        scheduler = RateScheduler(100)
        assert scheduler.landmark_divisor is None
        assert not any(scheduler.landmarks_due(k) or scheduler.position_due(k) for k in range(100))

    def test_time_is_not_accumulated(self):
        scheduler = RateScheduler(100)
        t = 0.0
        for _ in range(100000):
            t += scheduler.dt
        assert scheduler.time(100000) == 1000.0
        assert abs(t - 1000.0) > 0.0

    def test_times(self):
        scheduler = RateScheduler(100)
        times = scheduler.times(1.0)
        assert scheduler.n_steps(1.0) == 100
        assert len(times) == 100
        np.testing.assert_allclose(times[-1], 0.99)

    @pytest.mark.parametrize("rate", [30, -10])
    def test_rate_must_divide(self, rate):
        with pytest.raises(ValueError):
            RateScheduler(100, landmark_rate=rate)

    def test_from_config(self):
        scheduler = RateScheduler.from_config(SensorConfig(control_rate=200, landmark_rate=40, position_rate=0))
        assert scheduler.landmark_divisor == 5
        assert scheduler.position_divisor is None
