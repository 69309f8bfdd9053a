"""
Deterministic multi-rate scheduling on a fixed time grid.

Time is t_k = k·Δt with Δt = 1 / control_rate; it is computed from the
step index, never accumulated. Sensor updates fire when k is a multiple
of control_rate // sensor_rate, so step 0 carries every enabled sensor.
"""

import numpy as np


class RateScheduler:
    """
    Fires predictions at the control rate and updates at integer divisors.

    Args:
        control_rate: Prediction rate (Hz).
        landmark_rate: Landmark update rate (Hz), 0 to disable.
        position_rate: Position-fix update rate (Hz), 0 to disable.

    Raises:
        ValueError: If a sensor rate does not divide the control rate.

    Example:
        >>> scheduler = RateScheduler(100, 50, 10)
        >>> [k for k in range(12) if scheduler.position_due(k)]
        [0, 10]
    """

    def __init__(self, control_rate: int, landmark_rate: int = 0, position_rate: int = 0):
        if control_rate <= 0:
            raise ValueError(f"control_rate must be positive, got {control_rate}")
        self.control_rate = int(control_rate)
        self.dt = 1.0 / self.control_rate
        self.landmark_divisor = self._divisor("landmark_rate", landmark_rate)
        self.position_divisor = self._divisor("position_rate", position_rate)

    def _divisor(self, name: str, rate: int):
        if rate == 0:
            return None
        if rate < 0 or self.control_rate % rate != 0:
            raise ValueError(f"{name}={rate} Hz must divide control_rate={self.control_rate} Hz")
        return self.control_rate // int(rate)

    @classmethod
    def from_config(cls, sensors) -> "RateScheduler":
        return cls(sensors.control_rate, sensors.landmark_rate, sensors.position_rate)

    def time(self, k: int) -> float:
        return k * self.dt

    def n_steps(self, duration: float) -> int:
        return int(round(duration * self.control_rate))

    def times(self, duration: float) -> np.ndarray:
        """Time grid t_k = k·Δt for k = 0 .. n_steps - 1."""
        return np.arange(self.n_steps(duration)) * self.dt

    def landmarks_due(self, k: int) -> bool:
        return self.landmark_divisor is not None and k % self.landmark_divisor == 0

    def position_due(self, k: int) -> bool:
        return self.position_divisor is not None and k % self.position_divisor == 0

    def __repr__(self) -> str:
        return (
            f"RateScheduler(control_rate={self.control_rate}, "
            f"landmark_divisor={self.landmark_divisor}, position_divisor={self.position_divisor})"
        )
