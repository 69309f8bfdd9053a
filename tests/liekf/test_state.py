"""Unit tests for liekf.state."""

import numpy as np
import pytest

from liekf.errors import DimensionError, DomainError
from liekf.manifolds import SE2, Rn
from liekf.state import (
    CALIBRATION_SLICE,
    POSE_SLICE,
    STATE_DOF,
    DiffDriveState,
    Kinematics,
    check_calibration,
)


class TestKinematics:
    """Test suite for the nominal kinematics."""

    def test_as_array(self):
        k = Kinematics(0.15, 0.14, 0.4)
        np.testing.assert_array_equal(k.as_array(), [0.15, 0.14, 0.4])

    @pytest.mark.parametrize("values", [(0.0, 0.15, 0.4), (0.15, -0.1, 0.4), (0.15, 0.15, np.nan)])
    def test_rejects_non_positive(self, values):
        with pytest.raises(DomainError):
            Kinematics(*values)

    def test_check_calibration_shape(self):
        with pytest.raises(DimensionError):
            check_calibration(np.ones(2))


class TestDiffDriveState:
    """Test suite for the composite state."""

    def test_layout(self):
        X = DiffDriveState.from_vector(1.0, 2.0, 0.3, 0.15, 0.14, 0.4)
        assert X.dof == STATE_DOF
        assert POSE_SLICE == X.tangent_slice(0)
        assert CALIBRATION_SLICE == X.tangent_slice(1)
        assert X.pose.isapprox(SE2(1.0, 2.0, 0.3), tol=1e-12)
        assert (X.left_radius, X.right_radius, X.wheel_separation) == (0.15, 0.14, 0.4)

    def test_from_kinematics(self):
        X = DiffDriveState.from_kinematics(SE2(), Kinematics(0.15, 0.15, 0.4))
        np.testing.assert_array_equal(X.calibration.coeffs(), [0.15, 0.15, 0.4])

    def test_with_calibration(self):
        X = DiffDriveState.from_vector(1.0, 2.0, 0.3, 0.15, 0.15, 0.4)
        Y = X.with_calibration(np.array([0.1275, 0.1275, 0.4]))
        assert Y.pose == X.pose
        assert Y.left_radius == 0.1275
        assert X.left_radius == 0.15

    def test_type_checks(self):
        with pytest.raises(TypeError):
            DiffDriveState(Rn([0.0, 0.0, 0.0]), Rn([0.15, 0.15, 0.4]))
        with pytest.raises(TypeError):
            DiffDriveState(SE2(), Rn([0.15, 0.15]))
