"""Unit tests for liekf.manifolds.se2.

Covers the group law, Exp/Log (including the small-angle branch), the
right/left Jacobians, the adjoint and the action on points.
"""

import numpy as np
import pytest

from liekf.errors import DimensionError
from liekf.manifolds import SE2, SMALL_ANGLE_THRESHOLD


def numerical_rjac(tau, eps=1e-7):
    """J_r by central differences: Exp(τ)⁻¹ Exp(τ + ε e_i)."""
    tau = np.asarray(tau, dtype=float)
    J = np.zeros((3, 3))
    for i in range(3):
        d = np.zeros(3)
        d[i] = eps
        J[:, i] = (SE2.exp(tau + d).rminus(SE2.exp(tau - d))) / (2 * eps)
    return J


POSES = [
    SE2(0.0, 0.0, 0.0),
    SE2(1.0, 2.0, 0.3),
    SE2(-3.0, 0.5, -2.5),
    SE2(0.2, -1.0, np.pi),
    SE2(5.0, 5.0, 1e-9),
]


class TestSE2Construction:
    """Test suite for SE2 constructors and accessors."""

    def test_identity(self):
        X = SE2.identity()
        np.testing.assert_array_equal(X.coeffs(), [0.0, 0.0, 1.0, 0.0])
        assert X.angle() == 0.0

    def test_accessors(self):
        X = SE2(1.0, 2.0, np.pi / 2)
        assert X.x == 1.0
        assert X.y == 2.0
        assert np.isclose(X.real, 0.0, atol=1e-15)
        assert np.isclose(X.imag, 1.0)
        np.testing.assert_allclose(X.translation(), [1.0, 2.0])

    def test_angle_pi_convention(self):
        """θ = -π is reported as +π."""
        X = SE2.from_coeffs(np.array([0.0, 0.0, -1.0, -0.0]))
        assert X.angle() == np.pi

    def test_from_coeffs_normalizes(self):
        X = SE2.from_coeffs(np.array([1.0, 2.0, 2.0, 0.0]))
        np.testing.assert_allclose(X.coeffs(), [1.0, 2.0, 1.0, 0.0])

    def test_from_coeffs_rejects_zero_rotation(self):
        with pytest.raises(ValueError):
            SE2.from_coeffs(np.array([0.0, 0.0, 0.0, 0.0]))

    def test_matrix_roundtrip(self):
        X = SE2(1.5, -0.5, 0.7)
        Y = SE2.from_matrix(X.to_matrix())
        np.testing.assert_allclose(Y.coeffs(), X.coeffs(), atol=1e-15)

    def test_coeffs_are_immutable(self):
        X = SE2(1.0, 2.0, 0.3)
        c = X.coeffs()
        c[0] = 100.0
        assert X.x == 1.0

    def test_bad_tangent_shape(self):
        with pytest.raises(DimensionError):
            SE2.exp(np.zeros(2))


class TestSE2GroupLaw:
    """Composition, inverse and retractions."""

    @pytest.mark.parametrize("X", POSES)
    def test_double_inverse(self, X):
        np.testing.assert_allclose(X.inverse().inverse().coeffs(), X.coeffs(), atol=1e-12)

    @pytest.mark.parametrize("X", POSES)
    def test_compose_inverse_is_identity(self, X):
        assert X.compose(X.inverse()).isapprox(SE2.identity(), tol=1e-12)
        assert X.inverse().compose(X).isapprox(SE2.identity(), tol=1e-12)

    def test_compose_matches_matrices(self):
        X1, X2 = SE2(1.0, 2.0, 0.3), SE2(-0.5, 0.7, 2.0)
        np.testing.assert_allclose((X1 @ X2).to_matrix(), X1.to_matrix() @ X2.to_matrix(), atol=1e-12)

    def test_composition_across_pi_does_not_wrap(self):
        X = SE2(0.0, 0.0, 3.0).compose(SE2(0.0, 0.0, 0.3))
        assert np.isclose(X.angle(), 3.3 - 2 * np.pi)
        np.testing.assert_allclose(X.real, np.cos(3.3))

    @pytest.mark.parametrize("X", POSES)
    def test_identity_retraction(self, X):
        np.testing.assert_allclose(X.rplus(np.zeros(3)).coeffs(), X.coeffs(), atol=1e-12)
        np.testing.assert_allclose(X.rminus(X), np.zeros(3), atol=1e-12)
        np.testing.assert_allclose(X.lminus(X), np.zeros(3), atol=1e-12)

    def test_plus_minus_are_inverse(self):
        X = SE2(1.0, -2.0, 0.4)
        tau = np.array([0.3, -0.1, 0.2])
        np.testing.assert_allclose(X.rplus(tau).rminus(X), tau, atol=1e-12)
        np.testing.assert_allclose(X.lplus(tau).lminus(X), tau, atol=1e-12)

    def test_operators(self):
        X, Y = SE2(1.0, 0.0, 0.2), SE2(0.0, 1.0, -0.4)
        tau = np.array([0.1, 0.2, 0.3])
        assert (X @ Y) == X.compose(Y)
        assert (X + tau) == X.rplus(tau)
        np.testing.assert_array_equal(Y - X, Y.rminus(X))

    def test_between(self):
        X, Y = SE2(1.0, 0.0, 0.2), SE2(0.0, 1.0, -0.4)
        assert X.compose(X.between(Y)).isapprox(Y, tol=1e-12)


class TestSE2ExpLog:
    """Exponential and logarithmic maps."""

    @pytest.mark.parametrize("omega", [1e-12, 1e-6, 1e-4, 1e-2, 0.5, -1.0])
    def test_exp_log_roundtrip(self, omega):
        tau = np.array([0.6, -0.4, omega])
        tau = tau / max(1.0, np.linalg.norm(tau))
        np.testing.assert_allclose(SE2.exp(tau).log(), tau, atol=1e-10)

    def test_exp_zero_is_identity(self):
        assert SE2.exp(np.zeros(3)) == SE2.identity()

    def test_exp_pure_translation(self):
        X = SE2.exp(np.array([1.0, 2.0, 0.0]))
        np.testing.assert_allclose(X.translation(), [1.0, 2.0])

    def test_exp_quarter_turn(self):
        """Exp((π/2, 0, π/2)) moves along a unit quarter circle."""
        X = SE2.exp(np.array([np.pi / 2, 0.0, np.pi / 2]))
        np.testing.assert_allclose(X.translation(), [1.0, 1.0], atol=1e-12)
        assert np.isclose(X.angle(), np.pi / 2)

    def test_log_at_pi(self):
        tau = SE2(1.0, 0.0, np.pi).log()
        assert np.isclose(tau[2], np.pi)
        np.testing.assert_allclose(SE2.exp(tau).coeffs(), SE2(1.0, 0.0, np.pi).coeffs(), atol=1e-12)

    def test_small_angle_branch_is_continuous(self):
        """Series and closed form agree across the threshold."""
        rho = np.array([0.7, -0.3])
        below = SE2.exp(np.array([*rho, (1 - 1e-9) * SMALL_ANGLE_THRESHOLD]))
        above = SE2.exp(np.array([*rho, (1 + 1e-9) * SMALL_ANGLE_THRESHOLD]))
        np.testing.assert_allclose(below.translation(), above.translation(), atol=1e-8)


class TestSE2Jacobians:
    """Right/left Jacobians and the adjoint."""

    @pytest.mark.parametrize(
        "tau",
        [
            np.array([0.3, -0.2, 0.5]),
            np.array([1.0, 0.5, -1.2]),
            np.array([0.4, 0.1, 1e-6]),
            np.array([0.0, 0.0, 0.0]),
        ],
    )
    def test_rjac_matches_finite_differences(self, tau):
        np.testing.assert_allclose(SE2.rjac(tau), numerical_rjac(tau), atol=1e-6)

    @pytest.mark.parametrize("omega", [1e-12, 1e-5, 0.3, 2.0])
    def test_rjacinv_is_inverse(self, omega):
        tau = np.array([0.5, -0.7, omega])
        np.testing.assert_allclose(SE2.rjac(tau) @ SE2.rjacinv(tau), np.eye(3), atol=1e-12)
        np.testing.assert_allclose(SE2.ljac(tau) @ SE2.ljacinv(tau), np.eye(3), atol=1e-12)

    def test_right_jacobian_consistency(self):
        """Log(Exp(ξ) ⊞ δ) ≈ ξ + J_r(ξ)⁻¹ δ to second order."""
        xi = np.array([0.4, -0.3, 0.8])
        for scale in [1e-3, 1e-4]:
            delta = scale * np.array([1.0, -0.5, 0.7])
            lhs = SE2.exp(xi).rplus(delta).log()
            rhs = xi + SE2.rjacinv(xi) @ delta
            assert np.linalg.norm(lhs - rhs) < 10 * np.linalg.norm(delta) ** 2

    def test_ljac_relation(self):
        """J_l(τ) = Ad(Exp(τ)) J_r(τ)."""
        tau = np.array([0.2, 0.9, -0.6])
        np.testing.assert_allclose(SE2.ljac(tau), SE2.exp(tau).adj() @ SE2.rjac(tau), atol=1e-12)

    def test_adjoint_maps_right_to_left(self):
        """X ⊞ τ = (Ad_X τ) ⊕ X."""
        X = SE2(1.0, -2.0, 0.7)
        tau = np.array([0.1, 0.2, -0.3])
        assert X.rplus(tau).isapprox(X.lplus(X.adj() @ tau), tol=1e-12)


class TestSE2Action:
    """Action on points of R²."""

    def test_act(self):
        X = SE2(1.0, 2.0, np.pi / 2)
        np.testing.assert_allclose(X.act(np.array([1.0, 0.0])), [1.0, 3.0], atol=1e-12)

    def test_act_inverse(self):
        X = SE2(1.0, 2.0, 0.4)
        p = np.array([-0.3, 0.8])
        np.testing.assert_allclose(X.inverse().act(X.act(p)), p, atol=1e-12)

    def test_act_jacobians_numerical(self):
        X = SE2(1.0, 2.0, 0.4)
        p = np.array([-0.3, 0.8])
        J_X, J_p = X.act_jacobians(p)
        eps = 1e-7
        J_X_num = np.zeros((2, 3))
        for i in range(3):
            d = np.zeros(3)
            d[i] = eps
            J_X_num[:, i] = (X.rplus(d).act(p) - X.rplus(-d).act(p)) / (2 * eps)
        np.testing.assert_allclose(J_X, J_X_num, atol=1e-7)
        np.testing.assert_allclose(J_p, X.rotation())

    def test_act_bad_shape(self):
        with pytest.raises(DimensionError):
            SE2().act(np.zeros(3))
