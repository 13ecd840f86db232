"""Tests for PLM reconstruction with the generalised minmod limiter."""

from __future__ import annotations

import numpy as np
import pytest

from kilonova.fluid.reconstruction import plm_face_states, plm_gradient, plm_minmod

THETAS = [1.0, 1.5, 2.0]


class TestMinmod:

    @pytest.mark.parametrize("theta", THETAS)
    def test_uniform_data_has_zero_slope(self, theta):
        assert plm_minmod(3.0, 3.0, 3.0, theta) == 0.0

    @pytest.mark.parametrize("theta", THETAS)
    def test_extremum_has_zero_slope(self, theta):
        assert plm_minmod(1.0, 2.0, 1.5, theta) == 0.0
        assert plm_minmod(2.0, 1.0, 1.5, theta) == 0.0

    def test_theta_one_is_classic_minmod(self):
        """Smallest of the one-sided differences on smooth monotone data."""
        assert plm_minmod(0.0, 1.0, 3.0, 1.0) == pytest.approx(1.0)

    def test_theta_two_is_monotonized_central(self):
        """MC picks the central difference when it is the smallest."""
        assert plm_minmod(0.0, 1.0, 2.2, 2.0) == pytest.approx(1.1)

    def test_sign_follows_data(self):
        assert plm_minmod(3.0, 2.0, 0.0, 1.5) < 0.0


class TestFaceStates:

    @pytest.mark.parametrize("theta", THETAS)
    def test_uniform_vector(self, theta):
        state = np.array([1.0, 0.3, 0.01])
        left, right = plm_face_states(state, state, state, theta)
        np.testing.assert_array_equal(left, state)
        np.testing.assert_array_equal(right, state)

    @pytest.mark.parametrize("theta", THETAS)
    def test_total_variation_diminishing(self, theta):
        """Face values never leave the range of the three-zone stencil."""
        rng = np.random.default_rng(42)
        for _ in range(500):
            yl, yc, yr = rng.normal(size=3)
            left, right = plm_face_states(yl, yc, yr, theta)
            lo, hi = min(yl, yc, yr), max(yl, yc, yr)
            assert lo - 1e-14 <= left <= hi + 1e-14
            assert lo - 1e-14 <= right <= hi + 1e-14

    def test_scalar_input_returns_floats(self):
        left, right = plm_face_states(0.0, 1.0, 2.0, 1.0)
        assert isinstance(left, float)
        assert left == pytest.approx(0.5)
        assert right == pytest.approx(1.5)


class TestGradient:

    def test_edges_are_donor_cell(self):
        prim = np.cumsum(np.ones((6, 3)), axis=0)
        grad = plm_gradient(prim, 1.5)
        np.testing.assert_array_equal(grad[0], 0.0)
        np.testing.assert_array_equal(grad[-1], 0.0)
        np.testing.assert_allclose(grad[1:-1], 1.0)

    def test_linear_data_is_reproduced(self):
        """For linear data every limiter returns the exact slope."""
        x = np.linspace(0.0, 1.0, 8)
        prim = np.column_stack([2.0 * x, -x, 0.5 * x])
        grad = plm_gradient(prim, 2.0)
        np.testing.assert_allclose(grad[1:-1] / (x[1] - x[0]), np.tile([2.0, -1.0, 0.5], (6, 1)))
