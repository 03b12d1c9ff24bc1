"""Tests for the window layout and the finite difference library."""

import numpy as np
import pytest

from nsfd.errors import DerivativeMismatchError
from nsfd.stencils import derivatives as d
from nsfd.stencils.crosscheck import (
    PRODUCT_DERIVATIVES,
    check_field_derivatives,
    check_product_derivatives,
    product_derivative_discrepancies,
)
from nsfd.stencils.indexing import WINDOW_SIZE, load_local_velocity_2d, mapd, new_window


def uniform_window(h=1.0):
    lv = new_window()
    lm = np.full(WINDOW_SIZE, h)
    return lv, lm


class TestWindowLayout:
    """Tests for the flat 3x3x3 window indexing."""

    def test_centre_and_corners(self):
        assert mapd(0, 0, 0, 0) == 39
        assert mapd(-1, -1, -1, 0) == 0
        assert mapd(1, 1, 1, 2) == 80

    def test_offsets_are_unique(self):
        positions = {
            mapd(i, j, k, c)
            for i in (-1, 0, 1)
            for j in (-1, 0, 1)
            for k in (-1, 0, 1)
            for c in range(3)
        }
        assert positions == set(range(WINDOW_SIZE))

    def test_load_velocity_2d(self):
        """The window centre holds the cell itself, neighbours at their offsets."""
        velocity = np.zeros((5, 5, 1, 3))
        velocity[..., 0] = np.arange(5)[:, None, None]
        velocity[..., 1] = 10 * np.arange(5)[None, :, None]
        lv = new_window()
        load_local_velocity_2d(velocity, lv, 2, 2)
        assert lv[mapd(0, 0, 0, 0)] == 2
        assert lv[mapd(1, 0, 0, 0)] == 3
        assert lv[mapd(0, -1, 0, 1)] == 10


class TestFirstAndSecondDerivatives:
    """Tests for plain derivatives."""

    def test_first_derivative(self):
        lv, lm = uniform_window(0.5)
        lv[mapd(0, 0, 0, 0)] = 1.0
        lv[mapd(-1, 0, 0, 0)] = 0.25
        assert d.dudx(lv, lm) == pytest.approx(1.5)

    @pytest.mark.parametrize("h0, h1", [(1.0, 1.0), (0.3, 0.7), (2.0, 0.5)])
    def test_second_difference_exact_for_quadratics(self, h0, h1):
        """The three-point formula is exact for x^2 on any spacing."""
        value = d.second_difference(h0**2, 0.0, h1**2, h0, h1)
        assert value == pytest.approx(2.0)

    def test_second_derivative_uniform(self):
        lv, lm = uniform_window(0.5)
        lv[mapd(-1, 0, 0, 0)] = 1.0
        lv[mapd(0, 0, 0, 0)] = 0.0
        lv[mapd(1, 0, 0, 0)] = 1.0
        assert d.d2udx2(lv, lm) == pytest.approx(8.0)

    def test_strain_rate_of_shear(self):
        """u = y gives S2 = 2."""
        lv, lm = uniform_window()
        for i in (-1, 0, 1):
            for j in (-1, 0, 1):
                lv[mapd(i, j, 0, 0)] = j + 1.0
        assert d.strain_rate_squared_2d(lv, lm) == pytest.approx(2.0)


class TestProductDerivatives:
    """Tests for the blended central/donor-cell convective terms."""

    def setup_window(self):
        lv, lm = uniform_window()
        lv[mapd(-1, 0, 0, 0)] = 2.0
        lv[mapd(0, 0, 0, 0)] = 1.0
        lv[mapd(1, 0, 0, 0)] = 3.0
        return lv, lm

    def test_central_at_gamma_zero(self):
        lv, lm = self.setup_window()
        # ((1+3)^2 - (1+2)^2) / 4
        assert d.du2dx(lv, lm, 0.0) == pytest.approx(1.75)

    def test_donor_cell_at_gamma_one(self):
        lv, lm = self.setup_window()
        # Both face velocities positive: (kr * u0 - kl * u_left) / h
        assert d.du2dx(lv, lm, 1.0) == pytest.approx(2.0 * 1.0 - 1.5 * 2.0)

    def test_blend_is_linear_in_gamma(self):
        lv, lm = self.setup_window()
        central = d.du2dx(lv, lm, 0.0)
        donor = d.du2dx(lv, lm, 1.0)
        assert d.du2dx(lv, lm, 0.3) == pytest.approx(0.7 * central + 0.3 * donor)

    def test_uniform_flow_has_no_convection(self):
        lv, lm = uniform_window(0.1)
        for c in range(3):
            lv[c::3] = 1.0 + c
        for name in PRODUCT_DERIVATIVES:
            assert getattr(d, name)(lv, lm, 0.5) == pytest.approx(0.0, abs=1e-12)


class TestCrossCheck:
    """The two formulations agree on arbitrary stretched windows."""

    @pytest.mark.parametrize("gamma", [0.0, 0.5, 1.0])
    @pytest.mark.parametrize("dim", [2, 3])
    def test_random_windows_agree(self, rng, gamma, dim):
        for _ in range(50):
            lv = rng.uniform(-1.0, 1.0, WINDOW_SIZE)
            lm = rng.uniform(0.5, 2.0, WINDOW_SIZE)
            discrepancies = check_product_derivatives(lv, lm, gamma, dim)
            assert np.all(discrepancies < 1e-12)

    def test_two_dimensional_skips_w_terms(self, rng):
        lv = rng.uniform(-1.0, 1.0, WINDOW_SIZE)
        lm = rng.uniform(0.5, 2.0, WINDOW_SIZE)
        discrepancies = product_derivative_discrepancies(lv, lm, 0.5, 2)
        for n in (2, 5, 6, 7, 8):
            assert discrepancies[n] == 0.0

    def test_mismatch_raises(self, rng):
        lv = rng.uniform(-1.0, 1.0, WINDOW_SIZE)
        lm = rng.uniform(0.5, 2.0, WINDOW_SIZE)
        with pytest.raises(DerivativeMismatchError, match="Error in"):
            check_product_derivatives(lv, lm, 0.5, 3, tolerance=-1.0)

    def test_field_check_passes(self, setup_2d, rng):
        field = setup_2d.field
        field.velocity[..., :2] = rng.uniform(-1.0, 1.0, field.velocity[..., :2].shape)
        assert check_field_derivatives(field, 0.5, setup_2d.spacing) < 1e-12
