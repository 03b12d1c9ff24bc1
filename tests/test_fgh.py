"""Tests for the momentum predictor F, G, H."""

import numpy as np
import pytest

from conftest import Setup, make_parameters
from nsfd.errors import DerivativeMismatchError
from nsfd.flowfield import ObstacleFlag
from nsfd.stencils import compute_fgh, compute_fgh_cell


class TestSingleCell:
    """Tests for compute_fgh_cell."""

    def test_gravity_only(self, parameters_2d):
        """A fluid at rest is only accelerated by gravity."""
        parameters_2d.environment.gx = 1.0
        parameters_2d.environment.gy = -2.0
        s = Setup(parameters_2d)
        f, g = compute_fgh_cell(s.field, parameters_2d, s.spacing, 4, 4, dt=0.1)
        assert f == pytest.approx(0.1)
        assert g == pytest.approx(-0.2)

    def test_uniform_flow_is_preserved(self, parameters_2d):
        s = Setup(parameters_2d)
        s.field.velocity[..., 0] = 1.0
        f, g = compute_fgh_cell(s.field, parameters_2d, s.spacing, 4, 4, dt=0.1)
        assert f == pytest.approx(1.0)
        assert g == pytest.approx(0.0)

    def test_uniform_flow_turbulent(self, parameters_2d):
        parameters_2d.turbulence.on = True
        s = Setup(parameters_2d)
        s.field.velocity[..., 0] = 1.0
        s.field.eddy_viscosity[...] = 0.3
        f, g = compute_fgh_cell(s.field, parameters_2d, s.spacing, 4, 4, dt=0.1)
        assert f == pytest.approx(1.0)
        assert g == pytest.approx(0.0)

    def test_diffusion_of_a_peak(self, parameters_2d):
        """A single u peak diffuses with 1/Re times the discrete Laplacian."""
        parameters_2d.flow.Re = 10.0
        parameters_2d.solver.gamma = 0.0
        s = Setup(parameters_2d)
        h = 1.0 / 8
        s.field.velocity[4, 4, 0, 0] = 1.0
        # Centred peak: du2dx and duvdy vanish for gamma = 0
        f, _ = compute_fgh_cell(s.field, parameters_2d, s.spacing, 4, 4, dt=0.01)
        laplacian = -4.0 / (h * h)
        assert f == pytest.approx(1.0 + 0.01 * laplacian / 10.0)

    def test_three_dimensional(self, parameters_3d):
        parameters_3d.environment.gz = -1.0
        s = Setup(parameters_3d)
        values = compute_fgh_cell(s.field, parameters_3d, s.spacing, 3, 3, 3, dt=0.5)
        assert len(values) == 3
        assert values[2] == pytest.approx(-0.5)


class TestSweep:
    """Tests for compute_fgh over the whole field."""

    def test_obstacle_faces_untouched(self, parameters_2d):
        parameters_2d.environment.gx = 1.0
        s = Setup(parameters_2d)
        field = s.field
        field.fgh[...] = 7.0
        field.flags[2, 3, 0] |= int(ObstacleFlag.RIGHT)
        field.flags[5, 5, 0] = int(ObstacleFlag.SELF)
        compute_fgh(field, parameters_2d, s.spacing, dt=0.1)

        assert field.fgh[2, 3, 0, 0] == 7.0
        assert field.fgh[2, 3, 0, 1] == pytest.approx(0.0)
        assert np.all(field.fgh[5, 5, 0, :] == 7.0)
        assert field.fgh[4, 4, 0, 0] == pytest.approx(0.1)

    def test_ghost_cells_untouched(self, setup_2d):
        field = setup_2d.field
        field.fgh[...] = -3.0
        compute_fgh(field, setup_2d.params, setup_2d.spacing)
        assert np.all(field.fgh[:2, :, :, :] == -3.0)
        assert np.all(field.fgh[field.nx + 2, :, :, :] == -3.0)

    def test_sweep_matches_single_cell(self, parameters_3d, rng):
        parameters_3d.geometry.mesh = "stretched"
        parameters_3d.geometry.stretch = [True, True, True]
        s = Setup(parameters_3d)
        s.field.velocity[...] = rng.uniform(-1.0, 1.0, s.field.velocity.shape)
        compute_fgh(s.field, parameters_3d, s.spacing, dt=0.01)
        expected = compute_fgh_cell(s.field, parameters_3d, s.spacing, 3, 4, 2, dt=0.01)
        np.testing.assert_allclose(s.field.fgh[3, 4, 2, :], expected)

    def test_turbulent_sweep_matches_single_cell(self, rng):
        params = make_parameters(dim=3)
        params.turbulence.on = True
        s = Setup(params)
        s.field.velocity[...] = rng.uniform(-1.0, 1.0, s.field.velocity.shape)
        s.field.eddy_viscosity[...] = rng.uniform(0.0, 0.1, s.field.eddy_viscosity.shape)
        compute_fgh(s.field, params, s.spacing, dt=0.01)
        expected = compute_fgh_cell(s.field, params, s.spacing, 2, 3, 4, dt=0.01)
        np.testing.assert_allclose(s.field.fgh[2, 3, 4, :], expected)

    def test_derivative_check_enabled(self, parameters_2d, rng):
        parameters_2d.solver.check_derivatives = True
        s = Setup(parameters_2d)
        s.field.velocity[..., :2] = rng.uniform(-1.0, 1.0, s.field.velocity[..., :2].shape)
        compute_fgh(s.field, parameters_2d, s.spacing, dt=0.01)
        assert np.all(np.isfinite(s.field.fgh))


def test_mismatch_error_is_assertion():
    assert issubclass(DerivativeMismatchError, AssertionError)
