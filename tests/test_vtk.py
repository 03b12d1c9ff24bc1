"""Tests for VTK output."""

import numpy as np
import pytest
import pyvista as pv

from conftest import Setup, make_parameters
from nsfd.output import VTKWriter, build_grid


class TestBuildGrid:
    """Tests for the rectilinear grid."""

    def test_cells_and_order(self, setup_2d):
        field = setup_2d.field
        i = np.arange(field.cells[0])[:, None, None]
        j = np.arange(field.cells[1])[None, :, None]
        field.pressure[...] = (i - 2) + 10 * (j - 2)
        grid = build_grid(field, setup_2d.meshsize)

        assert grid.n_cells == 64
        pressure = grid.cell_data["pressure"]
        np.testing.assert_array_equal(pressure[:8], np.arange(8))
        assert pressure[8] == 10
        assert pressure[-1] == 77

    def test_cell_centred_velocity(self, setup_2d):
        field = setup_2d.field
        field.velocity[..., 0] = 1.0
        field.velocity[..., 1] = np.arange(field.cells[1])[None, :, None]
        grid = build_grid(field, setup_2d.meshsize)
        velocity = grid.cell_data["velocity"]
        assert velocity.shape == (64, 3)
        np.testing.assert_allclose(velocity[:, 0], 1.0)
        # Row j = 2 averages the faces 1 and 2
        assert velocity[0, 1] == pytest.approx(1.5)
        assert velocity[8, 1] == pytest.approx(2.5)

    def test_bounds(self):
        s = Setup(make_parameters(dim=3, length=[2.0, 1.0, 0.5]))
        grid = build_grid(s.field, s.meshsize)
        assert grid.n_cells == 64
        np.testing.assert_allclose(grid.bounds, [0.0, 2.0, 0.0, 1.0, 0.0, 0.5])


class TestVTKWriter:
    """Tests for file naming and writing."""

    def make_writer(self, setup, tmp_path):
        setup.params.vtk.output_dir = str(tmp_path)
        return VTKWriter(setup.params, setup.meshsize, setup.identity)

    def test_filename(self, setup_2d, tmp_path):
        writer = self.make_writer(setup_2d, tmp_path)
        assert writer.filename(0.5) == tmp_path / "nsfd_0_500000.vtr"
        assert writer.filename(0.0).name == "nsfd_0_0.vtr"

    def test_write_and_read_back(self, setup_2d, tmp_path):
        writer = self.make_writer(setup_2d, tmp_path)
        setup_2d.field.pressure[...] = 3.0
        path = writer.write(setup_2d.field, 0.25)

        assert path.exists()
        assert writer.written == [path]
        grid = pv.read(path)
        np.testing.assert_allclose(grid.cell_data["pressure"], 3.0)
