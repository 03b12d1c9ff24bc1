"""Tests for the pressure Poisson matrix assembly."""

import numpy as np
import pytest

from conftest import Setup, make_parameters
from nsfd.assembly import (
    MeshCoefficients,
    assemble_pressure_matrix,
    assemble_rhs,
    matrix_shape,
    matrix_view,
    scatter_solution,
    wall_kind_array,
)
from nsfd.datastructures import BoundaryType
from nsfd.flowfield import cell_centres
from nsfd.meshing import RectilinearMeshsize

D, N, P = BoundaryType.DIRICHLET, BoundaryType.NEUMANN, BoundaryType.PERIODIC


def unit_matrix_2d(kinds=(D, D, D, D), flags=None):
    """Matrix of a 4x4 grid with unit spacing (6x6 matrix cells)."""
    mesh = RectilinearMeshsize(np.ones(4), np.ones(4))
    cells = (6, 6, 1)
    if flags is None:
        flags = np.zeros(cells, dtype=np.int32)
    coefficients = MeshCoefficients.compute(mesh, cells, 2)
    return assemble_pressure_matrix(flags, wall_kind_array(kinds), coefficients, 2).toarray()


def row(i, j, k=0, cx=6, cy=6):
    return i + j * cx + k * cx * cy


class TestShapes:
    """Tests for the matrix extent helpers."""

    def test_matrix_shape(self):
        assert matrix_shape((7, 7, 1), 2) == (6, 6, 1)
        assert matrix_shape((7, 8, 9), 3) == (6, 7, 8)

    def test_matrix_view(self):
        a = np.zeros((7, 7, 1))
        assert matrix_view(a, 2).shape == (6, 6, 1)
        assert matrix_view(np.zeros((7, 7, 7)), 3).shape == (6, 6, 6)


class TestInteriorRows:
    """Tests for fluid rows."""

    def test_uniform_laplacian(self):
        A = unit_matrix_2d()
        r = row(2, 3)
        assert A[r, r] == pytest.approx(-4.0)
        for other in (row(1, 3), row(3, 3), row(2, 2), row(2, 4)):
            assert A[r, other] == pytest.approx(1.0)
        assert np.count_nonzero(A[r]) == 5

    def test_quadratic_exact_on_stretched_mesh(self):
        """The variable spacing stencil reproduces the Laplacian of x^2 + y^2."""
        dx = np.array([0.1, 0.2, 0.3, 0.15])
        dy = np.array([0.2, 0.1, 0.4, 0.3])
        mesh = RectilinearMeshsize(dx, dy)
        cells = (6, 6, 1)
        coefficients = MeshCoefficients.compute(mesh, cells, 2)
        A = assemble_pressure_matrix(np.zeros(cells, dtype=np.int32), wall_kind_array([D] * 4), coefficients, 2)

        x = cell_centres(mesh, 0, 7)[1:]
        y = cell_centres(mesh, 1, 7)[1:]
        p = (x[:, None] ** 2 + y[None, :] ** 2)[:, :, None]
        result = (A @ p.ravel(order="F")).reshape(cells, order="F")
        np.testing.assert_allclose(result[1:5, 1:5, 0], 4.0, rtol=1e-10)

    def test_interior_rows_sum_to_zero(self):
        mesh = RectilinearMeshsize(np.array([0.1, 0.2, 0.3, 0.15]), np.array([0.2, 0.1, 0.4, 0.3]))
        cells = (6, 6, 1)
        A = assemble_pressure_matrix(
            np.zeros(cells, dtype=np.int32),
            wall_kind_array([D] * 4),
            MeshCoefficients.compute(mesh, cells, 2),
            2,
        ).toarray()
        for i in range(1, 5):
            for j in range(1, 5):
                assert A[row(i, j)].sum() == pytest.approx(0.0, abs=1e-9)

    def test_three_dimensional_stencil(self):
        mesh = RectilinearMeshsize(np.ones(3), np.ones(3), np.ones(3))
        cells = (5, 5, 5)
        coefficients = MeshCoefficients.compute(mesh, cells, 3)
        A = assemble_pressure_matrix(
            np.zeros(cells, dtype=np.int32), wall_kind_array([D] * 6), coefficients, 3
        ).toarray()
        r = row(2, 2, 2, 5, 5)
        assert A[r, r] == pytest.approx(-6.0)
        assert A[r, row(2, 2, 1, 5, 5)] == pytest.approx(1.0)
        assert A[r, row(2, 2, 3, 5, 5)] == pytest.approx(1.0)
        assert np.count_nonzero(A[r]) == 7


class TestBoundaryRows:
    """Tests for ghost cell rows."""

    def test_dirichlet_rows(self):
        A = unit_matrix_2d()
        assert A[row(0, 2), row(0, 2)] == 1.0
        assert A[row(0, 2), row(1, 2)] == -1.0
        assert A[row(5, 2), row(4, 2)] == -1.0
        assert A[row(3, 5), row(3, 4)] == -1.0

    def test_neumann_rows(self):
        A = unit_matrix_2d(kinds=(N, N, D, D))
        assert A[row(0, 2), row(0, 2)] == 0.5
        assert A[row(0, 2), row(1, 2)] == 0.5
        assert A[row(5, 3), row(4, 3)] == 0.5
        assert A[row(3, 0), row(3, 1)] == -1.0

    def test_periodic_rows(self):
        """Ghost cells pair with the inner cell on the opposite side."""
        A = unit_matrix_2d(kinds=(P, P, D, D))
        assert A[row(0, 2), row(0, 2)] == 1.0
        assert A[row(0, 2), row(4, 2)] == -1.0
        assert A[row(5, 2), row(1, 2)] == -1.0
        assert np.count_nonzero(A[row(0, 2)]) == 2

    def test_edges_and_corners_are_identity(self):
        A = unit_matrix_2d()
        for i, j in ((0, 0), (5, 0), (0, 5), (5, 5)):
            r = row(i, j)
            assert A[r, r] == 1.0
            assert np.count_nonzero(A[r]) == 1

    def test_three_dimensional_edges(self):
        mesh = RectilinearMeshsize(np.ones(2), np.ones(2), np.ones(2))
        cells = (4, 4, 4)
        A = assemble_pressure_matrix(
            np.zeros(cells, dtype=np.int32),
            wall_kind_array([D] * 6),
            MeshCoefficients.compute(mesh, cells, 3),
            3,
        ).toarray()
        edge = row(0, 0, 2, 4, 4)
        face = row(0, 2, 2, 4, 4)
        assert np.count_nonzero(A[edge]) == 1
        assert A[face, row(1, 2, 2, 4, 4)] == -1.0


class TestObstacleRows:
    """Tests for rows of obstacle cells."""

    def test_fully_surrounded_obstacle(self):
        flags = np.zeros((6, 6, 1), dtype=np.int32)
        flags[2, 2, 0] = 31
        A = unit_matrix_2d(flags=flags)
        r = row(2, 2)
        assert A[r, r] == 1.0
        assert np.count_nonzero(A[r]) == 1

    def test_obstacle_next_to_fluid(self):
        """One unit weight per fluid neighbour, centre minus their count."""
        flags = np.zeros((6, 6, 1), dtype=np.int32)
        flags[2, 2, 0] = 1 | 2
        A = unit_matrix_2d(flags=flags)
        r = row(2, 2)
        assert A[r, r] == -3.0
        assert A[r, row(1, 2)] == 0.0
        assert A[r, row(3, 2)] == 1.0
        assert A[r, row(2, 1)] == 1.0
        assert A[r, row(2, 3)] == 1.0


class TestRightHandSide:
    """Tests for the rhs vector and solution scatter."""

    def test_rhs_order_and_mask(self, rng):
        s = Setup(make_parameters(dim=2, size=[4, 4]))
        field = s.field
        field.rhs[...] = rng.uniform(1.0, 2.0, field.rhs.shape)
        field.flags[3, 4, 0] = 1
        b = assemble_rhs(field)

        assert b.shape == (36,)
        assert b[row(2, 1)] == field.rhs[3, 2, 0]
        assert b[row(2, 3)] == 0.0
        assert b[row(0, 2)] == 0.0
        assert b[row(5, 5)] == 0.0

    def test_scatter_solution(self):
        s = Setup(make_parameters(dim=2, size=[4, 4]))
        field = s.field
        scatter_solution(field, np.arange(36, dtype=float))
        assert field.pressure[1, 1, 0] == 0.0
        assert field.pressure[3, 2, 0] == row(2, 1)
        assert field.pressure[6, 6, 0] == 35.0
        assert np.all(field.pressure[0, :, 0] == 0.0)
