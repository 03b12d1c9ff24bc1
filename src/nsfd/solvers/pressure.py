"""Pressure Poisson step: right-hand side, linear solve and projection.

The pressure solver owns the assembled matrix and keeps an adaptive
iteration budget for the iterative backend. Non-convergence is reported
through ``SolveInfo`` and a log warning; it never raises.

A decomposed domain is solved on rank 0: ``GatheredPressureSolver`` collects
the right-hand side of every rank, solves the Poisson system of the whole
grid and hands each rank the pressure of its local cells, ghosts included.
"""

import copy
import logging

import numpy as np

from ..assembly import (
    MeshCoefficients,
    assemble_pressure_matrix,
    assemble_rhs,
    matrix_shape,
    matrix_view,
    rhs_mask,
    scatter_solution,
    wall_kind_array,
)
from ..datastructures import BoundaryType, ProcessIdentity
from ..errors import ConfigurationError
from ..flowfield import FlowField, build_flags
from ..linear_solvers import get_linear_solver
from ..meshing import create_meshsize
from ..parallel import Decomposition

log = logging.getLogger(__name__)

_WALL_ORDER = ("left", "right", "bottom", "top", "front", "back")


def compute_pressure_rhs(field, spacing, dt):
    """Divergence of FGH divided by ``dt`` on every inner cell.

    ``spacing`` is the ``(dx, dy, dz)`` tuple from ``Meshsize.spacing_arrays``.
    """
    sx, sy, sz = field.inner_slice()
    fgh = field.fgh
    dx, dy, dz = spacing
    lx = slice(sx.start - 1, sx.stop - 1)
    ly = slice(sy.start - 1, sy.stop - 1)
    div = (fgh[sx, sy, sz, 0] - fgh[lx, sy, sz, 0]) / dx[sx, sy, sz]
    div += (fgh[sx, sy, sz, 1] - fgh[sx, ly, sz, 1]) / dy[sx, sy, sz]
    if field.dim == 3:
        lz = slice(sz.start - 1, sz.stop - 1)
        div += (fgh[sx, sy, sz, 2] - fgh[sx, sy, lz, 2]) / dz[sx, sy, sz]
    field.rhs[sx, sy, sz] = div / dt
    return field.rhs


def update_velocity(field, spacing, dt):
    """Project FGH onto a divergence free velocity using the new pressure.

    Only faces between two fluid cells are updated:

        u = F - dt / dx_long * (p[i+1] - p[i])

    with ``dx_long`` the distance between the two cell centres.
    """
    sx, sy, sz = field.inner_slice()
    p = field.pressure
    fluid = (field.flags[sx, sy, sz] & 1) == 0
    neighbours = ((4, 0), (16, 1), (64, 2))[: field.dim]
    for bit, axis in neighbours:
        shift = [sx, sy, sz]
        shift[axis] = slice(shift[axis].start + 1, shift[axis].stop + 1)
        shift = tuple(shift)
        h = spacing[axis]
        h_long = 0.5 * (h[sx, sy, sz] + h[shift])
        update = fluid & ((field.flags[sx, sy, sz] & bit) == 0)
        value = field.fgh[sx, sy, sz, axis] - dt / h_long * (p[shift] - p[sx, sy, sz])
        target = field.velocity[sx, sy, sz, axis]
        field.velocity[sx, sy, sz, axis] = np.where(update, value, target)


class PressureSolver:
    """Assembles and solves the pressure Poisson equation of one process.

    Without a Neumann (outflow) wall the pressure is only defined up to a
    constant and the matrix is singular. The right-hand side is then
    projected so that the system stays consistent: its component along the
    left null vector, the dual cell volume on the inner fluid rows, is
    removed before every solve.

    Parameters
    ----------
    parameters : Parameters
        Wall kinds, solver backend and iteration budget settings.
    meshsize : Meshsize
        Spacing provider used for the matrix coefficients.
    field : FlowField
        Field whose flags define the matrix and whose pressure is solved for.
    identity : ProcessIdentity
        Only a single process is supported; decomposed domains go through
        ``GatheredPressureSolver``.
    """

    def __init__(self, parameters, meshsize, field, identity):
        if identity.size > 1:
            raise ConfigurationError(
                f"The pressure solver runs on a single process, got {identity.size} processes"
            )
        self.parameters = parameters
        self.meshsize = meshsize
        self.dim = parameters.dim
        self.settings = parameters.solver
        self.solve_fn = get_linear_solver(self.settings.linear_solver)
        self.cells = matrix_shape(field.cells, self.dim)
        self.init_matrix(field)
        self.current_iterations = int(self.settings.initial_iterations)
        self.last_info = None

    def init_matrix(self, field):
        """Assemble the matrix from the flags and boundary kinds."""
        self.coefficients = MeshCoefficients.compute(self.meshsize, self.cells, self.dim)
        walls = self.parameters.walls
        types = [getattr(walls, name).type for name in _WALL_ORDER[: 2 * self.dim]]
        flags = matrix_view(field.flags, self.dim)
        self.matrix = assemble_pressure_matrix(flags, wall_kind_array(types), self.coefficients, self.dim)
        self.nullspace_weights = None
        if BoundaryType.NEUMANN not in types:
            self.nullspace_weights = self._dual_volumes(flags)
        log.debug(f"Pressure matrix {self.matrix.shape[0]} rows, {self.matrix.nnz} non-zeros")

    def _dual_volumes(self, flags):
        c = self.coefficients
        volume = (
            (0.5 * (c.left + c.right))[:, None, None]
            * (0.5 * (c.bottom + c.top))[None, :, None]
            * (0.5 * (c.front + c.back))[None, None, :]
        )
        return np.where(rhs_mask(flags, self.dim), volume, 0.0).ravel(order="F")

    def reinit_matrix(self, field):
        """Reassemble after flags or mesh geometry changed."""
        self.cells = matrix_shape(field.cells, self.dim)
        self.init_matrix(field)

    def project_rhs(self, b):
        """Remove the part of ``b`` a singular pressure system cannot represent.

        A constant is subtracted from the inner fluid rows so that ``b`` is
        orthogonal to the dual cell volumes. ``b`` is returned unchanged when
        the matrix is regular.
        """
        w = self.nullspace_weights
        if w is None:
            return b
        total = w.sum()
        if total == 0:
            return b
        return b - (w @ b) / total * (w > 0)

    def solve(self, field):
        """Solve for the pressure and write it into ``field.pressure``.

        Returns
        -------
        SolveInfo
            Iterations and estimated error of the solve.
        """
        b = self.project_rhs(assemble_rhs(field))
        x0 = matrix_view(field.pressure, self.dim).ravel(order="F")
        x, info = self.solve_fn(
            self.matrix,
            b,
            x0=x0,
            tolerance=self.settings.tolerance,
            max_iterations=self.current_iterations,
        )
        scatter_solution(field, x)
        log.info(f"# of iterations: {info.iterations}, estimated error: {info.error:.3e}")
        self.last_info = info
        self._update_iteration_budget(info.error)
        return info

    def _update_iteration_budget(self, error):
        direction = -1 if error < self.settings.lower_error_threshold else 1
        step = direction * int(self.current_iterations * self.settings.iteration_step)
        self.current_iterations = int(
            np.clip(self.current_iterations + step, self.settings.min_iterations, self.settings.max_iterations)
        )
        return self.current_iterations


def _global_block(first_corner, lengths, offset):
    """Slices of the whole-grid arrays covering a local block of ``lengths`` cells."""
    block = [slice(c + offset, c + offset + n) for c, n in zip(first_corner, lengths)]
    if len(block) == 2:
        block.append(slice(0, 1))
    return tuple(block)


class GatheredPressureSolver:
    """Pressure solve of a decomposed domain, carried out on rank 0.

    Rank 0 holds a ``PressureSolver`` for the whole grid together with a
    whole-grid field that keeps the pressure between steps as warm start.
    Every ``solve`` is collective: each rank sends its inner right-hand side
    to rank 0 and receives the pressure of all its local cells. Because the
    ghost layers come from the whole-grid solution they already hold the
    neighbours' values.

    Parameters
    ----------
    parameters : Parameters
        Configuration of the decomposed run.
    decomposition : Decomposition
        Subdomain of this rank.
    comm : mpi4py.MPI.Comm, optional
        Communicator; defaults to ``MPI.COMM_WORLD``.
    """

    root = 0

    def __init__(self, parameters, decomposition, comm=None):
        if comm is None:
            from mpi4py import MPI

            comm = MPI.COMM_WORLD
        self.comm = comm
        self.decomposition = decomposition
        self.dim = parameters.dim
        self.solver = None
        self.field = None
        if decomposition.rank == self.root:
            whole = copy.deepcopy(parameters)
            whole.parallel.num_processors = [1, 1, 1]
            serial = ProcessIdentity.serial()
            whole_decomposition = Decomposition.create(whole, serial)
            meshsize = create_meshsize(whole, whole_decomposition)
            self.field = FlowField(whole, whole_decomposition)
            build_flags(whole, self.field, meshsize)
            self.solver = PressureSolver(whole, meshsize, self.field, serial)
            log.info(f"Pressure of {decomposition.num_processors} subdomains is solved on rank {self.root}")

    @property
    def last_info(self):
        return self.solver.last_info if self.solver is not None else None

    def solve(self, field):
        """Collective solve; writes the local pressure, ghosts included, into ``field``.

        Returns
        -------
        SolveInfo
            Outcome of the whole-grid solve, identical on every rank.
        """
        corner = self.decomposition.first_corner
        local = (field.local_size, field.cells[: self.dim], field.rhs[field.inner_slice()].copy())
        blocks = self.comm.gather((corner,) + local, root=self.root)

        pieces = None
        if self.solver is not None:
            for first_corner, local_size, _, rhs in blocks:
                self.field.rhs[_global_block(first_corner, local_size, 2)] = rhs
            info = self.solver.solve(self.field)
            pieces = [
                (self.field.pressure[_global_block(first_corner, cells, 0)].copy(), info)
                for first_corner, _, cells, _ in blocks
            ]

        pressure, info = self.comm.scatter(pieces, root=self.root)
        field.pressure[...] = pressure
        return info


def create_pressure_solver(parameters, meshsize, field, decomposition, identity, comm=None):
    """Matrix solve of the local field for one process, gathered on rank 0 otherwise."""
    if identity.size == 1:
        return PressureSolver(parameters, meshsize, field, identity)
    return GatheredPressureSolver(parameters, decomposition, comm=comm)
