"""Velocity and FGH boundary conditions on the domain walls.

Each boundary kind is a plain function taking the field, the ``Wall`` and
the wall velocity. ``BOUNDARY_STENCILS`` maps ``(kind, wall)`` to the
function for the velocity and for the FGH pass; ``BoundaryConditions`` picks
the entries of the walls this process actually owns (no neighbour process
behind them).
"""

import functools
import logging

import numpy as np

from ..datastructures import BoundaryType
from ..flowfield import Wall
from ..parallel.decomposition import NO_NEIGHBOR

log = logging.getLogger(__name__)


def _at(axis, position, component):
    index = [slice(None), slice(None), slice(None), component]
    index[axis] = position
    return tuple(index)


def _size(field, axis):
    return (field.nx, field.ny, field.nz)[axis]


def _tangential(field, axis):
    return [c for c in range(field.dim) if c != axis]


# ========================================================
# Velocity
# ========================================================


def moving_wall_velocity(field, wall, wall_velocity):
    """No-slip wall moving with ``wall_velocity``.

    The normal component is set on the wall face; tangential components are
    mirrored into the ghost cell so that their average on the wall matches.
    """
    a, n, vel = wall.axis, _size(field, wall.axis), field.velocity
    face, ghost, inner = (1, 1, 2) if wall.is_low else (n + 1, n + 2, n + 1)
    vel[_at(a, face, a)] = wall_velocity[a]
    for c in _tangential(field, a):
        vel[_at(a, ghost, c)] = 2.0 * wall_velocity[c] - vel[_at(a, inner, c)]


def outflow_velocity(field, wall, wall_velocity=None):
    """Zero normal gradient for every component."""
    a, n, vel = wall.axis, _size(field, wall.axis), field.velocity
    if wall.is_low:
        vel[_at(a, 1, a)] = vel[_at(a, 2, a)]
        ghost, inner = 1, 2
    else:
        vel[_at(a, n + 1, a)] = vel[_at(a, n, a)]
        ghost, inner = n + 2, n + 1
    for c in _tangential(field, a):
        vel[_at(a, ghost, c)] = vel[_at(a, inner, c)]


def periodic_velocity(field, wall, wall_velocity=None):
    """Copy from the opposite side of the local domain.

    The low boundary face ``1`` and the high one ``n+1`` are the same face.
    """
    a, n, vel = wall.axis, _size(field, wall.axis), field.velocity
    if wall.is_low:
        vel[_at(a, 0, a)] = vel[_at(a, n, a)]
        for c in range(field.dim):
            vel[_at(a, 1, c)] = vel[_at(a, n + 1, c)]
    else:
        for c in range(field.dim):
            vel[_at(a, n + 2, c)] = vel[_at(a, 2, c)]


# ========================================================
# FGH
# ========================================================


def moving_wall_fgh(field, wall, wall_velocity):
    a, n = wall.axis, _size(field, wall.axis)
    face = 1 if wall.is_low else n + 1
    field.fgh[_at(a, face, a)] = wall_velocity[a]


def outflow_fgh(field, wall, wall_velocity=None):
    a, n = wall.axis, _size(field, wall.axis)
    face = 1 if wall.is_low else n + 1
    field.fgh[_at(a, face, a)] = field.velocity[_at(a, face, a)]


def periodic_fgh(field, wall, wall_velocity=None):
    """The low boundary face takes the value computed on the high one."""
    if wall.is_low:
        a, n = wall.axis, _size(field, wall.axis)
        field.fgh[_at(a, 1, a)] = field.fgh[_at(a, n + 1, a)]


_VELOCITY = {
    BoundaryType.DIRICHLET: moving_wall_velocity,
    BoundaryType.NEUMANN: outflow_velocity,
    BoundaryType.PERIODIC: periodic_velocity,
}

_FGH = {
    BoundaryType.DIRICHLET: moving_wall_fgh,
    BoundaryType.NEUMANN: outflow_fgh,
    BoundaryType.PERIODIC: periodic_fgh,
}

BOUNDARY_STENCILS = {
    (kind, wall): (
        functools.partial(_VELOCITY[kind], wall=wall),
        functools.partial(_FGH[kind], wall=wall),
    )
    for kind in BoundaryType
    for wall in Wall
}


class BoundaryConditions:
    """Applies the configured boundary kind on every wall owned by this process."""

    def __init__(self, parameters, decomposition):
        self.dim = parameters.dim
        self.walls = [
            w for w in Wall.for_dim(self.dim)
            if decomposition.face_neighbor(w.axis, w.side) == NO_NEIGHBOR
        ]
        self.conditions = {w: getattr(parameters.walls, w.name.lower()) for w in Wall.for_dim(self.dim)}
        self._velocity_stencils = []
        self._fgh_stencils = []
        for wall in self.walls:
            condition = self.conditions[wall]
            wall_velocity = np.asarray(condition.velocity, dtype=np.float64)
            apply_velocity, apply_fgh = BOUNDARY_STENCILS[(condition.type, wall)]
            self._velocity_stencils.append((apply_velocity, wall_velocity))
            self._fgh_stencils.append((apply_fgh, wall_velocity))
        log.debug(f"Boundary walls: {[(w.name, self.conditions[w].type.name) for w in self.walls]}")

    def kind(self, wall) -> BoundaryType:
        return self.conditions[wall].type

    def apply_velocity(self, field):
        for stencil, wall_velocity in self._velocity_stencils:
            stencil(field, wall_velocity=wall_velocity)

    def apply_fgh(self, field):
        for stencil, wall_velocity in self._fgh_stencils:
            stencil(field, wall_velocity=wall_velocity)
