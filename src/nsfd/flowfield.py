"""Flow field storage and obstacle flags.

All arrays are stored 3D, with a single z layer in 2D. Per axis the field
holds two ghost layers on the low side and one on the high side, so inner
cells run over ``2 .. n+1``. Velocity components live on the right/top/back
face of their cell.
"""

import enum

import numpy as np


class ObstacleFlag(enum.IntFlag):
    """Per-cell obstacle bits: the cell itself and its six face neighbours."""

    SELF = 1
    LEFT = 2
    RIGHT = 4
    BOTTOM = 8
    TOP = 16
    FRONT = 32
    BACK = 64

    @staticmethod
    def fully_surrounded(dim: int) -> int:
        """Mask of an obstacle cell whose face neighbours are all obstacles."""
        return 31 if dim == 2 else 127


class Wall(enum.Enum):
    """Domain wall as (axis, side), side -1 for the low and +1 for the high face."""

    LEFT = (0, -1)
    RIGHT = (0, 1)
    BOTTOM = (1, -1)
    TOP = (1, 1)
    FRONT = (2, -1)
    BACK = (2, 1)

    @property
    def axis(self) -> int:
        return self.value[0]

    @property
    def side(self) -> int:
        return self.value[1]

    @property
    def is_low(self) -> bool:
        return self.side < 0

    @classmethod
    def for_dim(cls, dim):
        return [w for w in cls if w.axis < dim]


def is_fluid(flag) -> bool:
    return not (int(flag) & ObstacleFlag.SELF)


def is_face_fluid(flag, wall) -> bool:
    """True if the neighbour across ``wall`` (a ``Wall`` or its name) is fluid."""
    name = wall if isinstance(wall, str) else wall.name
    return not (int(flag) & ObstacleFlag[name.upper()])


class FlowField:
    """Velocity, FGH, pressure, RHS, eddy viscosity, wall distance and flags."""

    def __init__(self, parameters, decomposition):
        self.dim = parameters.dim
        local = decomposition.local_size
        self.nx = local[0]
        self.ny = local[1]
        self.nz = local[2] if self.dim == 3 else 1
        self.cells = (
            self.nx + 3,
            self.ny + 3,
            self.nz + 3 if self.dim == 3 else 1,
        )
        self.velocity = np.zeros(self.cells + (3,))
        self.fgh = np.zeros(self.cells + (3,))
        self.pressure = np.zeros(self.cells)
        self.rhs = np.zeros(self.cells)
        self.eddy_viscosity = np.zeros(self.cells)
        self.distance = np.zeros(self.cells)
        self.flags = np.zeros(self.cells, dtype=np.int32)

    @property
    def local_size(self):
        return (self.nx, self.ny, self.nz)[: self.dim]

    def inner_range(self, axis):
        if axis == 2 and self.dim == 2:
            return range(0, 1)
        n = (self.nx, self.ny, self.nz)[axis]
        return range(2, n + 2)

    def inner_slice(self):
        return tuple(slice(r.start, r.stop) for r in (self.inner_range(a) for a in range(3)))

    def pressure_and_velocity(self, i, j, k=0):
        """Pressure and cell-centred velocity of cell ``(i, j, k)``."""
        vel = self.velocity
        u = 0.5 * (vel[i, j, k, 0] + vel[i - 1, j, k, 0])
        v = 0.5 * (vel[i, j, k, 1] + vel[i, j - 1, k, 1])
        w = 0.5 * (vel[i, j, k, 2] + vel[i, j, k - 1, 2]) if self.dim == 3 else 0.0
        return self.pressure[i, j, k], np.array([u, v, w])

    def cell_centred_velocity(self):
        """Velocity interpolated to the centres of the inner cells, shape ``(nx, ny, nz, 3)``."""
        sx, sy, sz = self.inner_slice()
        vel = self.velocity
        centred = np.zeros((self.nx, self.ny, self.nz, 3))
        centred[..., 0] = 0.5 * (vel[sx, sy, sz, 0] + vel[sx.start - 1 : sx.stop - 1, sy, sz, 0])
        centred[..., 1] = 0.5 * (vel[sx, sy, sz, 1] + vel[sx, sy.start - 1 : sy.stop - 1, sz, 1])
        if self.dim == 3:
            centred[..., 2] = 0.5 * (vel[sx, sy, sz, 2] + vel[sx, sy, sz.start - 1 : sz.stop - 1, 2])
        return centred

    def max_velocity(self):
        """Largest absolute value of each velocity component over the inner cells."""
        inner = self.velocity[self.inner_slice()]
        return np.abs(inner).reshape(-1, 3).max(axis=0)


def cell_centres(meshsize, axis, cells):
    """Physical centre coordinate of every local index ``0 .. cells-1`` along ``axis``."""
    s = meshsize.local_spacing(axis, cells)
    faces = np.concatenate([[0.0], np.cumsum(s)])
    start = meshsize.first_corner[axis]
    origin = float(np.sum(meshsize.spacing[axis][:start]))
    ghost = faces[2] if cells > 2 else 0.0
    return origin + faces[:-1] - ghost + 0.5 * s


def has_step(parameters) -> bool:
    """True when the run carries a backward-facing step obstacle."""
    step = parameters.bfstep
    return parameters.simulation.scenario == "step" and step.x_ratio * step.y_ratio > 0


def build_flags(parameters, field, meshsize):
    """Mark obstacle cells and set the face-neighbour bits of every cell.

    The only obstacle geometry is the backward-facing step of the ``step``
    scenario: cells whose centre lies below ``y_ratio * length_y`` and left of
    ``x_ratio * length_x`` are solid. Neighbours outside the local array count
    as fluid.
    """
    flags = field.flags
    flags[...] = 0

    if has_step(parameters):
        step = parameters.bfstep
        length = parameters.geometry.length
        xc = cell_centres(meshsize, 0, field.cells[0])
        yc = cell_centres(meshsize, 1, field.cells[1])
        solid = (xc[:, None] < step.x_ratio * length[0]) & (yc[None, :] < step.y_ratio * length[1])
        flags[solid] = ObstacleFlag.SELF

    solid = (flags & ObstacleFlag.SELF) != 0
    neighbour_bits = [
        (0, -1, ObstacleFlag.LEFT),
        (0, 1, ObstacleFlag.RIGHT),
        (1, -1, ObstacleFlag.BOTTOM),
        (1, 1, ObstacleFlag.TOP),
    ]
    if field.dim == 3:
        neighbour_bits += [(2, -1, ObstacleFlag.FRONT), (2, 1, ObstacleFlag.BACK)]

    for axis, side, bit in neighbour_bits:
        shifted = np.zeros_like(solid)
        n = solid.shape[axis]
        dst = [slice(None)] * 3
        src = [slice(None)] * 3
        if side < 0:
            dst[axis], src[axis] = slice(1, n), slice(0, n - 1)
        else:
            dst[axis], src[axis] = slice(0, n - 1), slice(1, n)
        shifted[tuple(dst)] = solid[tuple(src)]
        flags[shifted] |= np.int32(bit)
    return flags
