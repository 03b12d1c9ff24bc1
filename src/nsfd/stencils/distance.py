"""Distance of every cell to the nearest wall.

Only faces without a neighbouring process count as walls; the "channel"
scenario has open left/right boundaries. Distances are measured in local
cell indices scaled by the spacing of the cell itself. The backward-facing
step adds its top and front edges as walls.
"""

import math

import numpy as np

from ..flowfield import has_step
from ..parallel.decomposition import NO_NEIGHBOR


def axis_distance(idx, cell_size, size, first_wall, second_wall):
    """Distance along one axis to the nearer of the (existing) low/high walls."""
    idx = np.asarray(idx, dtype=np.float64)
    first = idx
    second = size - idx
    if first_wall and second_wall:
        closest = np.where(idx <= size / 2, first, second)
        return np.abs(closest * cell_size)
    if first_wall:
        return np.abs(first * cell_size)
    if second_wall:
        return np.abs(second * cell_size)
    return np.full(np.broadcast(idx, cell_size).shape, np.inf)


class DistanceStencil:
    """Wall distance field.

    Parameters
    ----------
    parameters : Parameters
        Scenario name, dimension and step ratios.
    decomposition : Decomposition
        Decides which faces are walls.
    meshsize : Meshsize
        Spacing of each cell.
    cells : tuple of int
        Local field extents (including ghost layers) used as domain size.
    """

    def __init__(self, parameters, decomposition, meshsize, cells):
        self.dim = parameters.dim
        self.meshsize = meshsize
        self.cells = tuple(cells)
        channel = parameters.simulation.scenario == "channel"
        self.walls = []
        for axis in range(self.dim):
            low = decomposition.face_neighbor(axis, -1) == NO_NEIGHBOR
            high = decomposition.face_neighbor(axis, 1) == NO_NEIGHBOR
            if axis == 0 and channel:
                low = high = False
            self.walls.append((low, high))
        self.step_x = self.step_y = 0
        if has_step(parameters):
            step = parameters.bfstep
            self.step_x = math.ceil(self.cells[0] * step.x_ratio)
            self.step_y = math.ceil(self.cells[1] * step.y_ratio)

    def _spacing(self, axis):
        return self.meshsize.local_spacing(axis, self.cells[axis])

    def _distance(self, i, j, k, dx, dy, dz):
        dist = np.minimum(
            axis_distance(i, dx, self.cells[0], *self.walls[0]),
            axis_distance(j, dy, self.cells[1], *self.walls[1]),
        )
        if self.dim == 3:
            dist = np.minimum(dist, axis_distance(k, dz, self.cells[2], *self.walls[2]))
        if self.step_x * self.step_y != 0:
            dist = np.minimum(dist, self._step_distance(i, j, dx, dy))
        return np.abs(dist)

    def _step_distance(self, i, j, dx, dy):
        i = np.asarray(i, dtype=np.float64)[..., None]
        j = np.asarray(j, dtype=np.float64)[..., None]
        dx = np.asarray(dx)[..., None]
        dy = np.asarray(dy)[..., None]
        xs = np.arange(self.step_x + 1)
        ys = np.arange(self.step_y + 1)
        # Upper edge of the step, then its front face
        top = np.hypot((i - xs) * dx, (j - self.step_y) * dy).min(axis=-1)
        front = np.hypot((i - self.step_x) * dx, (j - ys) * dy).min(axis=-1)
        return np.minimum(top, front)

    def apply(self, field, i, j, k=0):
        """Compute and store the distance of a single cell."""
        if field.flags[i, j, k] & 1:
            field.distance[i, j, k] = 0.0
            return 0.0
        value = float(
            self._distance(
                i, j, k,
                self.meshsize.get_dx(i, j, k),
                self.meshsize.get_dy(i, j, k),
                self.meshsize.get_dz(i, j, k),
            )
        )
        field.distance[i, j, k] = value
        return value

    def compute_wall_distance(self, field):
        """Fill ``field.distance`` for every cell, ghost layers included."""
        cx, cy, cz = field.cells
        i, j, k = np.meshgrid(np.arange(cx), np.arange(cy), np.arange(cz), indexing="ij")
        dx = self._spacing(0)[:, None, None]
        dy = self._spacing(1)[None, :, None]
        dz = self._spacing(2)[None, None, :] if self.dim == 3 else 1.0
        dx, dy = np.broadcast_arrays(dx, dy, i)[:2]
        dist = self._distance(i, j, k, dx, dy, dz)
        dist[(field.flags & 1) != 0] = 0.0
        field.distance[...] = dist
        return field.distance
