"""Mesh spacing providers.

A provider answers ``get_dx/get_dy/get_dz(i, j, k)`` for local field indices.
The flow field carries two ghost layers on the low side of every axis, so the
local index ``i`` maps to the global cell ``first_corner + i - 2``. Indices
outside the global grid are clamped to the first/last spacing, which makes
every provider queryable one (or more) cells outside the domain.
"""

import numpy as np

from ..errors import ConfigurationError

GHOST_OFFSET = 2


class Meshsize:
    """Rectilinear spacing held as one global array per axis."""

    def __init__(self, spacing, first_corner):
        self.dim = len(first_corner)
        self.first_corner = tuple(first_corner) + (0,) * (3 - len(first_corner))
        spacing = [np.asarray(s, dtype=np.float64) for s in spacing]
        if len(spacing) == 2:
            spacing.append(np.ones(1))
        self.spacing = spacing

    def _lookup(self, axis, index):
        s = self.spacing[axis]
        g = self.first_corner[axis] + index - GHOST_OFFSET
        return float(s[min(max(g, 0), len(s) - 1)])

    def get_dx(self, i, j, k=0):
        return self._lookup(0, i)

    def get_dy(self, i, j, k=0):
        return self._lookup(1, j)

    def get_dz(self, i, j, k=0):
        if self.dim == 2:
            return float(self.spacing[2][0])
        return self._lookup(2, k)

    def local_spacing(self, axis, cells):
        """Spacing for local indices ``0 .. cells-1`` along ``axis``."""
        return self.spacing_at(axis, np.arange(cells))

    def spacing_at(self, axis, indices):
        """Spacing for arbitrary (possibly out of range) local indices along ``axis``."""
        s = self.spacing[axis]
        indices = np.asarray(indices)
        if axis >= self.dim:
            return np.full(indices.shape, s[0])
        g = self.first_corner[axis] + indices - GHOST_OFFSET
        return s[np.clip(g, 0, len(s) - 1)]

    def spacing_arrays(self, cells):
        """Dense ``(cx, cy, cz)`` arrays of dx, dy and dz for the numba kernels."""
        lx = self.local_spacing(0, cells[0])
        ly = self.local_spacing(1, cells[1])
        lz = self.local_spacing(2, cells[2])
        shape = tuple(cells)
        dx = np.ascontiguousarray(np.broadcast_to(lx[:, None, None], shape))
        dy = np.ascontiguousarray(np.broadcast_to(ly[None, :, None], shape))
        dz = np.ascontiguousarray(np.broadcast_to(lz[None, None, :], shape))
        return dx, dy, dz

    def edges(self, axis, local_size):
        """Physical coordinates of the cell faces of the inner cells along ``axis``."""
        s = self.spacing[axis]
        start = self.first_corner[axis]
        origin = float(np.sum(s[:start]))
        return origin + np.concatenate([[0.0], np.cumsum(s[start : start + local_size])])

    def min_spacing(self, axis):
        return float(np.min(self.spacing[axis]))


class UniformMeshsize(Meshsize):
    def __init__(self, parameters, decomposition):
        geometry = parameters.geometry
        spacing = [
            np.full(geometry.size[a], geometry.length[a] / geometry.size[a])
            for a in range(parameters.dim)
        ]
        super().__init__(spacing, decomposition.first_corner)


def tanh_coordinates(length, cells, delta=2.1):
    """Face coordinates clustered towards both ends of ``[0, length]``."""
    eta = np.linspace(-1.0, 1.0, cells + 1)
    return 0.5 * length * (1.0 + np.tanh(delta * eta) / np.tanh(delta))


class TanhStretchedMeshsize(Meshsize):
    """Tanh stretching towards the walls on every axis flagged in ``geometry.stretch``."""

    def __init__(self, parameters, decomposition, delta=2.1):
        geometry = parameters.geometry
        spacing = []
        for a in range(parameters.dim):
            n, length = geometry.size[a], geometry.length[a]
            if geometry.stretch[a]:
                spacing.append(np.diff(tanh_coordinates(length, n, delta)))
            else:
                spacing.append(np.full(n, length / n))
        self.delta = delta
        super().__init__(spacing, decomposition.first_corner)


class RectilinearMeshsize(Meshsize):
    """Explicit per-axis spacing arrays, e.g. for user supplied grids."""

    def __init__(self, dx, dy, dz=None, first_corner=None):
        spacing = [dx, dy] if dz is None else [dx, dy, dz]
        if first_corner is None:
            first_corner = (0,) * len(spacing)
        super().__init__(spacing, first_corner)


def create_meshsize(parameters, decomposition) -> Meshsize:
    mesh = parameters.geometry.mesh
    if mesh == "uniform":
        return UniformMeshsize(parameters, decomposition)
    if mesh == "stretched":
        return TanhStretchedMeshsize(parameters, decomposition)
    raise ConfigurationError(f"Unknown mesh kind '{mesh}'")
