"""Sparse pressure Poisson matrix on a structured, stretched grid.

The matrix covers the inner cells plus one ghost layer per side, i.e. field
indices ``1 .. n+2`` on every axis (a single layer in 2D). Matrix index ``m``
maps to field index ``m + 1``; rows are numbered with x fastest:

    row = i + j * cx + k * cx * cy

Row kinds:

- ghost cells on two or more boundary planes (edges, corners): identity
- ghost cells on exactly one boundary plane: two-point wall row
  (Dirichlet ``[1, -1]``, Neumann ``[0.5, 0.5]``, periodic ``[1, -1]`` against
  the opposite inner cell)
- fluid cells: variable spacing 5/7-point Laplacian
- obstacle cells with fluid neighbours: unit weight per fluid neighbour
- obstacle cells without fluid neighbours: identity
"""

from dataclasses import dataclass

import numpy as np
from numba import njit
from scipy.sparse import csr_matrix

from ..datastructures import BoundaryType
from ..flowfield import ObstacleFlag

_DIRICHLET = BoundaryType.DIRICHLET.value
_NEUMANN = BoundaryType.NEUMANN.value
_PERIODIC = BoundaryType.PERIODIC.value

# Order of the wall kinds array
_LEFT, _RIGHT, _BOTTOM, _TOP, _FRONT, _BACK = range(6)


def matrix_shape(field_cells, dim):
    """Matrix cells per axis for a field with ``field_cells`` cells per axis."""
    cx, cy = field_cells[0] - 1, field_cells[1] - 1
    cz = field_cells[2] - 1 if dim == 3 else 1
    return cx, cy, cz


def matrix_view(array, dim):
    """View of a field array restricted to the cells covered by the matrix."""
    if dim == 3:
        return array[1:, 1:, 1:]
    return array[1:, 1:, :]


@dataclass
class MeshCoefficients:
    """Averaged spacings between each matrix cell and its face neighbours.

    Each attribute is a 1D array over the matrix cells of one axis; the grid is
    rectilinear so the six values of cell ``(i, j, k)`` are
    ``left[i], right[i], bottom[j], top[j], front[k], back[k]``.
    """

    left: np.ndarray
    right: np.ndarray
    bottom: np.ndarray
    top: np.ndarray
    front: np.ndarray
    back: np.ndarray

    @classmethod
    def compute(cls, meshsize, cells, dim):
        """Coefficients for matrix cells ``cells = (cx, cy, cz)``."""
        pairs = []
        for axis in range(3):
            if axis >= dim:
                ones = np.ones(cells[axis])
                pairs.append((ones, ones))
                continue
            field_index = np.arange(cells[axis]) + 1
            h = meshsize.spacing_at(axis, field_index)
            low = 0.5 * (h + meshsize.spacing_at(axis, field_index - 1))
            high = 0.5 * (h + meshsize.spacing_at(axis, field_index + 1))
            pairs.append((low, high))
        (left, right), (bottom, top), (front, back) = pairs
        return cls(left, right, bottom, top, front, back)

    def at(self, i, j, k=0):
        return (
            float(self.left[i]),
            float(self.right[i]),
            float(self.bottom[j]),
            float(self.top[j]),
            float(self.front[k]),
            float(self.back[k]),
        )


def wall_kind_array(boundary_types):
    """Integer kinds ordered left, right, bottom, top, front, back.

    ``boundary_types`` is a sequence of ``BoundaryType``; missing walls (2D)
    default to Dirichlet and are never read.
    """
    kinds = np.full(6, _DIRICHLET, dtype=np.int64)
    for n, kind in enumerate(boundary_types):
        kinds[n] = BoundaryType(kind).value
    return kinds


@njit
def _boundary_planes(i, j, k, cx, cy, cz, dim):
    count = 0
    wall = -1
    if i == 0:
        count += 1
        wall = _LEFT
    if i == cx - 1:
        count += 1
        wall = _RIGHT
    if j == 0:
        count += 1
        wall = _BOTTOM
    if j == cy - 1:
        count += 1
        wall = _TOP
    if dim == 3:
        if k == 0:
            count += 1
            wall = _FRONT
        if k == cz - 1:
            count += 1
            wall = _BACK
    return count, wall


@njit
def _wall_partners(wall, i, j, k, cx, cy, cz):
    """Inward neighbour and periodic partner of a ghost cell on ``wall``."""
    if wall == _LEFT:
        return (i + 1, j, k), (cx - 2, j, k)
    if wall == _RIGHT:
        return (i - 1, j, k), (1, j, k)
    if wall == _BOTTOM:
        return (i, j + 1, k), (i, cy - 2, k)
    if wall == _TOP:
        return (i, j - 1, k), (i, 1, k)
    if wall == _FRONT:
        return (i, j, k + 1), (i, j, cz - 2)
    return (i, j, k - 1), (i, j, 1)


@njit
def _assemble_triplets(flags, wall_kinds, cl, cr, cb, ct, cf, ck, dim):
    cx, cy, cz = flags.shape
    n = cx * cy * cz
    stride_j = cx
    stride_k = cx * cy
    max_nnz = 7 * n
    row = np.zeros(max_nnz, dtype=np.int64)
    col = np.zeros(max_nnz, dtype=np.int64)
    data = np.zeros(max_nnz, dtype=np.float64)
    full = 31 if dim == 2 else 127
    idx = 0

    for k in range(cz):
        for j in range(cy):
            for i in range(cx):
                r = i + j * stride_j + k * stride_k
                planes, wall = _boundary_planes(i, j, k, cx, cy, cz, dim)

                if planes >= 2:
                    row[idx] = r; col[idx] = r; data[idx] = 1.0; idx += 1
                    continue

                if planes == 1:
                    kind = wall_kinds[wall]
                    inner, partner = _wall_partners(wall, i, j, k, cx, cy, cz)
                    if kind == _PERIODIC:
                        other = partner[0] + partner[1] * stride_j + partner[2] * stride_k
                        row[idx] = r; col[idx] = r; data[idx] = 1.0; idx += 1
                        row[idx] = r; col[idx] = other; data[idx] = -1.0; idx += 1
                    else:
                        other = inner[0] + inner[1] * stride_j + inner[2] * stride_k
                        if kind == _NEUMANN:
                            own, off = 0.5, 0.5
                        else:
                            own, off = 1.0, -1.0
                        row[idx] = r; col[idx] = r; data[idx] = own; idx += 1
                        row[idx] = r; col[idx] = other; data[idx] = off; idx += 1
                    continue

                flag = flags[i, j, k]
                if flag & 1:
                    if flag == full:
                        row[idx] = r; col[idx] = r; data[idx] = 1.0; idx += 1
                        continue
                    centre = 0.0
                    if not flag & 2:
                        row[idx] = r; col[idx] = r - 1; data[idx] = 1.0; idx += 1
                        centre -= 1.0
                    if not flag & 4:
                        row[idx] = r; col[idx] = r + 1; data[idx] = 1.0; idx += 1
                        centre -= 1.0
                    if not flag & 8:
                        row[idx] = r; col[idx] = r - stride_j; data[idx] = 1.0; idx += 1
                        centre -= 1.0
                    if not flag & 16:
                        row[idx] = r; col[idx] = r + stride_j; data[idx] = 1.0; idx += 1
                        centre -= 1.0
                    if dim == 3:
                        if not flag & 32:
                            row[idx] = r; col[idx] = r - stride_k; data[idx] = 1.0; idx += 1
                            centre -= 1.0
                        if not flag & 64:
                            row[idx] = r; col[idx] = r + stride_k; data[idx] = 1.0; idx += 1
                            centre -= 1.0
                    row[idx] = r; col[idx] = r; data[idx] = centre; idx += 1
                    continue

                # Fluid cell
                dxl, dxr = cl[i], cr[i]
                dyb, dyt = cb[j], ct[j]
                w_left = 2.0 / (dxl * (dxl + dxr))
                w_right = 2.0 / (dxr * (dxl + dxr))
                w_bottom = 2.0 / (dyb * (dyb + dyt))
                w_top = 2.0 / (dyt * (dyb + dyt))
                centre = -(2.0 / (dxl * dxr) + 2.0 / (dyb * dyt))
                row[idx] = r; col[idx] = r - 1; data[idx] = w_left; idx += 1
                row[idx] = r; col[idx] = r + 1; data[idx] = w_right; idx += 1
                row[idx] = r; col[idx] = r - stride_j; data[idx] = w_bottom; idx += 1
                row[idx] = r; col[idx] = r + stride_j; data[idx] = w_top; idx += 1
                if dim == 3:
                    dzf, dzb = cf[k], ck[k]
                    row[idx] = r; col[idx] = r - stride_k; data[idx] = 2.0 / (dzf * (dzf + dzb)); idx += 1
                    row[idx] = r; col[idx] = r + stride_k; data[idx] = 2.0 / (dzb * (dzf + dzb)); idx += 1
                    centre -= 2.0 / (dzf * dzb)
                row[idx] = r; col[idx] = r; data[idx] = centre; idx += 1

    return row[:idx], col[:idx], data[:idx]


def assemble_pressure_matrix(flags, wall_kinds, coefficients, dim):
    """Assemble the pressure matrix in CSR format.

    Parameters
    ----------
    flags : np.ndarray
        Obstacle flags of the matrix cells, shape ``(cx, cy, cz)`` (see
        ``matrix_view``).
    wall_kinds : np.ndarray
        Boundary kind per wall from ``wall_kind_array``.
    coefficients : MeshCoefficients
        Averaged spacings of the matrix cells.
    dim : int
        2 or 3.

    Returns
    -------
    csr_matrix
        Square matrix of size ``cx * cy * cz``.
    """
    c = coefficients
    row, col, data = _assemble_triplets(
        np.ascontiguousarray(flags, dtype=np.int32),
        np.asarray(wall_kinds, dtype=np.int64),
        c.left,
        c.right,
        c.bottom,
        c.top,
        c.front,
        c.back,
        dim,
    )
    n = flags.size
    return csr_matrix((data, (row, col)), shape=(n, n))


def rhs_mask(flags, dim):
    """True for rows that carry the field right-hand side (inner fluid cells)."""
    mask = (flags & int(ObstacleFlag.SELF)) == 0
    mask[0, :, :] = False
    mask[-1, :, :] = False
    mask[:, 0, :] = False
    mask[:, -1, :] = False
    if dim == 3:
        mask[:, :, 0] = False
        mask[:, :, -1] = False
    return mask


def assemble_rhs(field):
    """Right-hand side vector matching ``assemble_pressure_matrix`` row order."""
    flags = matrix_view(field.flags, field.dim)
    rhs = np.where(rhs_mask(flags, field.dim), matrix_view(field.rhs, field.dim), 0.0)
    return rhs.ravel(order="F")


def scatter_solution(field, x):
    """Write the solution vector into ``field.pressure`` on all matrix cells."""
    view = matrix_view(field.pressure, field.dim)
    view[...] = np.asarray(x).reshape(view.shape, order="F")
