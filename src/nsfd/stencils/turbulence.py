"""Mixing-length eddy viscosity.

    l_m  = min(kappa * d, 0.09 * delta99)
    nu_t = l_m^2 * sqrt(S2 / 2)

with ``d`` the wall distance and ``S2`` the squared strain rate of the cell.
"""

import numpy as np
from numba import njit, prange

from .derivatives import strain_rate_squared_2d, strain_rate_squared_3d
from .indexing import (
    load_local_meshsize_2d,
    load_local_meshsize_3d,
    load_local_velocity_2d,
    load_local_velocity_3d,
)


@njit
def mixing_length(distance, kappa, delta99):
    return min(kappa * distance, 0.09 * delta99)


@njit(parallel=True)
def _eddy_viscosity_sweep(velocity, distance, flags, eddy, dx, dy, dz, nx, ny, nz, dim, kappa, delta99):
    k_lo = 2 if dim == 3 else 0
    k_hi = nz + 2 if dim == 3 else 1
    for i in prange(2, nx + 2):
        lv = np.zeros(81)
        lm = np.ones(81)
        for j in range(2, ny + 2):
            for k in range(k_lo, k_hi):
                if flags[i, j, k] & 1:
                    eddy[i, j, k] = 0.0
                    continue
                if dim == 3:
                    load_local_velocity_3d(velocity, lv, i, j, k)
                    load_local_meshsize_3d(dx, dy, dz, lm, i, j, k)
                    s2 = strain_rate_squared_3d(lv, lm)
                else:
                    load_local_velocity_2d(velocity, lv, i, j)
                    load_local_meshsize_2d(dx, dy, lm, i, j)
                    s2 = strain_rate_squared_2d(lv, lm)
                lmix = mixing_length(distance[i, j, k], kappa, delta99)
                eddy[i, j, k] = lmix * lmix * np.sqrt(0.5 * s2)


def compute_eddy_viscosity(field, parameters, spacing):
    """Fill ``field.eddy_viscosity`` on the inner cells from the current velocity.

    ``field.distance`` must already hold the wall distance. Does nothing
    unless turbulence is switched on.
    """
    turbulence = parameters.turbulence
    if not turbulence.on:
        return
    dx, dy, dz = spacing
    _eddy_viscosity_sweep(
        field.velocity,
        field.distance,
        field.flags,
        field.eddy_viscosity,
        dx,
        dy,
        dz,
        field.nx,
        field.ny,
        field.nz,
        field.dim,
        float(turbulence.kappa),
        float(turbulence.delta99),
    )
