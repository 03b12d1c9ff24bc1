"""Momentum predictor F, G, H.

Explicit Euler step of the momentum equations without the pressure gradient:

    F = u + dt * (1/Re * lap(u) - d(u^2)/dx - d(uv)/dy - d(uw)/dz + gx)

and the analogous G and H. With turbulence enabled, the Laplacian is
replaced by the divergence of the viscous stress built from the total
viscosity field.
"""

import logging

import numpy as np
from numba import njit, prange

from .crosscheck import check_field_derivatives
from .derivatives import (
    d2udx2,
    d2udy2,
    d2udz2,
    d2vdx2,
    d2vdy2,
    d2vdz2,
    d2wdx2,
    d2wdy2,
    d2wdz2,
    du2dx,
    duvdx,
    duvdy,
    duwdx,
    duwdz,
    dv2dy,
    dvwdy,
    dvwdz,
    dw2dz,
    visc_uxx,
    visc_uyy,
    visc_uzz,
    visc_vxx,
    visc_vyy,
    visc_vzz,
    visc_wxx,
    visc_wyy,
    visc_wzz,
)
from .indexing import (
    load_local_meshsize_2d,
    load_local_meshsize_3d,
    load_local_velocity_2d,
    load_local_velocity_3d,
    load_local_viscosity_2d,
    load_local_viscosity_3d,
    mapd,
)

log = logging.getLogger(__name__)

# Obstacle bits, see flowfield.ObstacleFlag
_SELF = 1
_RIGHT = 4
_TOP = 16
_BACK = 64


# ========================================================
# Laminar
# ========================================================


@njit
def f_2d(lv, lm, gamma, re, gx, dt):
    return lv[mapd(0, 0, 0, 0)] + dt * (
        1.0 / re * (d2udx2(lv, lm) + d2udy2(lv, lm)) - du2dx(lv, lm, gamma) - duvdy(lv, lm, gamma) + gx
    )


@njit
def g_2d(lv, lm, gamma, re, gy, dt):
    return lv[mapd(0, 0, 0, 1)] + dt * (
        1.0 / re * (d2vdx2(lv, lm) + d2vdy2(lv, lm)) - duvdx(lv, lm, gamma) - dv2dy(lv, lm, gamma) + gy
    )


@njit
def f_3d(lv, lm, gamma, re, gx, dt):
    return lv[mapd(0, 0, 0, 0)] + dt * (
        1.0 / re * (d2udx2(lv, lm) + d2udy2(lv, lm) + d2udz2(lv, lm))
        - du2dx(lv, lm, gamma)
        - duvdy(lv, lm, gamma)
        - duwdz(lv, lm, gamma)
        + gx
    )


@njit
def g_3d(lv, lm, gamma, re, gy, dt):
    return lv[mapd(0, 0, 0, 1)] + dt * (
        1.0 / re * (d2vdx2(lv, lm) + d2vdy2(lv, lm) + d2vdz2(lv, lm))
        - duvdx(lv, lm, gamma)
        - dv2dy(lv, lm, gamma)
        - dvwdz(lv, lm, gamma)
        + gy
    )


@njit
def h_3d(lv, lm, gamma, re, gz, dt):
    return lv[mapd(0, 0, 0, 2)] + dt * (
        1.0 / re * (d2wdx2(lv, lm) + d2wdy2(lv, lm) + d2wdz2(lv, lm))
        - duwdx(lv, lm, gamma)
        - dvwdy(lv, lm, gamma)
        - dw2dz(lv, lm, gamma)
        + gz
    )


# ========================================================
# Turbulent
# ========================================================


@njit
def f_2d_turbulent(lv, lm, ln, gamma, gx, dt):
    return lv[mapd(0, 0, 0, 0)] + dt * (
        visc_uxx(lv, lm, ln) + visc_uyy(lv, lm, ln) - du2dx(lv, lm, gamma) - duvdy(lv, lm, gamma) + gx
    )


@njit
def g_2d_turbulent(lv, lm, ln, gamma, gy, dt):
    return lv[mapd(0, 0, 0, 1)] + dt * (
        visc_vxx(lv, lm, ln) + visc_vyy(lv, lm, ln) - duvdx(lv, lm, gamma) - dv2dy(lv, lm, gamma) + gy
    )


@njit
def f_3d_turbulent(lv, lm, ln, gamma, gx, dt):
    return lv[mapd(0, 0, 0, 0)] + dt * (
        visc_uxx(lv, lm, ln)
        + visc_uyy(lv, lm, ln)
        + visc_uzz(lv, lm, ln)
        - du2dx(lv, lm, gamma)
        - duvdy(lv, lm, gamma)
        - duwdz(lv, lm, gamma)
        + gx
    )


@njit
def g_3d_turbulent(lv, lm, ln, gamma, gy, dt):
    return lv[mapd(0, 0, 0, 1)] + dt * (
        visc_vxx(lv, lm, ln)
        + visc_vyy(lv, lm, ln)
        + visc_vzz(lv, lm, ln)
        - duvdx(lv, lm, gamma)
        - dv2dy(lv, lm, gamma)
        - dvwdz(lv, lm, gamma)
        + gy
    )


@njit
def h_3d_turbulent(lv, lm, ln, gamma, gz, dt):
    return lv[mapd(0, 0, 0, 2)] + dt * (
        visc_wxx(lv, lm, ln)
        + visc_wyy(lv, lm, ln)
        + visc_wzz(lv, lm, ln)
        - duwdx(lv, lm, gamma)
        - dvwdy(lv, lm, gamma)
        - dw2dz(lv, lm, gamma)
        + gz
    )


# ========================================================
# Cell and field sweeps
# ========================================================


@njit
def _load_windows(velocity, eddy, dx, dy, dz, i, j, k, dim, turbulent, re, lv, lm, ln):
    if dim == 3:
        load_local_velocity_3d(velocity, lv, i, j, k)
        load_local_meshsize_3d(dx, dy, dz, lm, i, j, k)
        if turbulent:
            load_local_viscosity_3d(eddy, ln, i, j, k, re)
    else:
        load_local_velocity_2d(velocity, lv, i, j)
        load_local_meshsize_2d(dx, dy, lm, i, j)
        if turbulent:
            load_local_viscosity_2d(eddy, ln, i, j, re)


@njit
def _cell_values(lv, lm, ln, dim, turbulent, re, gamma, gx, gy, gz, dt):
    if dim == 3:
        if turbulent:
            return (
                f_3d_turbulent(lv, lm, ln, gamma, gx, dt),
                g_3d_turbulent(lv, lm, ln, gamma, gy, dt),
                h_3d_turbulent(lv, lm, ln, gamma, gz, dt),
            )
        return f_3d(lv, lm, gamma, re, gx, dt), g_3d(lv, lm, gamma, re, gy, dt), h_3d(lv, lm, gamma, re, gz, dt)
    if turbulent:
        return f_2d_turbulent(lv, lm, ln, gamma, gx, dt), g_2d_turbulent(lv, lm, ln, gamma, gy, dt), 0.0
    return f_2d(lv, lm, gamma, re, gx, dt), g_2d(lv, lm, gamma, re, gy, dt), 0.0


@njit(parallel=True)
def _fgh_sweep(velocity, eddy, flags, fgh, dx, dy, dz, nx, ny, nz, dim, turbulent, re, gamma, gx, gy, gz, dt):
    k_lo = 2 if dim == 3 else 0
    k_hi = nz + 2 if dim == 3 else 1
    for i in prange(2, nx + 2):
        lv = np.zeros(81)
        lm = np.ones(81)
        ln = np.zeros(81)
        for j in range(2, ny + 2):
            for k in range(k_lo, k_hi):
                flag = flags[i, j, k]
                if flag & _SELF:
                    continue
                _load_windows(velocity, eddy, dx, dy, dz, i, j, k, dim, turbulent, re, lv, lm, ln)
                f, g, h = _cell_values(lv, lm, ln, dim, turbulent, re, gamma, gx, gy, gz, dt)
                # A face shared with an obstacle keeps its previous value
                if not flag & _RIGHT:
                    fgh[i, j, k, 0] = f
                if not flag & _TOP:
                    fgh[i, j, k, 1] = g
                if dim == 3 and not flag & _BACK:
                    fgh[i, j, k, 2] = h


def _arguments(parameters, dt):
    env = parameters.environment
    return (
        parameters.dim,
        bool(parameters.turbulence.on),
        float(parameters.flow.Re),
        float(parameters.solver.gamma),
        float(env.gx),
        float(env.gy),
        float(env.gz),
        float(dt),
    )


def compute_fgh(field, parameters, spacing, dt=None):
    """Fill ``field.fgh`` for every inner fluid cell.

    Parameters
    ----------
    field : FlowField
        Flow field; velocity, eddy viscosity and flags are read.
    parameters : Parameters
        Configuration (dimension, turbulence switch, Re, gamma, gravity).
    spacing : tuple of np.ndarray
        ``(dx, dy, dz)`` from ``Meshsize.spacing_arrays(field.cells)``.
    dt : float, optional
        Time step; defaults to ``parameters.timestep.dt``.
    """
    if dt is None:
        dt = parameters.timestep.dt
    dx, dy, dz = spacing
    if parameters.solver.check_derivatives:
        check_field_derivatives(field, parameters.solver.gamma, spacing)
    _fgh_sweep(
        field.velocity,
        field.eddy_viscosity,
        field.flags,
        field.fgh,
        dx,
        dy,
        dz,
        field.nx,
        field.ny,
        field.nz,
        *_arguments(parameters, dt),
    )


def compute_fgh_cell(field, parameters, spacing, i, j, k=0, dt=None):
    """F, G (and H in 3D) of a single cell, without obstacle checks."""
    if dt is None:
        dt = parameters.timestep.dt
    dim, turbulent, re, gamma, gx, gy, gz, dt = _arguments(parameters, dt)
    dx, dy, dz = spacing
    lv = np.zeros(81)
    lm = np.ones(81)
    ln = np.zeros(81)
    _load_windows(field.velocity, field.eddy_viscosity, dx, dy, dz, i, j, k, dim, turbulent, re, lv, lm, ln)
    values = _cell_values(lv, lm, ln, dim, turbulent, re, gamma, gx, gy, gz, dt)
    return values[:dim]
