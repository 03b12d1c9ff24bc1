"""Independent evaluation of the convective derivatives for self-checking.

The production formulas in ``derivatives`` write the donor-cell term as
``(kr (a+b) - kl (c+d) + |kr| (a-b) - |kl| (c-d)) / 4h``. Here the upwind
value is selected explicitly from the sign of the transport velocity and the
face values are obtained by offsetting from the centre value. Both must agree
to round-off on any (stretched) mesh.
"""

import numpy as np
from numba import njit

from ..errors import DerivativeMismatchError
from .derivatives import (
    du2dx,
    duvdx,
    duvdy,
    duwdx,
    duwdz,
    dv2dy,
    dvwdy,
    dvwdz,
    dw2dz,
    unit,
)
from .indexing import (
    load_local_meshsize_2d,
    load_local_meshsize_3d,
    load_local_velocity_2d,
    load_local_velocity_3d,
    mapd,
)

TOLERANCE = 1e-12

PRODUCT_DERIVATIVES = ("du2dx", "dv2dy", "dw2dz", "duvdx", "duvdy", "duwdx", "duwdz", "dvwdy", "dvwdz")
PRODUCT_DERIVATIVES_2D = ("du2dx", "dv2dy", "duvdx", "duvdy")


@njit
def _upwind(kr, kl, q0, q_r, q_l, h_short):
    up_r = q0 if kr > 0.0 else q_r
    up_l = q_l if kl > 0.0 else q0
    return (kr * up_r - kl * up_l) / (2.0 * h_short)


@njit
def _towards(q0, q1, distance, spacing):
    return q0 + (q1 - q0) * (distance / spacing)


@njit
def square_closed_form(lv, lm, component, gamma):
    ci, cj, ck = unit(component)
    q0 = lv[mapd(0, 0, 0, component)]
    q1 = lv[mapd(ci, cj, ck, component)]
    qm1 = lv[mapd(-ci, -cj, -ck, component)]
    h0 = lm[mapd(0, 0, 0, component)]
    h1 = lm[mapd(ci, cj, ck, component)]

    centre_r = 0.5 * (q0 + q1)
    centre_l = 0.5 * (q0 + qm1)
    central = (centre_r * centre_r - centre_l * centre_l) / (0.5 * (h0 + h1))
    donor = _upwind(centre_r, centre_l, q0, q1, qm1, 0.5 * h0)
    return (1.0 - gamma) * central + gamma * donor


@njit
def mixed_closed_form(lv, lm, transported, transport, gamma):
    ai, aj, ak = unit(transport)
    ti, tj, tk = unit(transported)

    h0 = lm[mapd(0, 0, 0, transport)]
    h_r = lm[mapd(ai, aj, ak, transport)]
    h_l = lm[mapd(-ai, -aj, -ak, transport)]
    g0 = lm[mapd(0, 0, 0, transported)]
    g1 = lm[mapd(ti, tj, tk, transported)]

    # Transport velocity moved from its own position to the edge of q's cell
    kr = _towards(lv[mapd(0, 0, 0, transport)], lv[mapd(ti, tj, tk, transport)], 0.5 * g0, 0.5 * (g0 + g1))
    kl = _towards(
        lv[mapd(-ai, -aj, -ak, transport)],
        lv[mapd(ti - ai, tj - aj, tk - ak, transport)],
        0.5 * g0,
        0.5 * (g0 + g1),
    )

    q0 = lv[mapd(0, 0, 0, transported)]
    q_r = lv[mapd(ai, aj, ak, transported)]
    q_l = lv[mapd(-ai, -aj, -ak, transported)]
    face_r = _towards(q0, q_r, 0.5 * h0, 0.5 * (h0 + h_r))
    face_l = _towards(q0, q_l, 0.5 * h0, 0.5 * (h0 + h_l))

    central = (kr * face_r - kl * face_l) / h0
    donor = _upwind(kr, kl, q0, q_r, q_l, 0.5 * h0)
    return (1.0 - gamma) * central + gamma * donor


@njit
def product_derivative_discrepancies(lv, lm, gamma, dim):
    """Absolute difference of both formulations, ordered as ``PRODUCT_DERIVATIVES``.

    Entries involving w stay zero in 2D.
    """
    out = np.zeros(9)
    out[0] = abs(du2dx(lv, lm, gamma) - square_closed_form(lv, lm, 0, gamma))
    out[1] = abs(dv2dy(lv, lm, gamma) - square_closed_form(lv, lm, 1, gamma))
    out[3] = abs(duvdx(lv, lm, gamma) - mixed_closed_form(lv, lm, 1, 0, gamma))
    out[4] = abs(duvdy(lv, lm, gamma) - mixed_closed_form(lv, lm, 0, 1, gamma))
    if dim == 3:
        out[2] = abs(dw2dz(lv, lm, gamma) - square_closed_form(lv, lm, 2, gamma))
        out[5] = abs(duwdx(lv, lm, gamma) - mixed_closed_form(lv, lm, 2, 0, gamma))
        out[6] = abs(duwdz(lv, lm, gamma) - mixed_closed_form(lv, lm, 0, 2, gamma))
        out[7] = abs(dvwdy(lv, lm, gamma) - mixed_closed_form(lv, lm, 2, 1, gamma))
        out[8] = abs(dvwdz(lv, lm, gamma) - mixed_closed_form(lv, lm, 1, 2, gamma))
    return out


def check_product_derivatives(lv, lm, gamma, dim, tolerance=TOLERANCE):
    """Raise ``DerivativeMismatchError`` if any product derivative disagrees."""
    discrepancies = product_derivative_discrepancies(lv, lm, float(gamma), dim)
    worst = int(np.argmax(discrepancies))
    if discrepancies[worst] > tolerance:
        raise DerivativeMismatchError(
            f"Error in {PRODUCT_DERIVATIVES[worst]}: formulations differ by {discrepancies[worst]:.3e}"
        )
    return discrepancies


@njit
def _worst_cell(velocity, dx, dy, dz, flags, nx, ny, nz, dim, gamma):
    lv = np.zeros(81)
    lm = np.ones(81)
    worst = 0.0
    where = (0, 0, 0, 0)
    k_lo, k_hi = (2, nz + 2) if dim == 3 else (0, 1)
    for i in range(2, nx + 2):
        for j in range(2, ny + 2):
            for k in range(k_lo, k_hi):
                if flags[i, j, k] & 1:
                    continue
                if dim == 3:
                    load_local_velocity_3d(velocity, lv, i, j, k)
                    load_local_meshsize_3d(dx, dy, dz, lm, i, j, k)
                else:
                    load_local_velocity_2d(velocity, lv, i, j)
                    load_local_meshsize_2d(dx, dy, lm, i, j)
                d = product_derivative_discrepancies(lv, lm, gamma, dim)
                n = np.argmax(d)
                if d[n] > worst:
                    worst = d[n]
                    where = (i, j, k, n)
    return worst, where


def check_field_derivatives(field, gamma, spacing, tolerance=TOLERANCE):
    """Run the cross-check over every inner fluid cell of ``field``.

    ``spacing`` is the ``(dx, dy, dz)`` tuple from ``Meshsize.spacing_arrays``.
    """
    dx, dy, dz = spacing
    worst, (i, j, k, n) = _worst_cell(
        field.velocity, dx, dy, dz, field.flags, field.nx, field.ny, field.nz, field.dim, float(gamma)
    )
    if worst > tolerance:
        raise DerivativeMismatchError(
            f"Error in {PRODUCT_DERIVATIVES[n]} at cell ({i}, {j}, {k}): formulations differ by {worst:.3e}"
        )
    return worst
