"""Finite differences over a local window on a staggered, stretched grid.

Every function takes the flat velocity window ``lv`` and meshsize window
``lm`` (see ``indexing``); turbulent flux terms also take the total viscosity
window ``ln``. Derivatives are evaluated at the location of the velocity
component they belong to: ``du2dx`` and ``duvdy`` at the u position,
``duvdx`` and ``dv2dy`` at the v position, and so on.

Convective terms blend a central difference with a donor-cell difference:

    result = (1 - gamma) * central + gamma * donor_cell
"""

from numba import njit

from .indexing import mapd


@njit
def unit(axis):
    """Offset ``(i, j, k)`` of the next cell along ``axis``."""
    return (1 if axis == 0 else 0, 1 if axis == 1 else 0, 1 if axis == 2 else 0)


# ========================================================
# First derivatives (cell centre)
# ========================================================


@njit
def dudx(lv, lm):
    return (lv[mapd(0, 0, 0, 0)] - lv[mapd(-1, 0, 0, 0)]) / lm[mapd(0, 0, 0, 0)]


@njit
def dvdy(lv, lm):
    return (lv[mapd(0, 0, 0, 1)] - lv[mapd(0, -1, 0, 1)]) / lm[mapd(0, 0, 0, 1)]


@njit
def dwdz(lv, lm):
    return (lv[mapd(0, 0, 0, 2)] - lv[mapd(0, 0, -1, 2)]) / lm[mapd(0, 0, 0, 2)]


@njit
def dudy(lv, lm):
    return (lv[mapd(0, 0, 0, 0)] - lv[mapd(0, -1, 0, 0)]) / lm[mapd(0, 0, 0, 1)]


@njit
def dudz(lv, lm):
    return (lv[mapd(0, 0, 0, 0)] - lv[mapd(0, 0, -1, 0)]) / lm[mapd(0, 0, 0, 2)]


@njit
def dvdx(lv, lm):
    return (lv[mapd(0, 0, 0, 1)] - lv[mapd(-1, 0, 0, 1)]) / lm[mapd(0, 0, 0, 0)]


@njit
def dvdz(lv, lm):
    return (lv[mapd(0, 0, 0, 1)] - lv[mapd(0, 0, -1, 1)]) / lm[mapd(0, 0, 0, 2)]


@njit
def dwdx(lv, lm):
    return (lv[mapd(0, 0, 0, 2)] - lv[mapd(-1, 0, 0, 2)]) / lm[mapd(0, 0, 0, 0)]


@njit
def dwdy(lv, lm):
    return (lv[mapd(0, 0, 0, 2)] - lv[mapd(0, -1, 0, 2)]) / lm[mapd(0, 0, 0, 1)]


# ========================================================
# Second derivatives
# ========================================================


@njit
def second_difference(q_m, q_0, q_p, h0, h1):
    """Three-point second derivative with left/right distances ``h0``/``h1``.

    Reduces to ``(q_p - 2 q_0 + q_m) / h^2`` for ``h0 == h1``.
    """
    hsum = h0 + h1
    return 2.0 * (q_p / (h1 * hsum) - q_0 / (h1 * h0) + q_m / (h0 * hsum))


@njit
def _along(lv, lm, component, axis):
    # Values sit on the faces normal to axis: distances are the cell sizes
    ai, aj, ak = unit(axis)
    return second_difference(
        lv[mapd(-ai, -aj, -ak, component)],
        lv[mapd(0, 0, 0, component)],
        lv[mapd(ai, aj, ak, component)],
        lm[mapd(0, 0, 0, axis)],
        lm[mapd(ai, aj, ak, axis)],
    )


@njit
def _across(lv, lm, component, axis):
    # Values sit mid-cell along axis: distances are averaged cell sizes
    ai, aj, ak = unit(axis)
    h_m = lm[mapd(-ai, -aj, -ak, axis)]
    h_0 = lm[mapd(0, 0, 0, axis)]
    h_p = lm[mapd(ai, aj, ak, axis)]
    return second_difference(
        lv[mapd(-ai, -aj, -ak, component)],
        lv[mapd(0, 0, 0, component)],
        lv[mapd(ai, aj, ak, component)],
        0.5 * (h_0 + h_m),
        0.5 * (h_0 + h_p),
    )


@njit
def d2udx2(lv, lm):
    return _along(lv, lm, 0, 0)


@njit
def d2udy2(lv, lm):
    return _across(lv, lm, 0, 1)


@njit
def d2udz2(lv, lm):
    return _across(lv, lm, 0, 2)


@njit
def d2vdx2(lv, lm):
    return _across(lv, lm, 1, 0)


@njit
def d2vdy2(lv, lm):
    return _along(lv, lm, 1, 1)


@njit
def d2vdz2(lv, lm):
    return _across(lv, lm, 1, 2)


@njit
def d2wdx2(lv, lm):
    return _across(lv, lm, 2, 0)


@njit
def d2wdy2(lv, lm):
    return _across(lv, lm, 2, 1)


@njit
def d2wdz2(lv, lm):
    return _along(lv, lm, 2, 2)


# ========================================================
# Convective (product) derivatives
# ========================================================


@njit
def face_value(q0, q1, h_short, h_long):
    """Linear interpolation from ``q0`` towards ``q1`` over ``h_short`` of ``h_long``."""
    return (h_long - h_short) / h_long * q0 + h_short / h_long * q1


@njit
def blended_product_derivative(kr, kl, q0, q_r, q_l, h_short, h_long_r, h_long_l, gamma):
    """Derivative of ``k * q`` across a cell of half-width ``h_short``.

    Parameters
    ----------
    kr, kl : float
        Transport velocity interpolated to the right/left face.
    q0, q_r, q_l : float
        Transported quantity at the centre and its right/left neighbour.
    h_short : float
        Distance of the faces from the centre value.
    h_long_r, h_long_l : float
        Distance of the right/left neighbour from the centre value.
    gamma : float
        Donor-cell weight.
    """
    central = (
        kr * face_value(q0, q_r, h_short, h_long_r) - kl * face_value(q0, q_l, h_short, h_long_l)
    ) / (2.0 * h_short)
    donor = (
        kr * (q0 + q_r) - kl * (q_l + q0) + abs(kr) * (q0 - q_r) - abs(kl) * (q_l - q0)
    ) / (4.0 * h_short)
    return (1.0 - gamma) * central + gamma * donor


@njit
def square_derivative(lv, lm, component, gamma):
    """d(q^2)/dx_c for the velocity component ``q`` along its own axis ``c``."""
    ci, cj, ck = unit(component)
    q0 = lv[mapd(0, 0, 0, component)]
    q1 = lv[mapd(ci, cj, ck, component)]
    qm1 = lv[mapd(-ci, -cj, -ck, component)]
    h_short = 0.5 * lm[mapd(0, 0, 0, component)]
    h_long1 = 0.5 * (lm[mapd(0, 0, 0, component)] + lm[mapd(ci, cj, ck, component)])

    kr = 0.5 * (q0 + q1)
    kl = 0.5 * (q0 + qm1)
    # Cell-centre values are exact midpoints of the neighbouring face values
    central = ((q0 + q1) * (q0 + q1) - (q0 + qm1) * (q0 + qm1)) / (4.0 * h_long1)
    donor = (kr * (q0 + q1) - kl * (qm1 + q0) + abs(kr) * (q0 - q1) - abs(kl) * (qm1 - q0)) / (
        4.0 * h_short
    )
    return (1.0 - gamma) * central + gamma * donor


@njit
def du2dx(lv, lm, gamma):
    return square_derivative(lv, lm, 0, gamma)


@njit
def dv2dy(lv, lm, gamma):
    return square_derivative(lv, lm, 1, gamma)


@njit
def dw2dz(lv, lm, gamma):
    return square_derivative(lv, lm, 2, gamma)


@njit
def mixed_product_derivative(lv, lm, transported, transport, gamma):
    """d(k*q)/dx_t evaluated at the position of ``q``.

    ``q`` is the velocity component ``transported``; ``k`` is the component
    ``transport`` whose axis ``t`` is the differentiation axis. ``k`` is
    interpolated along ``q``'s axis to the faces of ``q``'s control volume.
    """
    ai, aj, ak = unit(transport)
    ti, tj, tk = unit(transported)

    h_short = 0.5 * lm[mapd(0, 0, 0, transport)]
    h_long_l = 0.5 * (lm[mapd(0, 0, 0, transport)] + lm[mapd(-ai, -aj, -ak, transport)])
    h_long_r = 0.5 * (lm[mapd(0, 0, 0, transport)] + lm[mapd(ai, aj, ak, transport)])
    t_short = 0.5 * lm[mapd(0, 0, 0, transported)]
    t_long = 0.5 * (lm[mapd(0, 0, 0, transported)] + lm[mapd(ti, tj, tk, transported)])

    k00 = lv[mapd(0, 0, 0, transport)]
    k01 = lv[mapd(ti, tj, tk, transport)]
    km0 = lv[mapd(-ai, -aj, -ak, transport)]
    km1 = lv[mapd(ti - ai, tj - aj, tk - ak, transport)]

    q0 = lv[mapd(0, 0, 0, transported)]
    q_r = lv[mapd(ai, aj, ak, transported)]
    q_l = lv[mapd(-ai, -aj, -ak, transported)]

    kr = face_value(k00, k01, t_short, t_long)
    kl = face_value(km0, km1, t_short, t_long)
    return blended_product_derivative(kr, kl, q0, q_r, q_l, h_short, h_long_r, h_long_l, gamma)


@njit
def duvdx(lv, lm, gamma):
    """d(uv)/dx at the v position."""
    return mixed_product_derivative(lv, lm, 1, 0, gamma)


@njit
def duvdy(lv, lm, gamma):
    """d(uv)/dy at the u position."""
    return mixed_product_derivative(lv, lm, 0, 1, gamma)


@njit
def duwdx(lv, lm, gamma):
    """d(uw)/dx at the w position."""
    return mixed_product_derivative(lv, lm, 2, 0, gamma)


@njit
def duwdz(lv, lm, gamma):
    """d(uw)/dz at the u position."""
    return mixed_product_derivative(lv, lm, 0, 2, gamma)


@njit
def dvwdy(lv, lm, gamma):
    """d(vw)/dy at the w position."""
    return mixed_product_derivative(lv, lm, 2, 1, gamma)


@njit
def dvwdz(lv, lm, gamma):
    """d(vw)/dz at the v position."""
    return mixed_product_derivative(lv, lm, 1, 2, gamma)


# ========================================================
# Turbulent (variable viscosity) flux terms
# ========================================================


@njit
def edge_viscosity(ln, ai, aj, ak, bi, bj, bk):
    """Mean total viscosity of the four cells around an edge.

    The cells are the centre, its neighbours at offsets ``a`` and ``b`` and
    the diagonal ``a + b``.
    """
    return 0.25 * (
        ln[mapd(0, 0, 0, 0)]
        + ln[mapd(ai, aj, ak, 0)]
        + ln[mapd(bi, bj, bk, 0)]
        + ln[mapd(ai + bi, aj + bj, ak + bk, 0)]
    )


@njit
def normal_stress(lv, lm, ln, component):
    """2 d/dx_c (nu dq/dx_c) for component ``q`` along its own axis ``c``."""
    ci, cj, ck = unit(component)
    q0 = lv[mapd(0, 0, 0, component)]
    q_p = lv[mapd(ci, cj, ck, component)]
    q_m = lv[mapd(-ci, -cj, -ck, component)]
    nu_0 = ln[mapd(0, 0, 0, 0)]
    nu_p = ln[mapd(ci, cj, ck, 0)]
    h = lm[mapd(0, 0, 0, component)]
    return 2.0 * (nu_p * (q_p - q0) - nu_0 * (q0 - q_m)) / (h * h)


@njit
def shear_stress(lv, lm, ln, component, axis):
    """d/dx_a (nu (dq/dx_a + dp/dx_c)) at the position of ``q``.

    ``q`` is velocity ``component`` (on the face normal to ``c``) and ``p``
    the velocity component along ``axis`` (``a``). The viscosity is averaged
    to the two edges shared by ``q``'s cell, its ``c`` neighbour and its low
    and high ``a`` neighbours.
    """
    ci, cj, ck = unit(component)
    ai, aj, ak = unit(axis)

    h_c = lm[mapd(0, 0, 0, component)]
    h_a = lm[mapd(0, 0, 0, axis)]

    nu_upper = edge_viscosity(ln, ci, cj, ck, ai, aj, ak)
    nu_lower = edge_viscosity(ln, ci, cj, ck, -ai, -aj, -ak)

    q0 = lv[mapd(0, 0, 0, component)]
    q_up = lv[mapd(ai, aj, ak, component)]
    q_dn = lv[mapd(-ai, -aj, -ak, component)]
    p0 = lv[mapd(0, 0, 0, axis)]
    p_c = lv[mapd(ci, cj, ck, axis)]
    p_dn = lv[mapd(-ai, -aj, -ak, axis)]
    p_c_dn = lv[mapd(ci - ai, cj - aj, ck - ak, axis)]

    upper = nu_upper * ((q_up - q0) / h_a + (p_c - p0) / h_c)
    lower = nu_lower * ((q0 - q_dn) / h_a + (p_c_dn - p_dn) / h_c)
    return (upper - lower) / h_a


@njit
def visc_uxx(lv, lm, ln):
    """d/dx (2 nu du/dx) at the u position."""
    return normal_stress(lv, lm, ln, 0)


@njit
def visc_uyy(lv, lm, ln):
    """d/dy (nu (du/dy + dv/dx)) at the u position."""
    return shear_stress(lv, lm, ln, 0, 1)


@njit
def visc_uzz(lv, lm, ln):
    """d/dz (nu (du/dz + dw/dx)) at the u position."""
    return shear_stress(lv, lm, ln, 0, 2)


@njit
def visc_vxx(lv, lm, ln):
    """d/dx (nu (dv/dx + du/dy)) at the v position."""
    return shear_stress(lv, lm, ln, 1, 0)


@njit
def visc_vyy(lv, lm, ln):
    """d/dy (2 nu dv/dy) at the v position."""
    return normal_stress(lv, lm, ln, 1)


@njit
def visc_vzz(lv, lm, ln):
    """d/dz (nu (dv/dz + dw/dy)) at the v position."""
    return shear_stress(lv, lm, ln, 1, 2)


@njit
def visc_wxx(lv, lm, ln):
    """d/dx (nu (dw/dx + du/dz)) at the w position."""
    return shear_stress(lv, lm, ln, 2, 0)


@njit
def visc_wyy(lv, lm, ln):
    """d/dy (nu (dw/dy + dv/dz)) at the w position."""
    return shear_stress(lv, lm, ln, 2, 1)


@njit
def visc_wzz(lv, lm, ln):
    """d/dz (2 nu dw/dz) at the w position."""
    return normal_stress(lv, lm, ln, 2)


# ========================================================
# Strain rate
# ========================================================


@njit
def strain_rate_squared_2d(lv, lm):
    s11 = 2.0 * dudx(lv, lm)
    s22 = 2.0 * dvdy(lv, lm)
    s12 = dudy(lv, lm) + dvdx(lv, lm)
    return s11 * s11 + s22 * s22 + 2.0 * s12 * s12


@njit
def strain_rate_squared_3d(lv, lm):
    s11 = 2.0 * dudx(lv, lm)
    s22 = 2.0 * dvdy(lv, lm)
    s33 = 2.0 * dwdz(lv, lm)
    s12 = dudy(lv, lm) + dvdx(lv, lm)
    s13 = dudz(lv, lm) + dwdx(lv, lm)
    s23 = dvdz(lv, lm) + dwdy(lv, lm)
    return s11 * s11 + s22 * s22 + s33 * s33 + 2.0 * (s12 * s12 + s13 * s13 + s23 * s23)
