"""Local 3x3x3 window layout and window loaders.

A window holds, for every offset ``(di, dj, dk)`` in ``{-1, 0, 1}^3``, the three
components of a quantity at the cell ``(i+di, j+dj, k+dk)``. It is stored
flat with 81 entries; ``mapd`` gives the position of one component.
"""

import numpy as np
from numba import njit

WINDOW_SIZE = 81


@njit
def mapd(i, j, k, component):
    return 39 + 27 * k + 9 * j + 3 * i + component


def new_window():
    return np.zeros(WINDOW_SIZE)


@njit
def load_local_velocity_2d(velocity, lv, i, j):
    for row in range(-1, 2):
        for column in range(-1, 2):
            for c in range(2):
                lv[mapd(column, row, 0, c)] = velocity[i + column, j + row, 0, c]


@njit
def load_local_velocity_3d(velocity, lv, i, j, k):
    for layer in range(-1, 2):
        for row in range(-1, 2):
            for column in range(-1, 2):
                for c in range(3):
                    lv[mapd(column, row, layer, c)] = velocity[i + column, j + row, k + layer, c]


@njit
def load_local_meshsize_2d(dx, dy, lm, i, j):
    for row in range(-1, 2):
        for column in range(-1, 2):
            lm[mapd(column, row, 0, 0)] = dx[i + column, j + row, 0]
            lm[mapd(column, row, 0, 1)] = dy[i + column, j + row, 0]


@njit
def load_local_meshsize_3d(dx, dy, dz, lm, i, j, k):
    for layer in range(-1, 2):
        for row in range(-1, 2):
            for column in range(-1, 2):
                lm[mapd(column, row, layer, 0)] = dx[i + column, j + row, k + layer]
                lm[mapd(column, row, layer, 1)] = dy[i + column, j + row, k + layer]
                lm[mapd(column, row, layer, 2)] = dz[i + column, j + row, k + layer]


@njit
def load_local_viscosity_2d(eddy_viscosity, ln, i, j, re):
    """Total viscosity (eddy + 1/Re), copied to every component slot."""
    for row in range(-1, 2):
        for column in range(-1, 2):
            nu = eddy_viscosity[i + column, j + row, 0] + 1.0 / re
            for c in range(3):
                ln[mapd(column, row, 0, c)] = nu


@njit
def load_local_viscosity_3d(eddy_viscosity, ln, i, j, k, re):
    for layer in range(-1, 2):
        for row in range(-1, 2):
            for column in range(-1, 2):
                nu = eddy_viscosity[i + column, j + row, k + layer] + 1.0 / re
                for c in range(3):
                    ln[mapd(column, row, layer, c)] = nu
