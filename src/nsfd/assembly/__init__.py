"""Pressure Poisson matrix and right-hand side assembly."""

from .pressure_matrix import (
    MeshCoefficients,
    assemble_pressure_matrix,
    assemble_rhs,
    matrix_shape,
    matrix_view,
    rhs_mask,
    scatter_solution,
    wall_kind_array,
)

__all__ = [
    "MeshCoefficients",
    "assemble_pressure_matrix",
    "assemble_rhs",
    "matrix_shape",
    "matrix_view",
    "rhs_mask",
    "scatter_solution",
    "wall_kind_array",
]
