"""Per-cell finite difference stencils and boundary treatment."""

from .boundary import BOUNDARY_STENCILS, BoundaryConditions, Wall
from .distance import DistanceStencil
from .fgh import compute_fgh, compute_fgh_cell
from .turbulence import compute_eddy_viscosity

__all__ = [
    "BOUNDARY_STENCILS",
    "BoundaryConditions",
    "DistanceStencil",
    "Wall",
    "compute_eddy_viscosity",
    "compute_fgh",
    "compute_fgh_cell",
]
