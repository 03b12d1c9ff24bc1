"""Linear solvers for the pressure Poisson equation."""

from ..errors import ConfigurationError
from .info import SolveInfo
from .scipy_solver import scipy_solver


def get_linear_solver(name):
    """Return the solve function for backend ``name`` ("scipy" or "petsc")."""
    if name == "scipy":
        return scipy_solver
    if name == "petsc":
        from .petsc_solver import petsc_solver

        return petsc_solver
    raise ConfigurationError(f"Unknown linear solver '{name}'")


__all__ = ["SolveInfo", "get_linear_solver", "scipy_solver"]
