"""Pressure Poisson solve and velocity projection."""

from .pressure import (
    GatheredPressureSolver,
    PressureSolver,
    compute_pressure_rhs,
    create_pressure_solver,
    update_velocity,
)

__all__ = [
    "GatheredPressureSolver",
    "PressureSolver",
    "compute_pressure_rhs",
    "create_pressure_solver",
    "update_velocity",
]
