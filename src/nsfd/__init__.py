"""Finite-difference incompressible Navier-Stokes solver on block-decomposed grids."""

from .datastructures import Metrics, Parameters, ProcessIdentity, TimeSeries
from .errors import ConfigurationError, DerivativeMismatchError, NSFDError
from .simulation import Simulation

__all__ = [
    "ConfigurationError",
    "DerivativeMismatchError",
    "Metrics",
    "NSFDError",
    "Parameters",
    "ProcessIdentity",
    "Simulation",
    "TimeSeries",
]
