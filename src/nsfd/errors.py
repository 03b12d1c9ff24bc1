"""Exception types raised by the solver."""


class NSFDError(Exception):
    """Base class for all solver errors."""


class ConfigurationError(NSFDError, ValueError):
    """Invalid or inconsistent configuration (dimension, process grid, walls)."""


class DerivativeMismatchError(NSFDError, AssertionError):
    """Two formulations of a product derivative disagree beyond tolerance."""
