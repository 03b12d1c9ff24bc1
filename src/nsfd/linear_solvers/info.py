from dataclasses import dataclass


@dataclass
class SolveInfo:
    """Outcome of one linear solve, reported back to the pressure solver."""

    iterations: int
    error: float
    converged: bool
    backend: str = "scipy"
