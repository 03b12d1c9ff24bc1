"""Scipy-based linear solver using BiCGSTAB."""

import logging

import numpy as np
from scipy.sparse import csr_matrix
from scipy.sparse.linalg import bicgstab

from .info import SolveInfo

log = logging.getLogger(__name__)


def scipy_solver(
    A_csr: csr_matrix,
    b_np: np.ndarray,
    x0=None,
    tolerance=1e-6,
    max_iterations=1000,
):
    """Solve A x = b using scipy BiCGSTAB.

    Parameters
    ----------
    A_csr : csr_matrix
        Sparse matrix in CSR format.
    b_np : np.ndarray
        Right-hand side vector.
    x0 : np.ndarray, optional
        Initial guess, typically the previous pressure.
    tolerance : float, optional
        Relative convergence tolerance (default: 1e-6).
    max_iterations : int, optional
        Maximum iterations (default: 1000).

    Returns
    -------
    x_np : np.ndarray
        Solution vector.
    SolveInfo
        Iterations used and relative residual estimate. Running out of
        iterations and a BiCGSTAB breakdown are not errors; ``converged`` is
        False instead and ``x_np`` holds the last iterate.
    """
    b = np.asarray(b_np, dtype=np.float64)
    iterations = 0

    def count(_):
        nonlocal iterations
        iterations += 1

    x, info = bicgstab(
        A_csr, b, x0=x0, rtol=tolerance, atol=0, maxiter=int(max_iterations), callback=count
    )

    if not np.all(np.isfinite(x)):
        x = np.zeros_like(b) if x0 is None else np.array(x0, dtype=np.float64)

    b_norm = np.linalg.norm(b)
    residual = np.linalg.norm(b - A_csr @ x)
    error = residual / b_norm if b_norm > 0 else residual

    if info < 0:
        log.warning(f"BiCGSTAB breakdown (info={info}) after {iterations} iterations (error {error:.3e})")
    elif info > 0:
        log.warning(f"BiCGSTAB did not converge in {iterations} iterations (error {error:.3e})")

    return x, SolveInfo(iterations=iterations, error=float(error), converged=info == 0, backend="scipy")
