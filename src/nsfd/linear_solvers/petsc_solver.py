"""PETSc-based linear solver."""

import logging

import numpy as np
from petsc4py import PETSc
from scipy.sparse import csr_matrix

from .info import SolveInfo

log = logging.getLogger(__name__)


def petsc_solver(
    A_csr: csr_matrix,
    b_np: np.ndarray,
    x0=None,
    tolerance=1e-6,
    max_iterations=1000,
    solver_type="bcgs",
    preconditioner="jacobi",
):
    """Solve A x = b using PETSc.

    Parameters
    ----------
    A_csr : csr_matrix
        Sparse matrix in CSR format.
    b_np : np.ndarray
        Right-hand side vector.
    x0 : np.ndarray, optional
        Initial guess; enables a non-zero initial guess in the KSP.
    tolerance : float, optional
        Relative convergence tolerance (default: 1e-6).
    max_iterations : int, optional
        Maximum number of iterations (default: 1000).
    solver_type : str, optional
        PETSc KSP type (default: "bcgs").
    preconditioner : str, optional
        PETSc PC type (default: "jacobi").

    Returns
    -------
    x_np : np.ndarray
        Solution vector x.
    SolveInfo
        Iterations, relative residual and convergence flag. A diverged or
        unconverged KSP is reported, not raised.
    """
    n = A_csr.shape[0]
    A_csr = A_csr.tocsr()

    A_petsc = PETSc.Mat().createAIJ(
        size=A_csr.shape,
        csr=(A_csr.indptr.astype(PETSc.IntType), A_csr.indices.astype(PETSc.IntType), A_csr.data),
    )
    A_petsc.assemble()

    b_petsc = PETSc.Vec().createWithArray(np.ascontiguousarray(b_np, dtype=np.float64))
    x_petsc = PETSc.Vec().createSeq(n)
    if x0 is not None:
        x_petsc.setArray(np.ascontiguousarray(x0, dtype=np.float64))

    ksp = PETSc.KSP().create()
    ksp.setType(solver_type)
    ksp.getPC().setType(preconditioner)
    ksp.setFromOptions()
    ksp.setOperators(A_petsc)
    ksp.setTolerances(rtol=float(tolerance), atol=0, max_it=int(max_iterations))
    ksp.setInitialGuessNonzero(x0 is not None)

    ksp.solve(b_petsc, x_petsc)

    reason = ksp.getConvergedReason()
    iterations = ksp.getIterationNumber()
    x_np = x_petsc.getArray().copy()

    b_norm = np.linalg.norm(b_np)
    residual = np.linalg.norm(b_np - A_csr @ x_np)
    error = residual / b_norm if b_norm > 0 else residual

    if reason <= 0:
        log.warning(f"PETSc did not converge. Reason: {reason}, iterations: {iterations}")

    A_petsc.destroy()
    b_petsc.destroy()
    x_petsc.destroy()
    ksp.destroy()

    return x_np, SolveInfo(iterations=iterations, error=float(error), converged=reason > 0, backend="petsc")
