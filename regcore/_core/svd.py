"""
Minimal SVD via Jacobi eigen-decomposition of A'A.

Provides the minimum-norm least-squares solution for rank-deficient or
ill-conditioned designs.
"""

import numpy as np
from typing import Tuple

from .matrix import Matrix
from .control import JACOBI_TOL, JACOBI_SWEEP_FACTOR, EIGEN_CUTOFF_FACTOR
from ..exceptions import DimensionMismatchError


def jacobi_eigen(S: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Eigen-decomposition of a symmetric matrix by Jacobi rotations.

    Repeatedly zeroes the largest off-diagonal entry with the rotation
    angle phi = 0.5 * atan2(2 a_pq, a_qq - a_pp) until the largest
    off-diagonal magnitude is below 1e-12 or 5 n^2 rotations were done.

    Parameters
    ----------
    S : ndarray, shape (n, n)
        Symmetric matrix (not modified)

    Returns
    -------
    eigenvalues : ndarray, shape (n,)
        Unsorted eigenvalues
    V : ndarray, shape (n, n)
        Eigenvectors as columns
    """
    M = np.array(S, dtype=np.float64)
    n = M.shape[0]
    if M.shape != (n, n):
        raise DimensionMismatchError(f"Matrix must be square, got {M.shape}")
    V = np.eye(n)
    if n < 2:
        return np.diag(M).copy(), V

    upper = np.triu_indices(n, k=1)
    max_iter = JACOBI_SWEEP_FACTOR * n * n

    for _ in range(max_iter):
        offdiag = np.abs(M[upper])
        idx = int(np.argmax(offdiag))
        if offdiag[idx] < JACOBI_TOL:
            break
        p, q = upper[0][idx], upper[1][idx]

        phi = 0.5 * np.arctan2(2.0 * M[p, q], M[q, q] - M[p, p])
        c = np.cos(phi)
        s = np.sin(phi)

        # Columns p, q
        mp = M[:, p].copy()
        mq = M[:, q].copy()
        M[:, p] = c * mp - s * mq
        M[:, q] = s * mp + c * mq
        # Rows p, q
        mp = M[p, :].copy()
        mq = M[q, :].copy()
        M[p, :] = c * mp - s * mq
        M[q, :] = s * mp + c * mq

        M[p, q] = 0.0
        M[q, p] = 0.0

        vp = V[:, p].copy()
        vq = V[:, q].copy()
        V[:, p] = c * vp - s * vq
        V[:, q] = s * vp + c * vq

    return np.diag(M).copy(), V


def _singular_system(A: np.ndarray):
    """
    Sorted singular values, right and left singular vectors of A.

    Only strictly positive singular values are kept. Eigenvalues of A'A
    at or below 10 * max(m, n) * eps * lambda_max are round-off of an
    exact zero and are dropped with them.
    """
    m, n = A.shape
    eigenvalues, V = jacobi_eigen(A.T @ A)

    order = np.argsort(-eigenvalues, kind="stable")
    eigenvalues = eigenvalues[order]
    V = V[:, order]

    lam_max = eigenvalues[0] if n > 0 else 0.0
    cutoff = EIGEN_CUTOFF_FACTOR * max(m, n) * np.finfo(np.float64).eps * max(lam_max, 0.0)
    keep = eigenvalues > cutoff

    sigma = np.sqrt(np.maximum(eigenvalues[keep], 0.0))
    V = V[:, keep]
    U = (A @ V) / sigma
    return sigma, U, V


def pseudo_inverse_solve(A: Matrix, b) -> np.ndarray:
    """
    Minimum-norm least-squares solution x = V diag(1/sigma) U'b.

    Parameters
    ----------
    A : Matrix, shape (m, n)
        Design matrix (possibly rank deficient)
    b : array-like, shape (m,)
        Response vector

    Returns
    -------
    x : ndarray, shape (n,)
    """
    b = np.asarray(b, dtype=np.float64)
    if b.shape != (A.rows,):
        raise DimensionMismatchError(
            f"Number of rows in A ({A.rows}) must match length of b ({b.size})"
        )
    if A.cols == 0:
        return np.zeros(0, dtype=np.float64)

    sigma, U, V = _singular_system(A.to_numpy())
    return V @ ((U.T @ b) / sigma)


def pseudo_inverse(A: Matrix) -> Matrix:
    """Moore-Penrose pseudoinverse, shape (n, m)."""
    if A.cols == 0:
        return Matrix(0, A.rows)
    sigma, U, V = _singular_system(A.to_numpy())
    return Matrix.from_array((V / sigma) @ U.T)
