"""
QR decomposition via Householder reflections.

Least squares is solved in two explicit tiers: QR + back-substitution,
then the minimum-norm pseudoinverse solution when R is singular.
"""

import numpy as np
from dataclasses import dataclass
from typing import Optional

from .matrix import Matrix
from .svd import pseudo_inverse_solve
from .control import QR_ZERO_TOL, HOUSEHOLDER_TOL, SINGULAR_TOL, RANK_TOL_FACTOR
from ..exceptions import DimensionMismatchError, SingularMatrixError


@dataclass
class QRDecomposition:
    """Result of QR decomposition (A = Q R)."""
    Q: Matrix    # Orthogonal matrix, shape (m, m)
    R: Matrix    # Upper triangular matrix, shape (m, n)

    def __iter__(self):
        # Allows ``Q, R = qr(A)``
        yield self.Q
        yield self.R


@dataclass
class LeastSquaresSolution:
    """Coefficients minimizing ||A x - b|| and the tier that produced them."""
    coef: np.ndarray
    method: str       # 'qr' or 'pseudoinverse'


def _householder(R: np.ndarray, Q: Optional[np.ndarray] = None,
                 rhs: Optional[np.ndarray] = None):
    """
    Triangularize R in place.

    Each reflection H = I - beta v v' is applied to the trailing block of
    R, accumulated into Q (Q <- Q H) and applied to rhs (rhs <- H rhs)
    when those are given. Applying them to rhs yields Q'rhs without
    forming Q.
    """
    m, n = R.shape
    for k in range(min(m - 1, n)):
        x = R[k:, k]
        norm_x = np.sqrt(x @ x)
        if norm_x < QR_ZERO_TOL:
            continue

        # Sign of x0 avoids cancellation in v0
        s = 1.0 if x[0] >= 0 else -1.0
        v = x.copy()
        v[0] = x[0] + s * norm_x

        vnorm2 = v @ v
        if vnorm2 < HOUSEHOLDER_TOL:
            continue
        beta = 2.0 / vnorm2

        R[k:, k:] -= beta * np.outer(v, v @ R[k:, k:])
        if Q is not None:
            Q[:, k:] -= beta * np.outer(Q[:, k:] @ v, v)
        if rhs is not None:
            rhs[k:] -= beta * v * (v @ rhs[k:])


def qr(A: Matrix) -> QRDecomposition:
    """
    QR decomposition with Householder reflections.

    Parameters
    ----------
    A : Matrix, shape (m, n)
        Matrix to decompose (copied, never modified)

    Returns
    -------
    result : QRDecomposition
        Q orthogonal (Q'Q = I), R upper triangular
    """
    R = A.clone()
    Q = Matrix.identity(A.rows)
    _householder(R.to_numpy(), Q=Q.to_numpy())
    return QRDecomposition(Q=Q, R=R)


def backsolve(R: Matrix, b) -> np.ndarray:
    """
    Solve R x = b for upper triangular R by back substitution.

    Only the leading ``R.cols`` rows take part; ``b`` must have
    ``R.rows`` entries (e.g. Q'y from a tall QR).

    Raises
    ------
    SingularMatrixError
        If a diagonal entry is below 1e-14 in magnitude.
    """
    n = R.cols
    if R.rows < n:
        raise DimensionMismatchError(
            "Matrix must have at least as many rows as columns"
        )
    b = np.asarray(b, dtype=np.float64)
    if b.shape != (R.rows,):
        raise DimensionMismatchError(
            f"Right-hand side has length {b.size}, matrix has {R.rows} rows"
        )

    U = R.to_numpy()
    x = np.zeros(n, dtype=np.float64)
    for i in range(n - 1, -1, -1):
        rii = U[i, i]
        if abs(rii) < SINGULAR_TOL:
            raise SingularMatrixError(
                f"Matrix is singular or nearly singular at row {i}", row=i
            )
        x[i] = (b[i] - U[i, i + 1:n] @ x[i + 1:n]) / rii
    return x


def try_qr_solve(A: Matrix, b) -> np.ndarray:
    """
    First tier: solve R x = Q'b.

    Q'b is accumulated reflector by reflector, so Q (m x m) is never
    formed. Propagates SingularMatrixError, and raises it as well when a
    diagonal entry of R is negligible relative to the largest one.
    """
    R = A.clone()
    qty = np.array(b, dtype=np.float64)
    _householder(R.to_numpy(), rhs=qty)
    if A.rows >= A.cols:
        check_rank(np.diag(R.to_numpy()), A.rows, A.cols)
    return backsolve(R, qty)


def negligible_pivots(r_diag: np.ndarray, m: int, n: int) -> np.ndarray:
    """
    Indices i with |R_ii| <= 10 * max(m, n) * eps * max |R_jj|.

    Round-off leaves a dependent column with |R_ii| of order
    eps * max |R_jj|, far above the absolute back-substitution tolerance
    once the data are not of unit scale.
    """
    mag = np.abs(np.asarray(r_diag, dtype=np.float64))
    if mag.size == 0:
        return np.zeros(0, dtype=int)
    cutoff = RANK_TOL_FACTOR * max(m, n) * np.finfo(np.float64).eps * np.max(mag)
    return np.flatnonzero(mag <= cutoff)


def check_rank(r_diag: np.ndarray, m: int, n: int):
    """Raise SingularMatrixError if a diagonal entry of R is numerically zero."""
    small = negligible_pivots(r_diag, m, n)
    if small.size > 0:
        i = int(small[0])
        raise SingularMatrixError(
            f"Matrix is rank deficient: |R[{i}, {i}]| is negligible relative to max |R[j, j]|",
            row=i,
        )


def least_squares(A: Matrix, b) -> LeastSquaresSolution:
    """
    Solve min ||A x - b||.

    Uses QR first; a singular R (rank-deficient A) falls back to the
    minimum-norm pseudoinverse solution instead of failing.

    Parameters
    ----------
    A : Matrix, shape (m, n)
        Design matrix
    b : array-like, shape (m,)
        Response vector

    Returns
    -------
    solution : LeastSquaresSolution
    """
    b = np.asarray(b, dtype=np.float64)
    if b.shape != (A.rows,):
        raise DimensionMismatchError(
            f"Number of rows in A ({A.rows}) must match length of b ({b.size})"
        )

    try:
        return LeastSquaresSolution(coef=try_qr_solve(A, b), method="qr")
    except SingularMatrixError:
        return LeastSquaresSolution(
            coef=pseudo_inverse_solve(A, b), method="pseudoinverse"
        )
