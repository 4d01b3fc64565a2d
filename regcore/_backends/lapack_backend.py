"""
LAPACK backend using SciPy.

Same contract as the reference backend, computed by LAPACK routines.
Useful for cross-checking the reference decompositions.
"""

import warnings

import numpy as np
import scipy
from scipy.linalg import qr, solve_triangular, lstsq, lu_factor, lu_solve, LinAlgWarning

from .base import BackendBase
from .._core.matrix import Matrix
from .._core.qr import LeastSquaresSolution, negligible_pivots
from .._core.control import SINGULAR_TOL, PIVOT_TOL, EIGEN_CUTOFF_FACTOR
from ..exceptions import DimensionMismatchError, SingularMatrixError


class LapackBackend(BackendBase):
    """
    CPU backend using NumPy + SciPy (LAPACK).

    Always uses FP64 precision.
    """

    def __init__(self):
        self.name = "lapack"
        self.precision = "fp64"

    def least_squares(self, A: Matrix, b: np.ndarray) -> LeastSquaresSolution:
        X = A.to_numpy()
        b = np.asarray(b, dtype=np.float64)
        if b.shape != (A.rows,):
            raise DimensionMismatchError(
                f"Number of rows in A ({A.rows}) must match length of b ({b.size})"
            )
        m, n = X.shape
        if n == 0:
            return LeastSquaresSolution(coef=np.zeros(0), method="qr")

        # Unpivoted QR, singularity judged like the reference solver
        Q, R = qr(X, mode='economic')
        r_diag = np.diag(R)
        if (m >= n and np.all(np.abs(r_diag) >= SINGULAR_TOL)
                and negligible_pivots(r_diag, m, n).size == 0):
            coef = solve_triangular(R, Q.T @ b, lower=False)
            return LeastSquaresSolution(coef=coef, method="qr")

        # Minimum-norm solution (SVD based), same singular value cutoff as
        # the reference eigenvalue cutoff on A'A
        cond = np.sqrt(EIGEN_CUTOFF_FACTOR * max(m, n) * np.finfo(np.float64).eps)
        coef, _, _, _ = lstsq(X, b, cond=cond, lapack_driver='gelsd')
        return LeastSquaresSolution(coef=coef, method="pseudoinverse")

    def invert(self, A: Matrix) -> Matrix:
        if A.rows != A.cols:
            raise DimensionMismatchError(f"Matrix must be square, got {A.rows}x{A.cols}")
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", LinAlgWarning)
            lu, piv = lu_factor(A.to_numpy())
        small = np.flatnonzero(np.abs(np.diag(lu)) < PIVOT_TOL)
        if small.size > 0:
            raise SingularMatrixError(
                f"Matrix is singular or nearly singular (pivot at column {small[0]})",
                row=int(small[0]),
            )
        return Matrix.from_array(lu_solve((lu, piv), np.eye(A.rows)))

    def get_device_info(self) -> dict:
        """Get backend information."""
        return {
            'backend': 'lapack',
            'precision': 'fp64',
            'library': f'NumPy {np.__version__}, SciPy {scipy.__version__}',
        }
