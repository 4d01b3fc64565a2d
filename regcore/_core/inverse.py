"""
Gauss-Jordan inversion for small (p x p) matrices.
"""

import numpy as np

from .matrix import Matrix
from .control import PIVOT_TOL
from ..exceptions import DimensionMismatchError, SingularMatrixError


def invert(A: Matrix) -> Matrix:
    """
    Invert a square matrix by Gauss-Jordan elimination on [A | I].

    Uses partial pivoting. Meant for the p x p cross-product matrices of
    regression inference, not as a general-purpose solver.

    Raises
    ------
    DimensionMismatchError
        If A is not square.
    SingularMatrixError
        If a pivot magnitude falls below 1e-10.
    """
    n = A.rows
    if A.cols != n:
        raise DimensionMismatchError(f"Matrix must be square, got {A.rows}x{A.cols}")

    aug = np.hstack([A.to_numpy(), np.eye(n)])

    for i in range(n):
        pivot_row = i + int(np.argmax(np.abs(aug[i:, i])))
        if pivot_row != i:
            aug[[i, pivot_row]] = aug[[pivot_row, i]]

        pivot = aug[i, i]
        if abs(pivot) < PIVOT_TOL:
            raise SingularMatrixError(
                f"Matrix is singular or nearly singular (pivot {pivot:.3g} at column {i})",
                row=i,
            )
        aug[i] /= pivot

        factors = aug[:, i].copy()
        factors[i] = 0.0
        aug -= np.outer(factors, aug[i])

    return Matrix.from_array(aug[:, n:])
