"""
Linear model solver.

Delegates the least-squares solve to a backend and returns the raw fit;
inference lives in the user-facing LinearModel.
"""

import numpy as np
from dataclasses import dataclass

from .matrix import Matrix


@dataclass
class LinearModelResult:
    """Raw least-squares fit."""
    coef: np.ndarray
    residuals: np.ndarray
    fitted_values: np.ndarray
    df_residual: int
    method: str          # 'qr' or 'pseudoinverse'


def fit_linear_model(
    X: Matrix,
    y: np.ndarray,
    backend=None,
) -> LinearModelResult:
    """
    Fit y = X b by least squares.

    Parameters
    ----------
    X : Matrix, shape (n, p)
        Design matrix (intercept column included if wanted)
    y : ndarray, shape (n,)
        Response vector
    backend : BackendBase, optional
        Computational backend (default: reference)

    Returns
    -------
    result : LinearModelResult
    """
    if backend is None:
        from .._backends import get_backend
        backend = get_backend('reference')

    solution = backend.least_squares(X, y)
    fitted = X.multiply_vector(solution.coef)

    return LinearModelResult(
        coef=solution.coef,
        residuals=y - fitted,
        fitted_values=fitted,
        df_residual=X.rows - X.cols,
        method=solution.method,
    )
