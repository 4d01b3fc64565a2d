"""
Exceptions and warnings raised by regcore.

Fatal conditions are exceptions; recoverable ones are warnings so callers
can filter or escalate them with the standard warnings machinery.
"""

import numpy as np


class DimensionMismatchError(ValueError):
    """Row/column counts of two operands disagree."""
    pass


class SingularMatrixError(np.linalg.LinAlgError):
    """Matrix is singular or nearly singular.

    Raised by back-substitution and Gauss-Jordan inversion.
    """

    def __init__(self, message: str, row=None):
        super().__init__(message)
        self.row = row


class InsufficientDataError(ValueError):
    """Fewer valid observations than parameters."""

    def __init__(self, n: int, p: int):
        super().__init__(f"Not enough observations ({n}) for {p} parameters")
        self.n = n
        self.p = p


class DomainError(ValueError):
    """Value outside the domain a family or link accepts."""
    pass


class ConvergenceWarning(RuntimeWarning):
    """IRLS stopped at maxit without meeting the convergence criterion."""
    pass


class RankDeficientWarning(RuntimeWarning):
    """Design matrix is rank deficient; inference for coefficients is undefined."""
    pass


class InfluenceWarning(RuntimeWarning):
    """Some influence measures are undefined (exact fit or leverage of one)."""
    pass


__all__ = [
    "DimensionMismatchError",
    "SingularMatrixError",
    "InsufficientDataError",
    "DomainError",
    "ConvergenceWarning",
    "RankDeficientWarning",
    "InfluenceWarning",
]
