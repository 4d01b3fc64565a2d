"""
Abstract base classes for backends.

Defines the interface all solver backends must implement.
"""

from abc import ABC, abstractmethod
import numpy as np

from .._core.matrix import Matrix
from .._core.qr import LeastSquaresSolution


class BackendBase(ABC):
    """Abstract base class for all backends."""

    name = None

    @abstractmethod
    def least_squares(self, A: Matrix, b: np.ndarray) -> LeastSquaresSolution:
        """
        Solve min ||A x - b||.

        Backends must never fail on a rank-deficient A: a singular
        triangular factor is answered with the minimum-norm solution.

        Parameters
        ----------
        A : Matrix, shape (m, n)
            Design matrix (never modified)
        b : ndarray, shape (m,)
            Response vector

        Returns
        -------
        LeastSquaresSolution
            Coefficients and the method that produced them
        """
        pass

    @abstractmethod
    def invert(self, A: Matrix) -> Matrix:
        """
        Invert a small square matrix.

        Raises SingularMatrixError when A is (numerically) singular.
        """
        pass

    @abstractmethod
    def get_device_info(self) -> dict:
        """Get backend information."""
        pass

    def __repr__(self):
        return f"{type(self).__name__}()"
