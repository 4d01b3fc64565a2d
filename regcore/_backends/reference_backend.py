"""
Reference backend.

Householder QR, Jacobi pseudoinverse and Gauss-Jordan inversion written
out in NumPy. This is the default backend.
"""

import numpy as np

from .base import BackendBase
from .._core.matrix import Matrix
from .._core.qr import least_squares, LeastSquaresSolution
from .._core.inverse import invert


class ReferenceBackend(BackendBase):
    """
    Backend built on regcore's own decompositions.

    Always FP64.
    """

    def __init__(self):
        self.name = "reference"
        self.precision = "fp64"

    def least_squares(self, A: Matrix, b: np.ndarray) -> LeastSquaresSolution:
        return least_squares(A, b)

    def invert(self, A: Matrix) -> Matrix:
        return invert(A)

    def get_device_info(self) -> dict:
        return {
            'backend': 'reference',
            'precision': 'fp64',
            'library': f'NumPy {np.__version__}',
            'solver': 'Householder QR, Jacobi pseudoinverse fallback',
        }
