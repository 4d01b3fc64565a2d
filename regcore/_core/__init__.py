"""
Core algorithms (backend-agnostic).
"""

from .matrix import Matrix
from .qr import qr, backsolve, try_qr_solve, check_rank, negligible_pivots, least_squares, QRDecomposition, LeastSquaresSolution
from .svd import jacobi_eigen, pseudo_inverse_solve, pseudo_inverse
from .inverse import invert
from .lm_solver import fit_linear_model
from .irls import irls, IRLSState, IRLSResult

__all__ = [
    "Matrix",
    "qr",
    "backsolve",
    "try_qr_solve",
    "check_rank",
    "negligible_pivots",
    "least_squares",
    "QRDecomposition",
    "LeastSquaresSolution",
    "jacobi_eigen",
    "pseudo_inverse_solve",
    "pseudo_inverse",
    "invert",
    "fit_linear_model",
    "irls",
    "IRLSState",
    "IRLSResult",
]
