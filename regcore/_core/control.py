"""
Numerical tolerances and fitting controls.
"""

from dataclasses import dataclass

# Householder QR
QR_ZERO_TOL = 1e-14         # sub-column norm treated as zero
HOUSEHOLDER_TOL = 1e-20     # squared reflector norm treated as zero

# Back-substitution / inversion
SINGULAR_TOL = 1e-14        # |R[i, i]| below this is singular
RANK_TOL_FACTOR = 10        # |R[i, i]| <= factor * max(m, n) * eps * max |R[j, j]| is rank deficient
PIVOT_TOL = 1e-10           # Gauss-Jordan pivot below this is singular
LEVERAGE_TOL = 1e-10        # h within this of 1 has undefined deletion measures
EXACT_FIT_TOL = 1e-10       # sigma at or below this times max |fitted| is an exact fit

# Jacobi eigen-decomposition
JACOBI_TOL = 1e-12          # stop when max |off-diagonal| falls below
JACOBI_SWEEP_FACTOR = 5     # rotation cap = factor * n**2
EIGEN_CUTOFF_FACTOR = 10    # A'A eigenvalues <= factor * max(m, n) * eps * max are zero

# IRLS safeguards
WEIGHT_FLOOR = 1e-10        # floor for working weights, variances, dmu/deta
MU_CLAMP = 1e-6             # distance kept from the boundary of mu's domain


@dataclass(frozen=True)
class GLMControl:
    """
    Convergence controls for IRLS (like R's glm.control()).

    Attributes
    ----------
    epsilon : float
        Relative deviance tolerance:
        |dev - dev_old| < epsilon * (0.1 + |dev|)
    maxit : int
        Maximum number of IRLS iterations
    """
    epsilon: float = 1e-8
    maxit: int = 25

    def __post_init__(self):
        if not self.epsilon > 0:
            raise ValueError(f"value of 'epsilon' must be > 0, got {self.epsilon}")
        if int(self.maxit) != self.maxit or self.maxit < 1:
            raise ValueError(f"maximum number of iterations must be >= 1, got {self.maxit}")
