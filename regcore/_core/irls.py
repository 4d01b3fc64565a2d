"""
Iteratively Reweighted Least Squares.

The fitting loop of glm.fit(): each iteration solves a weighted least
squares problem on the working response and updates the linear
predictor. Iterations are strictly sequential.
"""

import numpy as np
from dataclasses import dataclass
from enum import Enum

from .matrix import Matrix
from .families import Family
from .control import GLMControl, WEIGHT_FLOOR
from ..exceptions import DomainError


class IRLSState(Enum):
    """Lifecycle of one IRLS fit."""
    INITIALIZING = "initializing"
    ITERATING = "iterating"
    CONVERGED = "converged"
    MAXITER_REACHED = "maxiter_reached"


@dataclass
class IRLSResult:
    """Output of the IRLS loop."""
    coef: np.ndarray
    eta: np.ndarray
    mu: np.ndarray
    deviance: float
    working_weights: np.ndarray   # Weights of the final weighted solve
    iterations: int
    state: IRLSState
    boundary: bool                # μ was clamped into the family's domain
    method: str                   # 'pseudoinverse' if any solve fell back

    @property
    def converged(self) -> bool:
        return self.state is IRLSState.CONVERGED


def _guard(d: np.ndarray) -> np.ndarray:
    # |dμ/dη| kept >= floor; the sign matters for decreasing links (inverse)
    return np.where(d < 0, np.minimum(d, -WEIGHT_FLOOR), np.maximum(d, WEIGHT_FLOOR))


def working_quantities(family: Family, y, mu, eta, prior_weights):
    """
    Working weights and working response for one IRLS step.

    w = prior * (dμ/dη)² / V(μ)
    z = η + (y - μ) / (dμ/dη)

    Non-finite or underflowing weights are floored at 1e-10 and a
    non-finite working response falls back to η.
    """
    d = family.mu_eta(eta)
    var = family.variance(mu)
    with np.errstate(all="ignore"):
        w = prior_weights * d * d / np.maximum(var, WEIGHT_FLOOR)
        z = eta + (y - mu) / _guard(d)
    w = np.where(np.isfinite(w) & (w >= WEIGHT_FLOOR), w, WEIGHT_FLOOR)
    z = np.where(np.isfinite(z), z, eta)
    return w, z


def irls(
    X: Matrix,
    y: np.ndarray,
    family: Family,
    prior_weights: np.ndarray = None,
    control: GLMControl = None,
    backend=None,
) -> IRLSResult:
    """
    Fit a GLM by IRLS.

    Parameters
    ----------
    X : Matrix, shape (n, p)
        Design matrix
    y : ndarray, shape (n,)
        Response vector
    family : Family
        GLM family
    prior_weights : ndarray, shape (n,), optional
        Prior weights (default: all 1)
    control : GLMControl, optional
        epsilon / maxit
    backend : BackendBase, optional
        Solver backend (default: reference)

    Returns
    -------
    result : IRLSResult

    Notes
    -----
    Convergence follows R's glm.fit():
        |dev - dev_old| / (0.1 + |dev|) < epsilon
    Reaching maxit is not an error; the state reports it.
    """
    if backend is None:
        from .._backends import get_backend
        backend = get_backend('reference')
    if control is None:
        control = GLMControl()

    n = X.rows
    y = np.asarray(y, dtype=np.float64)
    if prior_weights is None:
        prior_weights = np.ones(n, dtype=np.float64)

    state = IRLSState.INITIALIZING
    family.validate_response(y, prior_weights)
    mu = family.initialize(y, prior_weights)
    eta = family.linkfun(mu)
    if not family.valideta(eta) or not np.all(family.validmu(mu)):
        raise DomainError(
            f"cannot find valid starting values for the {family.name} family "
            f"with '{family.link}' link"
        )

    design = X.to_numpy()
    deviance = np.inf
    coef = np.zeros(X.cols, dtype=np.float64)
    w = np.ones(n, dtype=np.float64)
    boundary = False
    method = "qr"
    iteration = 0

    state = IRLSState.ITERATING
    while state is IRLSState.ITERATING:
        iteration += 1
        dev_old = deviance

        w, z = working_quantities(family, y, mu, eta, prior_weights)
        sqrt_w = np.sqrt(w)
        solution = backend.least_squares(
            Matrix.from_array(design * sqrt_w[:, np.newaxis]), z * sqrt_w
        )
        coef = solution.coef
        if solution.method != "qr":
            method = solution.method

        eta = design @ coef
        mu = family.linkinv(eta)

        invalid = ~family.validmu(mu)
        if np.any(invalid):
            boundary = True
            mu[invalid] = family.clamp_mu(mu[invalid])
            eta[invalid] = family.linkfun(mu[invalid])
            if not np.all(np.isfinite(mu)):
                raise DomainError(
                    f"no valid set of coefficients has been found at iteration "
                    f"{iteration}: fitted values outside the {family.name} domain"
                )

        deviance = float(np.sum(family.dev_resids(y, mu, prior_weights)))
        if not np.isfinite(deviance):
            raise DomainError(f"non-finite deviance at iteration {iteration}")

        if abs(deviance - dev_old) < control.epsilon * (0.1 + abs(deviance)):
            state = IRLSState.CONVERGED
        elif iteration >= control.maxit:
            state = IRLSState.MAXITER_REACHED

    return IRLSResult(
        coef=coef,
        eta=eta,
        mu=mu,
        deviance=deviance,
        working_weights=w,
        iterations=iteration,
        state=state,
        boundary=boundary,
        method=method,
    )
