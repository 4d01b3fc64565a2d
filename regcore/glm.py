"""
Generalized linear model API.

Main user-facing interface for GLMs.
"""

import warnings

import numpy as np
import pandas as pd
from typing import Optional, List
from dataclasses import dataclass, field
from scipy import stats

from ._backends import get_backend
from ._core.matrix import Matrix
from ._core.families import Family, Gaussian
from ._core.control import GLMControl, WEIGHT_FLOOR
from ._core.design import model_frame, newdata_design
from ._core.irls import irls, IRLSState
from .exceptions import ConvergenceWarning, RankDeficientWarning, SingularMatrixError


@dataclass
class GLMResult:
    """Results from GLM fitting."""
    coefficients: np.ndarray       # Coefficients
    coef_names: List[str]          # (Intercept), x1, ...
    residuals: np.ndarray          # Residuals (response scale)
    fitted_values: np.ndarray      # Fitted values (μ)
    linear_predictors: np.ndarray  # Linear predictors (η)
    pearson_residuals: np.ndarray
    deviance_residuals: np.ndarray

    df_residual: int               # Residual df
    df_null: int                   # Null model df

    deviance: float                # Deviance
    null_deviance: float           # Null deviance
    aic: float                     # AIC
    dispersion: float              # deviance / df_residual

    converged: bool                # Converged?
    boundary: bool                 # μ clamped into the family domain?
    iterations: int                # IRLS iterations
    state: IRLSState
    method: str                    # 'qr' or 'pseudoinverse'

    family: Family
    y: np.ndarray
    prior_weights: np.ndarray
    working_weights: np.ndarray
    design_matrix: Matrix = field(repr=False)
    intercept: bool = True
    predictor_names: List[str] = field(default_factory=list)
    valid_index: Optional[np.ndarray] = field(default=None, repr=False)
    backend: object = field(default=None, repr=False)

    @property
    def coef(self) -> pd.Series:
        """Named coefficients (pandas Series)."""
        return pd.Series(self.coefficients, index=self.coef_names)

    @property
    def n_obs(self) -> int:
        return self.design_matrix.rows

    @property
    def rank(self) -> int:
        return self.design_matrix.cols

    @property
    def sigma(self) -> float:
        """Square root of deviance / df_residual."""
        return float(np.sqrt(self.dispersion))

    @property
    def summary_dispersion(self) -> float:
        """
        Dispersion used for inference (like summary.glm()).

        Fixed at 1 for binomial and Poisson, Pearson χ² / df otherwise.
        """
        if self.family.fixed_dispersion:
            return 1.0
        return float(np.sum(self.pearson_residuals ** 2) / self.df_residual)

    @property
    def vcov(self) -> np.ndarray:
        """
        Variance-covariance matrix: φ (X'WX)⁻¹.

        NaN (with a RankDeficientWarning) when X'WX is singular or the
        fit needed the pseudoinverse.
        """
        X = self.design_matrix.to_numpy()
        xtwx = Matrix.from_array(X.T @ (X * self.working_weights[:, np.newaxis]))
        backend = self.backend if self.backend is not None else get_backend()
        inv = None
        if self.method != 'pseudoinverse':
            try:
                inv = backend.invert(xtwx).to_numpy()
            except SingularMatrixError:
                inv = None
        if inv is None:
            warnings.warn(
                "X'WX is singular; standard errors are undefined",
                RankDeficientWarning,
                stacklevel=2,
            )
            return np.full((self.rank, self.rank), np.nan)
        return self.summary_dispersion * inv

    @property
    def std_errors(self) -> np.ndarray:
        return np.sqrt(np.diag(self.vcov))

    def summary(self) -> pd.DataFrame:
        """
        Coefficient table (like summary.glm()).

        z tests for fixed-dispersion families, t tests otherwise.
        """
        se = self.std_errors
        with np.errstate(divide='ignore', invalid='ignore'):
            stat = self.coefficients / se
        if self.family.fixed_dispersion:
            label = 'z'
            pvalues = 2 * stats.norm.sf(np.abs(stat))
        else:
            label = 't'
            pvalues = 2 * stats.t.sf(np.abs(stat), self.df_residual)
        return pd.DataFrame({
            'Estimate': self.coefficients,
            'Std. Error': se,
            f'{label} value': stat,
            f'Pr(>|{label}|)': pvalues,
        }, index=self.coef_names)

    def lr_test(self) -> dict:
        """Likelihood-ratio test of the model against the null model."""
        statistic = self.null_deviance - self.deviance
        df = self.df_null - self.df_residual
        p_value = stats.chi2.sf(statistic, df) if df > 0 else np.nan
        return {'statistic': statistic, 'df': df, 'p_value': p_value}

    def conf_int(self, alpha: float = 0.05) -> pd.DataFrame:
        """
        Wald confidence intervals for coefficients.

        Parameters
        ----------
        alpha : float
            Significance level (default: 0.05 for 95% CI)
        """
        se = self.std_errors
        if self.family.fixed_dispersion:
            crit = stats.norm.ppf(1 - alpha / 2)
        else:
            crit = stats.t.ppf(1 - alpha / 2, self.df_residual)
        return pd.DataFrame({
            'lower': self.coefficients - crit * se,
            'upper': self.coefficients + crit * se,
        }, index=self.coef_names)

    def predict(self, newdata=None, type: str = 'response') -> np.ndarray:
        """
        Predict for new data.

        Parameters
        ----------
        newdata : DataFrame, array or list of predictors, optional
            New predictor values (default: the fitting data)
        type : {'response', 'link'}
            'link' returns η = Xβ, 'response' applies the inverse link

        Returns
        -------
        array
            Predicted values
        """
        if type not in ('response', 'link'):
            raise ValueError(
                f"Unknown prediction type: '{type}'. Use 'link' or 'response'."
            )
        if newdata is None:
            eta = self.linear_predictors.copy()
        else:
            X_new = newdata_design(newdata, self.predictor_names, self.intercept)
            eta = X_new.multiply_vector(self.coefficients)
        if type == 'link':
            return eta
        return self.family.linkinv(eta)

    def __repr__(self):
        return (f"GLMResult(family={self.family!r}, n={self.n_obs}, "
                f"deviance={self.deviance:.4f}, converged={self.converged})")


class GLM:
    """
    Generalized linear model via IRLS.

    Replicates R's glm() fitting loop (glm.fit).

    Examples
    --------
    >>> from regcore import GLM, Binomial
    >>> model = GLM(Binomial())
    >>> result = model.fit([[1, 2, 3, 4, 5, 6]], [0, 0, 1, 0, 1, 1])
    >>> result.coef
    """

    def __init__(self, family: Family = None, backend='reference'):
        """
        Parameters
        ----------
        family : Family, default=Gaussian()
            GLM family (Gaussian, Binomial, Poisson, Gamma)
        backend : str or BackendBase, default='reference'
            Solver backend: 'reference' or 'lapack'
        """
        if family is None:
            family = Gaussian()
        if not isinstance(family, Family):
            raise ValueError(f"family must be a Family instance, got {family!r}")
        self.family = family
        self.backend = get_backend(backend)

    def fit(
        self,
        X,
        y,
        data: Optional[pd.DataFrame] = None,
        weights=None,
        intercept: bool = True,
        epsilon: float = 1e-8,
        maxit: int = 25,
    ) -> GLMResult:
        """
        Fit generalized linear model.

        Parameters
        ----------
        X : list of str, DataFrame, array, or list of predictor vectors
            Predictors (without intercept)
        y : str or array
            Response; None/NaN entries drop the row
        data : DataFrame, optional
            Dataset holding named y / X / weights
        weights : str or array, optional
            Prior weights (binomial: number of trials)
        intercept : bool, default=True
            Prepend an intercept column
        epsilon : float, default=1e-8
            Convergence tolerance
        maxit : int, default=25
            Maximum IRLS iterations

        Returns
        -------
        result : GLMResult
            Fitted model results

        Notes
        -----
        Uses R's convergence criterion:
            |dev - dev_old| / (0.1 + |dev|) < epsilon
        Hitting maxit issues a ConvergenceWarning; the result is returned
        with converged=False.
        """
        control = GLMControl(epsilon=epsilon, maxit=maxit)
        frame = model_frame(y, X, data=data, intercept=intercept, weights=weights)
        family = self.family

        fit = irls(frame.X, frame.y, family, frame.weights, control, self.backend)
        if not fit.converged:
            warnings.warn(
                f"glm.fit: algorithm did not converge in {fit.iterations} iterations",
                ConvergenceWarning,
                stacklevel=2,
            )

        y, mu, wt = frame.y, fit.mu, frame.weights
        residuals = y - mu
        var = family.variance(mu)
        with np.errstate(invalid='ignore'):
            pearson = residuals * np.sqrt(wt) / np.sqrt(np.maximum(var, WEIGHT_FLOOR))
        unit_dev = np.maximum(family.dev_resids(y, mu, wt), 0.0)
        deviance_resid = np.sign(residuals) * np.sqrt(unit_dev)

        # Null model: weighted mean with an intercept, η = 0 without
        if intercept:
            mu_null = np.full_like(y, np.sum(wt * y) / np.sum(wt))
        else:
            mu_null = family.linkinv(np.zeros_like(y))
        null_deviance = float(np.sum(family.dev_resids(y, mu_null, wt)))

        n, p = frame.n, frame.p
        df_residual = n - p
        aic = float(family.aic(y, mu, wt, fit.deviance) + 2 * p)

        return GLMResult(
            coefficients=fit.coef,
            coef_names=frame.coef_names,
            residuals=residuals,
            fitted_values=mu,
            linear_predictors=fit.eta,
            pearson_residuals=pearson,
            deviance_residuals=deviance_resid,
            df_residual=df_residual,
            df_null=n - (1 if intercept else 0),
            deviance=fit.deviance,
            null_deviance=null_deviance,
            aic=aic,
            dispersion=fit.deviance / df_residual,
            converged=fit.converged,
            boundary=fit.boundary,
            iterations=fit.iterations,
            state=fit.state,
            method=fit.method,
            family=family,
            y=y,
            prior_weights=wt,
            working_weights=fit.working_weights,
            design_matrix=frame.X,
            intercept=intercept,
            predictor_names=frame.predictor_names,
            valid_index=frame.valid_index,
            backend=self.backend,
        )


def glm(y, X, family: Family = None, data=None, backend='reference', **kwargs) -> GLMResult:
    """
    Fit generalized linear model (convenience function).

    Parameters
    ----------
    y : str or array
        Response variable
    X : list of str or array
        Predictor variables
    family : Family, default=Gaussian()
        Gaussian(), Binomial(), Poisson() or Gamma(), with a link name
    data : DataFrame, optional
        Dataset
    backend : str
        Solver backend
    **kwargs
        weights, intercept, epsilon, maxit (see GLM.fit)

    Returns
    -------
    GLMResult
        Fitted model

    Examples
    --------
    >>> # Logistic regression
    >>> fit = glm([0, 0, 1, 1, 1], [[1, 2, 3, 4, 5]], family=Binomial())
    >>>
    >>> # Poisson regression for count data
    >>> fit = glm([2, 3, 5, 8, 13], [[1, 2, 3, 4, 5]], family=Poisson())
    >>> fit.predict([[6, 7]])
    """
    return GLM(family, backend=backend).fit(X, y, data=data, **kwargs)
