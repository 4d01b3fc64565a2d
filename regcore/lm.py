"""
Linear regression with R-style interface and output.

Ordinary least squares with the inference of R's summary.lm(): standard
errors, t tests, R², and the overall F test.
"""

import warnings

import numpy as np
import pandas as pd
from typing import Optional, Union, List
from scipy import stats

from ._backends import get_backend
from ._core.design import model_frame, newdata_design
from ._core.lm_solver import fit_linear_model
from .exceptions import RankDeficientWarning, SingularMatrixError


class LinearModel:
    """
    Fit linear regression model (like R's lm()).

    The model is fitted on construction; the object then exposes the
    coefficients and their inference.

    Examples
    --------
    >>> import pandas as pd
    >>> from regcore import lm
    >>>
    >>> data = pd.DataFrame({'x': [1, 2, 3, 4, 5], 'y': [2.1, 3.9, 6.2, 7.8, 10.1]})
    >>> model = lm(y='y', X=['x'], data=data)
    >>>
    >>> model.coef         # Named coefficients
    >>> model.pvalues      # P-values for each coefficient
    >>> model.conf_int()   # Confidence intervals
    >>> model.summary()    # Coefficient table
    """

    def __init__(
        self,
        y: Union[str, np.ndarray],
        X: Union[List[str], np.ndarray, None],
        data: Optional[pd.DataFrame] = None,
        intercept: bool = True,
        backend='reference',
    ):
        """
        Fit linear regression model.

        Parameters
        ----------
        y : str or array
            Response variable (outcome)
            - If string: column name in data
            - If array: numeric values; None/NaN rows are dropped
        X : list of str, DataFrame, array, or list of predictor vectors
            Predictor variables (without intercept)
        data : DataFrame, optional
            Dataset containing y and X variables
        intercept : bool, default=True
            Prepend an intercept column
        backend : str or BackendBase
            Solver backend: 'reference' or 'lapack'

        Raises
        ------
        InsufficientDataError
            If there are no more valid observations than parameters
        """
        frame = model_frame(y, X, data=data, intercept=intercept)

        self.y_name = frame.y_name
        self.y_values = frame.y
        self.design_matrix = frame.X
        self.var_names = frame.coef_names
        self.predictor_names = frame.predictor_names
        self.valid_index = frame.valid_index
        self.intercept = intercept
        self.n_obs = frame.n
        self.n_coef = frame.p

        self.backend = get_backend(backend)
        self._backend_result = fit_linear_model(frame.X, frame.y, backend=self.backend)

        self._compute_statistics()

    def _compute_statistics(self):
        """Compute standard errors, t-stats, p-values, etc."""
        result = self._backend_result

        self.coefficients = result.coef
        self.residuals = result.residuals
        self.fitted_values = result.fitted_values
        self.method = result.method

        n, p = self.n_obs, self.n_coef
        self.df_residual = result.df_residual
        self.df_total = n - 1
        self.df_model = p - (1 if self.intercept else 0)

        self.rss = np.sum(self.residuals ** 2)
        self.tss = np.sum((self.y_values - np.mean(self.y_values)) ** 2)

        # Residual standard error
        self.sigma = float(np.sqrt(self.rss / self.df_residual))

        if self.tss > 0:
            self.r_squared = 1 - self.rss / self.tss
            self.adj_r_squared = 1 - (self.rss / self.df_residual) / (self.tss / self.df_total)
        else:
            self.r_squared = 0.0
            self.adj_r_squared = np.nan

        # (X'X)⁻¹, NaN if the design is rank deficient
        X = self.design_matrix
        xtx_inv = None
        if self.method != 'pseudoinverse':
            try:
                xtx_inv = self.backend.invert(X.T @ X).to_numpy()
            except SingularMatrixError:
                xtx_inv = None
        if xtx_inv is not None:
            self._xtx_inv = xtx_inv
        else:
            warnings.warn(
                "X'X is singular (rank-deficient design); standard errors, "
                "t values and p-values are undefined",
                RankDeficientWarning,
                stacklevel=3,
            )
            self._xtx_inv = np.full((p, p), np.nan)

        # Var(β) = σ² (X'X)⁻¹
        self.vcov = self.sigma ** 2 * self._xtx_inv
        self.std_errors = self.sigma * np.sqrt(np.diag(self._xtx_inv))

        with np.errstate(divide='ignore', invalid='ignore'):
            self.t_values = self.coefficients / self.std_errors
        self.pvalues = 2 * stats.t.sf(np.abs(self.t_values), self.df_residual)

        # F-statistic
        if self.df_model > 0:
            with np.errstate(divide='ignore', invalid='ignore'):
                self.f_statistic = ((self.tss - self.rss) / self.df_model) / (
                    self.rss / self.df_residual)
            self.f_pvalue = float(stats.f.sf(self.f_statistic, self.df_model, self.df_residual))
        else:
            self.f_statistic = np.nan
            self.f_pvalue = np.nan

    @property
    def coef(self) -> pd.Series:
        """Named coefficients (pandas Series)."""
        return pd.Series(self.coefficients, index=self.var_names)

    def conf_int(self, alpha: float = 0.05) -> pd.DataFrame:
        """
        Confidence intervals for coefficients.

        Parameters
        ----------
        alpha : float
            Significance level (default: 0.05 for 95% CI)

        Returns
        -------
        DataFrame
            Confidence intervals with columns 'lower' and 'upper'
        """
        t_crit = stats.t.ppf(1 - alpha / 2, self.df_residual)
        return pd.DataFrame({
            'lower': self.coefficients - t_crit * self.std_errors,
            'upper': self.coefficients + t_crit * self.std_errors,
        }, index=self.var_names)

    def summary(self) -> pd.DataFrame:
        """
        Coefficient table (like the coefficient block of summary.lm()).

        Model-level statistics are attributes: sigma, r_squared,
        adj_r_squared, f_statistic, f_pvalue.
        """
        return pd.DataFrame({
            'Estimate': self.coefficients,
            'Std. Error': self.std_errors,
            't value': self.t_values,
            'Pr(>|t|)': self.pvalues,
        }, index=self.var_names)

    def predict(
        self,
        newdata=None,
        interval: Optional[str] = None,
        level: float = 0.95,
    ):
        """
        Predict response for new data.

        Parameters
        ----------
        newdata : DataFrame, array or list of predictors, optional
            New predictor values
            - If DataFrame: must have columns matching the predictor names
            - Otherwise: predictors in fitting order
            Default: the fitting data.
        interval : {None, 'confidence', 'prediction'}
            Add an interval for the mean response or for a new observation
        level : float
            Interval coverage (default: 0.95)

        Returns
        -------
        array or DataFrame
            Predicted values, or a DataFrame with columns fit, lwr, upr, se
            when an interval is requested
        """
        if interval not in (None, 'confidence', 'prediction'):
            raise ValueError(
                f"Unknown interval: '{interval}'. Use 'confidence' or 'prediction'."
            )

        X_new = self.design_matrix if newdata is None else newdata_design(
            newdata, self.predictor_names, self.intercept)
        fit = X_new.multiply_vector(self.coefficients)
        if interval is None:
            return fit

        Xn = X_new.to_numpy()
        # Row-wise x' (X'X)⁻¹ x
        quad = np.einsum('ij,jk,ik->i', Xn, self._xtx_inv, Xn)
        if interval == 'prediction':
            quad = quad + 1.0
        se = self.sigma * np.sqrt(quad)
        t_crit = stats.t.ppf(1 - (1 - level) / 2, self.df_residual)
        return pd.DataFrame({
            'fit': fit,
            'lwr': fit - t_crit * se,
            'upr': fit + t_crit * se,
            'se': se,
        })

    def __repr__(self):
        return (f"LinearModel(n={self.n_obs}, p={self.n_coef}, "
                f"R²={self.r_squared:.3f}, method='{self.method}')")


def lm(y, X, data=None, **kwargs) -> LinearModel:
    """
    Fit linear regression model (convenience function).

    Parameters
    ----------
    y : str or array
        Response variable
    X : list of str or array
        Predictor variables
    data : DataFrame, optional
        Dataset
    **kwargs
        intercept, backend (see LinearModel)

    Returns
    -------
    LinearModel
        Fitted model object

    Examples
    --------
    >>> model = lm([2, 4, 6, 8, 10], [[1, 2, 3, 4, 5]])
    >>> model.coef
    (Intercept)    0.0
    x1             2.0
    dtype: float64
    >>>
    >>> new = pd.DataFrame({'x1': [6, 7]})
    >>> model.predict(new, interval='prediction')
    """
    return LinearModel(y=y, X=X, data=data, **kwargs)
