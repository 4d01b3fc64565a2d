"""
Analysis of variance for linear models.

anova(model)          sequential (type I) sums of squares, like R's anova.lm
anova(m1, m2, ...)    F tests between nested models
"""

import numpy as np
import pandas as pd
from dataclasses import dataclass
from scipy import stats

from .lm import LinearModel


@dataclass
class AnovaResult:
    """ANOVA table plus what kind of analysis produced it."""
    table: pd.DataFrame
    kind: str                # 'sequential' or 'comparison'
    response: str = 'y'

    def __repr__(self):
        return f"AnovaResult(kind='{self.kind}', response='{self.response}')\n{self.table}"


def anova(*models) -> AnovaResult:
    """
    ANOVA table for one linear model, or a comparison of nested models.

    Parameters
    ----------
    *models : LinearModel
        One model: sequential sums of squares, one row per predictor.
        Several models: ordered from smallest to largest, all fitted to
        the same observations.

    Returns
    -------
    AnovaResult
    """
    if not models:
        raise ValueError("anova() needs at least one model")
    for m in models:
        if not isinstance(m, LinearModel):
            raise ValueError(f"anova() supports LinearModel objects, got {type(m).__name__}")
    if len(models) == 1:
        return _sequential(models[0])
    return _compare(models)


def _sequential(model: LinearModel) -> AnovaResult:
    k = len(model.predictor_names)
    if k == 0:
        raise ValueError("Sequential ANOVA needs at least one predictor")

    y = model.y_values
    X = model.design_matrix.to_numpy()
    offset = 1 if model.intercept else 0

    # RSS after adding each predictor in turn
    rss = [np.sum((y - np.mean(y)) ** 2) if model.intercept else np.sum(y ** 2)]
    for j in range(1, k):
        sub = LinearModel(y, X[:, offset:offset + j], intercept=model.intercept,
                          backend=model.backend)
        rss.append(sub.rss)
    rss.append(model.rss)

    ss = -np.diff(np.asarray(rss, dtype=np.float64))
    mse = model.rss / model.df_residual
    with np.errstate(divide='ignore', invalid='ignore'):
        f_values = ss / mse
    p_values = stats.f.sf(f_values, 1, model.df_residual)

    table = pd.DataFrame({
        'Df': np.append(np.ones(k, dtype=int), model.df_residual),
        'Sum Sq': np.append(ss, model.rss),
        'Mean Sq': np.append(ss, mse),
        'F value': np.append(f_values, np.nan),
        'Pr(>F)': np.append(p_values, np.nan),
    }, index=list(model.predictor_names) + ['Residuals'])
    return AnovaResult(table=table, kind='sequential', response=model.y_name)


def _compare(models) -> AnovaResult:
    n = models[0].n_obs
    if any(m.n_obs != n for m in models):
        raise ValueError("Models were not all fitted to the same number of observations")

    df_res = np.array([m.df_residual for m in models])
    rss = np.array([m.rss for m in models], dtype=np.float64)
    df = -np.diff(df_res)
    if np.any(df <= 0):
        raise ValueError("Models must be nested and ordered from smallest to largest")

    ss = -np.diff(rss)
    # Scale from the largest model
    scale = rss[-1] / df_res[-1]
    with np.errstate(divide='ignore', invalid='ignore'):
        f_values = ss / df / scale
    p_values = stats.f.sf(f_values, df, df_res[-1])

    table = pd.DataFrame({
        'Res.Df': df_res,
        'RSS': rss,
        'Df': np.append(np.nan, df),
        'Sum of Sq': np.append(np.nan, ss),
        'F': np.append(np.nan, f_values),
        'Pr(>F)': np.append(np.nan, p_values),
    }, index=[str(i + 1) for i in range(len(models))])
    return AnovaResult(table=table, kind='comparison', response=models[0].y_name)
