"""
Influence diagnostics for fitted models.

Leverage, Cook's distance, DFFITS and DFBETAS computed from the design
matrix retained by a fitted LinearModel or GLMResult. The model is only
read, never modified.
"""

import warnings

import numpy as np
import pandas as pd
from dataclasses import dataclass, field
from typing import List, Optional

from ._backends import get_backend
from ._core.control import LEVERAGE_TOL, EXACT_FIT_TOL
from .exceptions import SingularMatrixError, InfluenceWarning


@dataclass
class InfluentialObservation:
    """One observation exceeding at least one influence threshold."""
    observation: int              # Row of the fitted data (0-based)
    reasons: List[str]
    leverage: float
    cooks_d: float
    dffits: float
    row: Optional[int] = None     # Position in the input before missing removal


@dataclass
class DiagnosticsReport:
    """Per-observation influence measures and flagged observations."""
    leverage: np.ndarray
    cooks_distance: np.ndarray
    standardized_residuals: np.ndarray
    studentized_residuals: np.ndarray
    dffits: np.ndarray
    dfbetas: np.ndarray                     # shape (n, p)
    influential: List[InfluentialObservation]

    max_cooks_d: float
    max_leverage: float
    mean_leverage: float                    # p / n

    thresholds: dict = field(default_factory=dict)
    coef_names: List[str] = field(default_factory=list)

    def to_frame(self) -> pd.DataFrame:
        """Per-observation measures as a DataFrame (one DFBETAS column per coefficient)."""
        frame = pd.DataFrame({
            'leverage': self.leverage,
            'cooks_d': self.cooks_distance,
            'std_resid': self.standardized_residuals,
            'student_resid': self.studentized_residuals,
            'dffits': self.dffits,
        })
        names = self.coef_names or [str(j) for j in range(self.dfbetas.shape[1])]
        for j, name in enumerate(names):
            frame[f'dfbetas_{name}'] = self.dfbetas[:, j]
        return frame


def influence_thresholds(n: int, p: int) -> dict:
    """Conventional cut-offs for flagging influential observations."""
    return {
        'leverage': 2 * p / n,
        'cooks_d': 4 / n,
        'dffits': 2 * np.sqrt(p / n),
        'dfbetas': 2 / np.sqrt(n),
    }


def _flag(leverage, cooks_d, dffits, dfbetas, thresholds, valid_index=None):
    flagged = []
    for i in range(leverage.size):
        reasons = []
        if leverage[i] > thresholds['leverage']:
            reasons.append('high leverage')
        if cooks_d[i] > thresholds['cooks_d']:
            reasons.append("high Cook's D")
        if abs(dffits[i]) > thresholds['dffits']:
            reasons.append('high DFFITS')
        over = np.flatnonzero(np.abs(dfbetas[i]) > thresholds['dfbetas'])
        if over.size > 0:
            reasons.append(f'high DFBETAS[{over[0]}]')
        if reasons:
            flagged.append(InfluentialObservation(
                observation=i,
                reasons=reasons,
                leverage=float(leverage[i]),
                cooks_d=float(cooks_d[i]),
                dffits=float(dffits[i]),
                row=None if valid_index is None else int(valid_index[i]),
            ))
    return flagged


def _finite_max(values) -> float:
    finite = values[np.isfinite(values)]
    return float(np.max(finite)) if finite.size > 0 else np.nan


def diagnostics(model) -> DiagnosticsReport:
    """
    Compute influence diagnostics for a fitted model.

    Parameters
    ----------
    model : LinearModel or GLMResult
        Fitted model retaining its design matrix, residuals and sigma

    Returns
    -------
    DiagnosticsReport

    Notes
    -----
    With h the hat values, r the response residuals, σ the residual
    standard error and t the studentized residuals:

        standardized   r / σ
        studentized    r / (σ √(1 - h))
        Cook's D       (r/σ)² h / (p (1 - h))
        DFFITS         t √(h / (1 - h))
        DFBETAS_ij     t x_ij / (σ √((X'X)⁻¹_jj) √(1 - h))

    Flags: h > 2p/n, Cook's D > 4/n, |DFFITS| > 2√(p/n),
    |DFBETAS| > 2/√n (first offending coefficient reported).

    An exact fit (σ = 0) leaves every residual-based measure undefined,
    and an observation with h = 1 has undefined deletion measures. Both
    are reported as NaN with an InfluenceWarning.
    """
    X_mat = getattr(model, 'design_matrix', None)
    if X_mat is None:
        raise ValueError("design matrix required: model must retain its design matrix")

    X = X_mat.to_numpy()
    n, p = X.shape
    r = np.asarray(model.residuals, dtype=np.float64)
    sigma = float(model.sigma)

    backend = getattr(model, 'backend', None) or get_backend()
    try:
        xtx_inv = backend.invert(X_mat.T @ X_mat).to_numpy()
    except SingularMatrixError as e:
        raise SingularMatrixError(
            "X'X is singular; influence measures need a full-rank design", row=e.row
        ) from e

    # h_i = x_i' (X'X)⁻¹ x_i
    leverage = np.clip(np.einsum('ij,jk,ik->i', X, xtx_inv, X), 0.0, 1.0)

    fitted = np.asarray(model.fitted_values, dtype=np.float64)
    exact_fit = not sigma > EXACT_FIT_TOL * max(1.0, float(np.max(np.abs(fitted))))
    if exact_fit:
        warnings.warn(
            "residual standard error is zero (exact fit); residual-based "
            "influence measures are undefined and reported as NaN",
            InfluenceWarning,
            stacklevel=2,
        )
    saturated = leverage >= 1 - LEVERAGE_TOL
    if np.any(saturated):
        warnings.warn(
            f"observations {np.flatnonzero(saturated).tolist()} have leverage 1; "
            "their deletion measures are undefined and reported as NaN",
            InfluenceWarning,
            stacklevel=2,
        )

    with np.errstate(divide='ignore', invalid='ignore'):
        std_resid = r / sigma
        student = r / (sigma * np.sqrt(1 - leverage))
        cooks_d = std_resid ** 2 * leverage / (p * (1 - leverage))
        dffits = student * np.sqrt(leverage / (1 - leverage))
        se = sigma * np.sqrt(np.maximum(np.diag(xtx_inv), 0.0))
        dfbetas = (student / np.sqrt(1 - leverage))[:, np.newaxis] * X / se[np.newaxis, :]

    undefined = saturated | exact_fit
    if exact_fit:
        std_resid[:] = np.nan
    student[undefined] = np.nan
    cooks_d[undefined] = np.nan
    dffits[undefined] = np.nan
    dfbetas[undefined] = np.nan

    thresholds = influence_thresholds(n, p)
    influential = _flag(leverage, cooks_d, dffits, dfbetas, thresholds,
                        getattr(model, 'valid_index', None))

    coef_names = getattr(model, 'var_names', None) or getattr(model, 'coef_names', None) or []

    return DiagnosticsReport(
        leverage=leverage,
        cooks_distance=cooks_d,
        standardized_residuals=std_resid,
        studentized_residuals=student,
        dffits=dffits,
        dfbetas=dfbetas,
        influential=influential,
        max_cooks_d=_finite_max(cooks_d),
        max_leverage=float(np.max(leverage)),
        mean_leverage=p / n,
        thresholds=thresholds,
        coef_names=list(coef_names),
    )
