"""
Model frames and design matrices.

A model frame fixes, once per fit, which rows take part (rows with a
missing response are dropped), the response vector, prior weights, and
the frozen design matrix shared by the fitted model and its diagnostics.
"""

import numpy as np
import pandas as pd
from dataclasses import dataclass
from typing import List, Optional

from .matrix import Matrix
from .._utils import predictor_columns, response_values, as_numeric_with_missing
from ..exceptions import DimensionMismatchError, InsufficientDataError


@dataclass
class ModelFrame:
    """Data for one fit after missing-value handling."""
    y: np.ndarray                 # Response (valid rows only)
    X: Matrix                     # Design matrix (frozen)
    weights: np.ndarray           # Prior weights (valid rows only)
    coef_names: List[str]         # (Intercept), then predictor names
    predictor_names: List[str]    # Predictor names (no intercept)
    valid_index: np.ndarray       # Positions of kept rows in the input
    n_total: int                  # Rows before missing removal
    intercept: bool
    y_name: str = 'y'

    @property
    def n(self) -> int:
        return self.X.rows

    @property
    def p(self) -> int:
        return self.X.cols


def build_design_matrix(columns, n: int, intercept: bool = True) -> Matrix:
    """
    Design matrix [1 | x1 ... xk].

    Parameters
    ----------
    columns : list of ndarray
        Predictor columns, each of length n
    n : int
        Number of rows
    intercept : bool
        Prepend a column of ones
    """
    cols = []
    if intercept:
        cols.append(np.ones(n, dtype=np.float64))
    for j, col in enumerate(columns):
        col = np.asarray(col, dtype=np.float64)
        if col.shape != (n,):
            raise DimensionMismatchError(
                f"Predictor {j + 1} has length {col.size}, expected {n}"
            )
        cols.append(col)
    if not cols:
        raise ValueError("Model has no parameters (no intercept and no predictors)")
    return Matrix.from_columns(cols)


def model_frame(
    y,
    X,
    data: Optional[pd.DataFrame] = None,
    intercept: bool = True,
    weights=None,
) -> ModelFrame:
    """
    Assemble the response, weights and design matrix for one fit.

    Raises
    ------
    DimensionMismatchError
        Predictor or weight length differs from the response length.
    InsufficientDataError
        No more valid observations than parameters.
    ValueError
        Missing predictor values in a kept row, or invalid weights.
    """
    y_all, y_missing, y_name = response_values(y, data)
    n_total = y_all.size

    columns, names = predictor_columns(X, data)
    for name, col in zip(names, columns):
        if col.size != n_total:
            raise DimensionMismatchError(
                f"Predictor '{name}' has length {col.size} but response has {n_total}"
            )

    p = len(columns) + (1 if intercept else 0)
    if p == 0:
        raise ValueError("Model has no parameters (no intercept and no predictors)")

    valid = ~y_missing
    valid_index = np.flatnonzero(valid)
    n = valid_index.size
    if n == 0:
        raise InsufficientDataError(0, p)

    kept = []
    for j, (name, col) in enumerate(zip(names, columns)):
        col = col[valid]
        if np.any(np.isnan(col)):
            raise ValueError(f"NA values in predictor {j + 1} ('{name}') not supported")
        kept.append(col)

    if weights is None:
        w = np.ones(n, dtype=np.float64)
    else:
        if isinstance(weights, str):
            if data is None:
                raise ValueError("Must provide data when weights is a string")
            weights = data[weights]
        w_all, w_missing = as_numeric_with_missing(weights, name='weights')
        if w_all.size != n_total:
            raise DimensionMismatchError(
                f"Weights have length {w_all.size} but response has {n_total}"
            )
        w = w_all[valid]
        if np.any(np.isnan(w)):
            raise ValueError("NA values in weights not supported")
        if np.any(w < 0):
            raise ValueError("Negative weights not allowed")

    if n <= p:
        raise InsufficientDataError(n, p)

    design = build_design_matrix(kept, n, intercept).freeze()
    coef_names = (['(Intercept)'] if intercept else []) + list(names)

    return ModelFrame(
        y=y_all[valid],
        X=design,
        weights=w,
        coef_names=coef_names,
        predictor_names=list(names),
        valid_index=valid_index,
        n_total=n_total,
        intercept=intercept,
        y_name=y_name,
    )


def newdata_design(newdata, predictor_names, intercept: bool) -> Matrix:
    """
    Design matrix for prediction on new predictor values.

    A DataFrame is matched to the fitted predictors by column name; any
    other form must supply the predictors in fitting order.
    """
    k = len(predictor_names)
    if isinstance(newdata, pd.DataFrame):
        missing = [name for name in predictor_names if name not in newdata.columns]
        if missing:
            raise KeyError(f"Columns not found in newdata: {missing}")
        columns, _ = predictor_columns(newdata[list(predictor_names)])
    else:
        columns, _ = predictor_columns(newdata)

    if len(columns) != k:
        raise DimensionMismatchError(
            f"Model has {k} predictors but newdata supplies {len(columns)}"
        )
    if k == 0:
        raise ValueError("Cannot infer the number of rows for an intercept-only model; "
                         "use fitted values instead")

    n = columns[0].size
    for col in columns:
        if col.size != n:
            raise DimensionMismatchError("All predictors in newdata must have same length")
        if np.any(np.isnan(col)):
            raise ValueError("NA values in newdata not supported")
    return build_design_matrix(columns, n, intercept)
