"""
Utility functions.

Input normalization between the data layer (lists, NumPy arrays, pandas
objects) and the numeric core.
"""

import numbers

import numpy as np
import pandas as pd


def as_numeric_with_missing(values, name='y'):
    """
    Convert a sequence to float64, keeping missing entries explicit.

    ``None``, ``NaN`` and ``pandas.NA`` are missing. Infinite values are
    rejected rather than treated as missing.

    Returns
    -------
    values : ndarray
        Float array with NaN at missing positions
    missing : ndarray of bool
        Missing-value mask
    """
    if isinstance(values, (pd.Series, pd.Index)):
        raw = values.to_numpy(dtype=object, na_value=np.nan)
    else:
        raw = np.asarray(values, dtype=object)
    if raw.ndim != 1:
        raise ValueError(f"{name} must be 1-dimensional")

    missing = np.asarray(pd.isna(raw), dtype=bool)
    try:
        out = np.where(missing, np.nan, raw).astype(np.float64)
    except (TypeError, ValueError) as e:
        raise ValueError(f"{name} must be numeric: {e}") from e
    if np.any(np.isinf(out)):
        raise ValueError(f"{name} contains Inf")
    return out, missing


def _is_scalar(value) -> bool:
    return value is None or isinstance(value, numbers.Number) or np.ndim(value) == 0


def predictor_columns(X, data=None):
    """
    Split predictors into a list of columns.

    Accepted forms
    --------------
    - list of column names, with ``data`` a DataFrame
    - DataFrame (every column is a predictor)
    - 2-D array, shape (n, k)
    - list of k sequences (one per predictor)
    - a single 1-D sequence (one predictor)
    - ``None`` or an empty list (no predictors)

    Returns
    -------
    columns : list of ndarray
        Float columns, NaN marks missing values
    names : list of str
        Column names, or x1..xk for unnamed predictors
    """
    if X is None:
        return [], []

    if isinstance(X, str):
        X = [X]

    if isinstance(X, (list, tuple)) and len(X) > 0 and all(isinstance(x, str) for x in X):
        if data is None:
            raise ValueError("Must provide data when X is list of strings")
        missing_cols = [x for x in X if x not in data.columns]
        if missing_cols:
            raise KeyError(f"Columns not found in data: {missing_cols}")
        columns = [as_numeric_with_missing(data[x], name=x)[0] for x in X]
        return columns, list(X)

    if isinstance(X, pd.DataFrame):
        names = [str(c) for c in X.columns]
        columns = [as_numeric_with_missing(X[c], name=str(c))[0] for c in X.columns]
        return columns, names

    if isinstance(X, np.ndarray) and X.ndim == 2:
        columns = [as_numeric_with_missing(X[:, j], name=f"x{j + 1}")[0]
                   for j in range(X.shape[1])]
        return columns, [f"x{j + 1}" for j in range(X.shape[1])]

    if isinstance(X, (np.ndarray, pd.Series)) or (
            isinstance(X, (list, tuple)) and len(X) > 0 and all(_is_scalar(v) for v in X)):
        # A single predictor
        return [as_numeric_with_missing(X, name="x1")[0]], ["x1"]

    if isinstance(X, (list, tuple)):
        columns = [as_numeric_with_missing(col, name=f"x{j + 1}")[0]
                   for j, col in enumerate(X)]
        return columns, [f"x{j + 1}" for j in range(len(columns))]

    raise ValueError(
        "X must be a list of column names, a DataFrame, a 2-D array "
        "or a list of predictor vectors"
    )


def response_values(y, data=None):
    """Response as (values, missing mask, name)."""
    if isinstance(y, str):
        if data is None:
            raise ValueError("Must provide data when y is a string")
        values, missing = as_numeric_with_missing(data[y], name=y)
        return values, missing, y
    values, missing = as_numeric_with_missing(y, name='y')
    return values, missing, 'y'
