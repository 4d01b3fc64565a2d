"""
Test the linear model against R and exact-fit cases.

Coefficients, standard errors and fit statistics are compared with
values from R's lm(); exact fits check the degenerate branches.
"""

import warnings

import pytest
import numpy as np
import pandas as pd
import json
from pathlib import Path
from scipy import stats

from regcore import lm, LinearModel
from regcore.exceptions import (
    DimensionMismatchError,
    InsufficientDataError,
    RankDeficientWarning,
)


# Tolerance levels
EXACT_TOL = 1e-9      # Exact fits
R_TOL = 1e-6          # Against R output printed to 7 significant digits
R_SE_TOL = 1e-5       # Standard errors printed to 6 significant digits


def load_fixture(name):
    """Load a test fixture from JSON."""
    fixture_path = Path(__file__).parent / "fixtures" / f"{name}.json"
    with open(fixture_path, 'r') as f:
        return json.load(f)


@pytest.fixture
def mtcars():
    fixture = load_fixture("mtcars_mpg_wt")
    data = pd.DataFrame({'mpg': fixture['mpg'], 'wt': fixture['wt']})
    return data, fixture


@pytest.fixture
def noisy():
    rng = np.random.default_rng(123)
    n = 40
    x1 = rng.normal(size=n)
    x2 = rng.normal(size=n)
    y = 1.0 + 2.0 * x1 - 0.5 * x2 + rng.normal(scale=0.3, size=n)
    return y, x1, x2


class TestAgainstR:
    """lm(mpg ~ wt, data = mtcars)."""

    def test_coefficients(self, mtcars):
        data, fixture = mtcars
        model = lm(y='mpg', X=['wt'], data=data)
        np.testing.assert_allclose(
            model.coefficients, fixture['coefficients'], rtol=R_TOL,
            err_msg="Coefficients don't match R"
        )
        assert list(model.coef.index) == ['(Intercept)', 'wt']

    def test_inference(self, mtcars):
        data, fixture = mtcars
        model = lm(y='mpg', X=['wt'], data=data)
        np.testing.assert_allclose(model.std_errors, fixture['std_errors'], rtol=R_SE_TOL,
                                   err_msg="Standard errors don't match R")
        np.testing.assert_allclose(model.sigma, fixture['sigma'], rtol=R_TOL)
        np.testing.assert_allclose(model.r_squared, fixture['r_squared'], rtol=R_TOL)
        np.testing.assert_allclose(model.adj_r_squared, fixture['adj_r_squared'], rtol=R_TOL)
        np.testing.assert_allclose(model.f_statistic, fixture['f_statistic'], rtol=R_TOL)
        assert model.df_residual == fixture['df_residual']
        assert model.df_model == 1
        assert model.df_total == 31

    def test_pvalues_consistent(self, mtcars):
        data, _ = mtcars
        model = lm(y='mpg', X=['wt'], data=data)
        expected = 2 * stats.t.sf(np.abs(model.t_values), model.df_residual)
        np.testing.assert_allclose(model.pvalues, expected)
        # Simple regression: F = t² for the slope
        np.testing.assert_allclose(model.f_statistic, model.t_values[1] ** 2, rtol=1e-10)
        np.testing.assert_allclose(model.f_pvalue, model.pvalues[1], rtol=1e-6)

    def test_lapack_backend_agrees(self, mtcars):
        data, _ = mtcars
        ref = lm(y='mpg', X=['wt'], data=data)
        lap = lm(y='mpg', X=['wt'], data=data, backend='lapack')
        np.testing.assert_allclose(lap.coefficients, ref.coefficients, rtol=1e-10)
        np.testing.assert_allclose(lap.std_errors, ref.std_errors, rtol=1e-10)


class TestExactFits:
    """Perfectly linear data."""

    def test_two_plus_three_x(self):
        fixture = load_fixture("exact_linear")
        model = lm(fixture['y'], [fixture['x']])
        np.testing.assert_allclose(model.coefficients, fixture['coefficients'], atol=EXACT_TOL)
        np.testing.assert_allclose(model.r_squared, fixture['r_squared'], atol=EXACT_TOL)
        assert model.method == 'qr'

    def test_through_origin_data(self):
        x = [1, 2, 3, 4, 5]
        y = [2, 4, 6, 8, 10]
        model = lm(y, [x])
        np.testing.assert_allclose(model.coefficients, [0.0, 2.0], atol=EXACT_TOL)
        np.testing.assert_allclose(model.r_squared, 1.0, atol=EXACT_TOL)
        np.testing.assert_allclose(model.residuals, 0.0, atol=EXACT_TOL)

    def test_constant_response(self):
        with np.errstate(all='ignore'):
            model = lm([3.0, 3.0, 3.0, 3.0], [[1.0, 2.0, 3.0, 4.0]])
        assert model.r_squared == 0.0
        assert np.isnan(model.adj_r_squared)


class TestModelStatistics:
    """Statistics on noisy data."""

    def test_r_squared_definition(self, noisy):
        y, x1, x2 = noisy
        model = lm(y, [x1, x2])
        tss = np.sum((y - y.mean()) ** 2)
        rss = np.sum(model.residuals ** 2)
        np.testing.assert_allclose(model.r_squared, 1 - rss / tss)
        np.testing.assert_allclose(
            model.adj_r_squared, 1 - (rss / (40 - 3)) / (tss / 39)
        )
        np.testing.assert_allclose(model.sigma, np.sqrt(rss / 37))

    def test_standard_errors_from_normal_equations(self, noisy):
        y, x1, x2 = noisy
        model = lm(y, [x1, x2])
        X = np.column_stack([np.ones(40), x1, x2])
        expected = model.sigma * np.sqrt(np.diag(np.linalg.inv(X.T @ X)))
        np.testing.assert_allclose(model.std_errors, expected, rtol=1e-8)

    def test_vcov_diagonal(self, noisy):
        y, x1, x2 = noisy
        model = lm(y, [x1, x2])
        np.testing.assert_allclose(np.sqrt(np.diag(model.vcov)), model.std_errors)

    def test_no_intercept(self, noisy):
        y, x1, _ = noisy
        model = lm(y, [x1], intercept=False)
        assert model.var_names == ['x1']
        assert model.df_model == 1
        assert model.df_residual == 39
        expected = np.sum(x1 * y) / np.sum(x1 * x1)
        np.testing.assert_allclose(model.coefficients, [expected])

    def test_intercept_only(self, noisy):
        y, _, _ = noisy
        model = lm(y, None)
        np.testing.assert_allclose(model.coefficients, [y.mean()])
        assert model.df_model == 0
        assert np.isnan(model.f_statistic)
        assert np.isnan(model.f_pvalue)

    def test_summary_table(self, noisy):
        y, x1, x2 = noisy
        model = lm(y, [x1, x2])
        table = model.summary()
        assert list(table.columns) == ['Estimate', 'Std. Error', 't value', 'Pr(>|t|)']
        assert list(table.index) == ['(Intercept)', 'x1', 'x2']
        np.testing.assert_allclose(table['t value'], model.t_values)

    def test_conf_int(self, noisy):
        y, x1, x2 = noisy
        model = lm(y, [x1, x2])
        ci = model.conf_int(alpha=0.05)
        t_crit = stats.t.ppf(0.975, 37)
        np.testing.assert_allclose(ci['upper'] - ci['lower'], 2 * t_crit * model.std_errors)
        assert np.all(ci['lower'] < model.coefficients)


class TestInputs:
    """Missing values and argument validation."""

    def test_missing_response_rows_dropped(self):
        y = [1.0, None, 3.1, 3.9, np.nan, 6.2, 6.8]
        x = [1.0, 2.0, 3.0, 4.0, 5.0, 6.0, 7.0]
        model = lm(y, [x])
        assert model.n_obs == 5
        np.testing.assert_array_equal(model.valid_index, [0, 2, 3, 5, 6])
        full = lm([1.0, 3.1, 3.9, 6.2, 6.8], [[1.0, 3.0, 4.0, 6.0, 7.0]])
        np.testing.assert_allclose(model.coefficients, full.coefficients)

    def test_pandas_na_response(self):
        data = pd.DataFrame({
            'y': pd.array([1.0, pd.NA, 2.0, 3.5, 4.0], dtype='Float64'),
            'x': [1.0, 2.0, 3.0, 4.0, 5.0],
        })
        model = lm('y', ['x'], data=data)
        assert model.n_obs == 4

    def test_missing_predictor_in_kept_row(self):
        with pytest.raises(ValueError, match="NA"):
            lm([1.0, 2.0, 3.0, 4.0], [[1.0, np.nan, 3.0, 4.0]])

    def test_missing_predictor_in_dropped_row(self):
        model = lm([1.0, None, 3.0, 4.5, 5.0], [[1.0, np.nan, 3.0, 4.0, 5.0]])
        assert model.n_obs == 4

    def test_infinite_values_rejected(self):
        with pytest.raises(ValueError, match="Inf"):
            lm([1.0, 2.0, np.inf, 4.0], [[1.0, 2.0, 3.0, 4.0]])

    def test_insufficient_data(self):
        with pytest.raises(InsufficientDataError) as excinfo:
            lm([1.0, 2.0], [[1.0, 2.0]])
        assert excinfo.value.n == 2
        assert excinfo.value.p == 2

    def test_insufficient_after_missing_removal(self):
        with pytest.raises(InsufficientDataError, match=r"\(2\) for 2"):
            lm([1.0, None, 2.0, None], [[1.0, 2.0, 3.0, 4.0]])

    def test_length_mismatch(self):
        with pytest.raises(DimensionMismatchError):
            lm([1.0, 2.0, 3.0, 4.0], [[1.0, 2.0, 3.0]])

    def test_string_y_requires_data(self):
        with pytest.raises(ValueError, match="Must provide data"):
            lm('y', ['x'])

    def test_array_predictors(self, noisy):
        y, x1, x2 = noisy
        a = lm(y, np.column_stack([x1, x2]))
        b = lm(y, [x1, x2])
        np.testing.assert_allclose(a.coefficients, b.coefficients)
        assert a.var_names == ['(Intercept)', 'x1', 'x2']


class TestRankDeficient:
    """Duplicated predictors: minimum-norm fit, undefined inference."""

    def test_duplicated_column(self):
        fixture = load_fixture("duplicated_column")
        x = fixture['x']
        with pytest.warns(RankDeficientWarning):
            model = lm(fixture['y'], [x, x])
        assert model.method == 'pseudoinverse'
        np.testing.assert_allclose(
            model.coefficients, fixture['min_norm_coefficients'], atol=1e-8
        )
        assert np.all(np.isnan(model.std_errors))
        assert np.all(np.isnan(model.pvalues))
        np.testing.assert_allclose(model.residuals, 0.0, atol=1e-8)

    def test_duplicated_column_at_data_scale(self):
        rng = np.random.default_rng(11)
        x = rng.standard_normal(25) * 100
        y = 3 + 0.5 * x + rng.standard_normal(25)
        with pytest.warns(RankDeficientWarning):
            model = lm(y, [x, x])
        assert model.method == 'pseudoinverse'
        # Slope shared evenly between the copies
        np.testing.assert_allclose(model.coefficients[1], model.coefficients[2], rtol=1e-6)
        single = lm(y, [x])
        np.testing.assert_allclose(model.fitted_values, single.fitted_values, atol=1e-6)
        np.testing.assert_allclose(2 * model.coefficients[1], single.coefficients[1], rtol=1e-6)


class TestPredict:
    """Prediction and intervals."""

    def test_reproduces_fitted_values(self, noisy):
        y, x1, x2 = noisy
        model = lm(y, [x1])
        np.testing.assert_allclose(model.predict([x1]), model.fitted_values, atol=EXACT_TOL)

    def test_default_newdata(self, noisy):
        y, x1, _ = noisy
        model = lm(y, [x1])
        np.testing.assert_allclose(model.predict(), model.fitted_values)

    def test_dataframe_by_name(self, mtcars):
        data, fixture = mtcars
        model = lm(y='mpg', X=['wt'], data=data)
        new = pd.DataFrame({'other': [0.0, 0.0], 'wt': [3.0, 4.0]})
        b0, b1 = fixture['coefficients']
        np.testing.assert_allclose(model.predict(new), [b0 + 3 * b1, b0 + 4 * b1], rtol=R_TOL)

    def test_wrong_predictor_count(self, noisy):
        y, x1, x2 = noisy
        model = lm(y, [x1, x2])
        with pytest.raises(DimensionMismatchError):
            model.predict([[1.0, 2.0]])

    def test_confidence_interval(self, noisy):
        y, x1, x2 = noisy
        model = lm(y, [x1, x2])
        new = [[0.0, 1.0], [0.5, -1.0]]
        out = model.predict(new, interval='confidence', level=0.9)
        assert list(out.columns) == ['fit', 'lwr', 'upr', 'se']

        X = np.column_stack([np.ones(40), x1, x2])
        X0 = np.array([[1.0, 0.0, 0.5], [1.0, 1.0, -1.0]])
        xtx_inv = np.linalg.inv(X.T @ X)
        se = model.sigma * np.sqrt(np.einsum('ij,jk,ik->i', X0, xtx_inv, X0))
        np.testing.assert_allclose(out['se'], se, rtol=1e-8)
        t_crit = stats.t.ppf(0.95, 37)
        np.testing.assert_allclose(out['upr'] - out['fit'], t_crit * se, rtol=1e-8)

    def test_prediction_wider_than_confidence(self, noisy):
        y, x1, _ = noisy
        model = lm(y, [x1])
        conf = model.predict([[0.0, 1.0]], interval='confidence')
        pred = model.predict([[0.0, 1.0]], interval='prediction')
        assert np.all(pred['upr'] - pred['lwr'] > conf['upr'] - conf['lwr'])
        np.testing.assert_allclose(pred['se'] ** 2, conf['se'] ** 2 + model.sigma ** 2)

    def test_unknown_interval(self, noisy):
        y, x1, _ = noisy
        model = lm(y, [x1])
        with pytest.raises(ValueError, match="Unknown interval"):
            model.predict([[0.0]], interval='tolerance')


def test_repr(noisy):
    y, x1, _ = noisy
    with warnings.catch_warnings():
        warnings.simplefilter("error")
        text = repr(LinearModel(y, [x1]))
    assert text.startswith("LinearModel(n=40, p=2")
