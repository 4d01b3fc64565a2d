"""
Test influence diagnostics.
"""

import pytest
import numpy as np
from types import SimpleNamespace

from regcore import lm, glm, Poisson, diagnostics, InfluenceWarning


LEVERAGE_TOL = 1e-6


@pytest.fixture
def outlier_model():
    # Last point sits far out in x and off the line
    x = np.array([1.0, 2.0, 3.0, 4.0, 5.0, 6.0, 7.0, 8.0, 9.0, 20.0])
    y = np.array([2.9, 5.2, 6.8, 9.1, 11.0, 13.2, 14.8, 17.1, 19.0, 25.0])
    return lm(y, [x]), x, y


def test_leverage_sums_to_p(outlier_model):
    model, _, _ = outlier_model
    report = diagnostics(model)
    np.testing.assert_allclose(report.leverage.sum(), 2.0, atol=LEVERAGE_TOL)
    np.testing.assert_allclose(report.mean_leverage, 2 / 10)


def test_leverage_matches_hat_matrix(outlier_model):
    model, x, _ = outlier_model
    X = np.column_stack([np.ones_like(x), x])
    H = X @ np.linalg.inv(X.T @ X) @ X.T
    report = diagnostics(model)
    np.testing.assert_allclose(report.leverage, np.diag(H), atol=1e-10)
    assert np.all((report.leverage >= 0) & (report.leverage <= 1))


def test_influence_formulas(outlier_model):
    model, x, _ = outlier_model
    report = diagnostics(model)
    h = report.leverage
    r = model.residuals
    s = model.sigma

    np.testing.assert_allclose(report.standardized_residuals, r / s)
    student = r / (s * np.sqrt(1 - h))
    np.testing.assert_allclose(report.studentized_residuals, student)
    np.testing.assert_allclose(report.cooks_distance, (r / s) ** 2 * h / (2 * (1 - h)))
    np.testing.assert_allclose(report.dffits, student * np.sqrt(h / (1 - h)))

    X = np.column_stack([np.ones_like(x), x])
    xtx_inv = np.linalg.inv(X.T @ X)
    expected = (student / np.sqrt(1 - h))[:, None] * X / (s * np.sqrt(np.diag(xtx_inv)))
    assert report.dfbetas.shape == (10, 2)
    np.testing.assert_allclose(report.dfbetas, expected, rtol=1e-8)

    np.testing.assert_allclose(report.max_cooks_d, report.cooks_distance.max())
    np.testing.assert_allclose(report.max_leverage, h.max())


def test_flags_outlier(outlier_model):
    model, _, _ = outlier_model
    report = diagnostics(model)
    flagged = {obs.observation: obs for obs in report.influential}
    assert 9 in flagged
    assert 'high leverage' in flagged[9].reasons
    assert "high Cook's D" in flagged[9].reasons
    assert flagged[9].row == 9


def test_flag_rules(outlier_model):
    model, _, _ = outlier_model
    report = diagnostics(model)
    t = report.thresholds
    assert t['leverage'] == pytest.approx(0.4)
    assert t['cooks_d'] == pytest.approx(0.4)
    assert t['dffits'] == pytest.approx(2 * np.sqrt(0.2))
    assert t['dfbetas'] == pytest.approx(2 / np.sqrt(10))

    flagged = {obs.observation for obs in report.influential}
    for i in range(10):
        exceeds = (report.leverage[i] > t['leverage']
                   or report.cooks_distance[i] > t['cooks_d']
                   or abs(report.dffits[i]) > t['dffits']
                   or np.any(np.abs(report.dfbetas[i]) > t['dfbetas']))
        assert (i in flagged) == exceeds


def test_dfbetas_reason_names_first_coefficient(outlier_model):
    model, _, _ = outlier_model
    report = diagnostics(model)
    t = report.thresholds['dfbetas']
    for obs in report.influential:
        dfb = [reason for reason in obs.reasons if reason.startswith('high DFBETAS')]
        over = np.flatnonzero(np.abs(report.dfbetas[obs.observation]) > t)
        if over.size:
            assert dfb == [f'high DFBETAS[{over[0]}]']
        else:
            assert dfb == []


def test_model_untouched(outlier_model):
    model, _, _ = outlier_model
    coef = model.coefficients.copy()
    resid = model.residuals.copy()
    diagnostics(model)
    np.testing.assert_array_equal(model.coefficients, coef)
    np.testing.assert_array_equal(model.residuals, resid)
    assert model.design_matrix.read_only


def test_rows_map_to_input_positions():
    x = np.array([1.0, 2.0, 3.0, 4.0, 5.0, 6.0, 7.0, 8.0, 9.0, 10.0, 30.0])
    y = np.array([2.0, np.nan, 4.1, 5.9, 8.2, 9.8, 12.1, 14.0, 15.9, 18.2, 40.0])
    report = diagnostics(lm(y, [x]))
    assert report.leverage.size == 10
    far = [obs for obs in report.influential if obs.observation == 9]
    assert far and far[0].row == 10


def test_to_frame(outlier_model):
    model, _, _ = outlier_model
    frame = diagnostics(model).to_frame()
    assert frame.shape == (10, 7)
    assert list(frame.columns[:5]) == ['leverage', 'cooks_d', 'std_resid',
                                       'student_resid', 'dffits']
    assert 'dfbetas_(Intercept)' in frame.columns
    assert 'dfbetas_x1' in frame.columns


def test_glm_model():
    x = np.array([0.5, 1.0, 1.5, 2.0, 2.5, 3.0, 3.5, 4.0, 4.5, 5.0])
    y = np.array([1, 1, 2, 4, 3, 6, 8, 9, 14, 17], dtype=float)
    fit = glm(y, [x], family=Poisson())
    report = diagnostics(fit)
    np.testing.assert_allclose(report.leverage.sum(), 2.0, atol=LEVERAGE_TOL)
    np.testing.assert_allclose(
        report.standardized_residuals,
        fit.residuals / np.sqrt(fit.deviance / fit.df_residual)
    )


def test_requires_design_matrix():
    model = SimpleNamespace(design_matrix=None, residuals=np.zeros(3), sigma=1.0)
    with pytest.raises(ValueError, match="design matrix required"):
        diagnostics(model)


def test_exact_fit_warns():
    x = np.arange(1.0, 7.0)
    model = lm(2 + 3 * x, [x])
    with pytest.warns(InfluenceWarning, match="exact fit"):
        report = diagnostics(model)
    np.testing.assert_allclose(report.leverage.sum(), 2.0, atol=LEVERAGE_TOL)
    assert np.all(np.isnan(report.standardized_residuals))
    assert np.all(np.isnan(report.cooks_distance))
    assert np.all(np.isnan(report.dfbetas))
    assert np.isnan(report.max_cooks_d)


def test_unit_leverage_warns():
    # The indicator column fits the last observation exactly
    z = np.array([1.0, 2.0, 3.0, 4.0, 5.0, 6.0, 7.0, 8.0])
    d = np.array([0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 1.0])
    y = np.array([1.2, 1.9, 3.2, 3.8, 5.1, 6.2, 6.8, 30.0])
    model = lm(y, [z, d])
    with pytest.warns(InfluenceWarning, match=r"observations \[7\] have leverage 1"):
        report = diagnostics(model)

    assert report.leverage[7] == pytest.approx(1.0)
    assert np.isnan(report.cooks_distance[7])
    assert np.isnan(report.dffits[7])
    assert np.all(np.isfinite(report.cooks_distance[:7]))
    assert np.isfinite(report.max_cooks_d)
    flagged = {obs.observation: obs for obs in report.influential}
    assert 'high leverage' in flagged[7].reasons
