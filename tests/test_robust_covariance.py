import unittest

import numpy as np
import pandas as pd

from heterolab.heteroskedasticity import (
    COV_TYPES,
    build_fitted_model,
    fit_ols_model,
    prepare_data,
    robust_coefficient_test,
    robust_covariance,
)
from sample_data import load_cars


class TestRobustCovariance(unittest.TestCase):
    def setUp(self):
        X, y, _, _ = prepare_data(load_cars(), "dist", ["speed"])
        self.model = fit_ols_model(X, y)
        self.fitted = build_fitted_model(self.model)

    def test_matches_statsmodels_estimators(self):
        expected = {
            "HC0": self.model.cov_HC0,
            "HC1": self.model.cov_HC1,
            "HC2": self.model.cov_HC2,
            "HC3": self.model.cov_HC3,
        }

        for cov_type, matrix in expected.items():
            result = robust_covariance(self.fitted, cov_type)
            np.testing.assert_allclose(result.matrix.values, np.asarray(matrix), rtol=1e-8, err_msg=cov_type)

    def test_const_is_classical_covariance(self):
        result = robust_covariance(self.fitted, "const")

        np.testing.assert_allclose(result.matrix.values, np.asarray(self.model.cov_params()), rtol=1e-8)
        np.testing.assert_allclose(result.standard_errors.values, np.asarray(self.model.bse), rtol=1e-8)

    def test_symmetric_positive_semidefinite(self):
        for cov_type in COV_TYPES:
            matrix = robust_covariance(self.fitted, cov_type).matrix.values

            np.testing.assert_allclose(matrix, matrix.T)
            eigenvalues = np.linalg.eigvalsh(matrix)
            self.assertTrue(np.all(eigenvalues >= -1e-10 * np.abs(eigenvalues).max()), cov_type)

    def test_leverage_adjustment_inflates_variances(self):
        hc0 = np.diag(robust_covariance(self.fitted, "HC0").matrix.values)

        for cov_type in ("HC2", "HC3", "HC4"):
            adjusted = np.diag(robust_covariance(self.fitted, cov_type).matrix.values)
            self.assertTrue(np.all(adjusted >= hc0), cov_type)

    def test_hc4_weights(self):
        h = self.fitted.hat_diagonal
        delta = np.minimum(4.0, h / h.mean())
        X = self.fitted.design.values
        omega = self.fitted.residuals**2 / (1.0 - h) ** delta
        bread = np.linalg.inv(X.T @ X)
        expected = bread @ (X.T @ np.diag(omega) @ X) @ bread

        np.testing.assert_allclose(robust_covariance(self.fitted, "HC4").matrix.values, expected, rtol=1e-8)

    def test_labels(self):
        matrix = robust_covariance(self.fitted, "HC1").matrix

        self.assertEqual(list(matrix.index), ["const", "speed"])
        self.assertEqual(list(matrix.columns), ["const", "speed"])

    def test_unknown_type(self):
        with self.assertRaises(ValueError):
            robust_covariance(self.fitted, "HC5")

    def test_model_is_not_modified(self):
        before = self.fitted.coefficients.copy()

        robust_coefficient_test(self.fitted, "HC3")

        pd.testing.assert_series_equal(self.fitted.coefficients, before)


class TestRobustCoefficientTest(unittest.TestCase):
    def setUp(self):
        X, y, _, _ = prepare_data(load_cars(), "dist", ["speed"])
        self.model = fit_ols_model(X, y)
        self.fitted = build_fitted_model(self.model)

    def test_t_statistics(self):
        table = robust_coefficient_test(self.fitted, "HC1")
        std_errors = np.sqrt(np.diag(np.asarray(self.model.cov_HC1)))

        np.testing.assert_allclose(table["Robust Std Error"].values, std_errors, rtol=1e-8)
        np.testing.assert_allclose(table["t-statistic"].values, self.fitted.coefficients.values / std_errors, rtol=1e-8)
        self.assertTrue(table["P>|t|"].between(0.0, 1.0).all())
        self.assertEqual(table["Covariance Type"].unique().tolist(), ["HC1"])

    def test_const_reproduces_ols_inference(self):
        table = robust_coefficient_test(self.fitted, "const")

        np.testing.assert_allclose(table["t-statistic"].values, np.asarray(self.model.tvalues), rtol=1e-8)
        np.testing.assert_allclose(table["P>|t|"].values, np.asarray(self.model.pvalues), rtol=1e-6)


if __name__ == "__main__":
    unittest.main()
