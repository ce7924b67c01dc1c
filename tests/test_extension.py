import unittest

import numpy as np
import knime.extension as knext
import knime.extension.testing as ktest

from heterolab import HeteroskedasticityCorrectionNode
from heterolab.heteroskedasticity import CovarianceType, LambdaSearch, run_heteroskedasticity_workflow
from heterolab.heteroskedasticity_node import format_model_summary
from sample_data import load_cars


class TestHeteroskedasticityCorrectionNode(unittest.TestCase):
    """Configuration and output formatting of the node."""

    def setUp(self):
        self.schema = knext.Schema.from_columns(
            [
                knext.Column(knext.double(), "speed"),
                knext.Column(knext.double(), "dist"),
            ]
        )
        self.config_context = ktest.TestingConfigurationContext()

    def test_configure_advanced(self):
        node = HeteroskedasticityCorrectionNode()

        data_schema, summary_schema, tests_schema, robust_schema = node.configure(self.config_context, self.schema)

        # The data output depends on the input rows, so its schema is dynamic
        self.assertIsNone(data_schema)
        self.assertIn("Std Error", summary_schema.column_names)
        self.assertEqual(tests_schema.column_names[:2], ["Stage", "Test"])
        self.assertIn("Robust Std Error", robust_schema.column_names)

    def test_configure_basic(self):
        node = HeteroskedasticityCorrectionNode()
        node.output_detail = "Basic"

        _, summary_schema, _, _ = node.configure(self.config_context, self.schema)

        self.assertNotIn("Std Error", summary_schema.column_names)
        self.assertIn("P-Value", summary_schema.column_names)


class TestHeteroskedasticityCorrectionExecute(unittest.TestCase):
    """Runs the node end to end on the cars data."""

    def setUp(self):
        node = HeteroskedasticityCorrectionNode()
        node.target_column = "dist"
        node.predictor_columns = ["speed"]

        input_table = knext.Table.from_pandas(load_cars())
        exec_context = ktest.TestingExecutionContext()

        outputs = node.execute(exec_context, input_table)

        self.assertEqual(len(outputs), 4)
        self.data, self.summary, self.tests, self.robust = [table.to_pandas() for table in outputs]

    def test_data_output(self):
        self.assertEqual(len(self.data), 50)
        self.assertIn("prediction", self.data.columns)
        self.assertIn("residual", self.data.columns)
        self.assertIn("dist_boxcox", self.data.columns)
        np.testing.assert_allclose(self.data["dist_boxcox"].values, (np.sqrt(self.data["dist"].values) - 1.0) / 0.5)

    def test_model_summary_output(self):
        self.assertEqual(list(self.summary.columns), ["Variable", "Coefficient", "Std Error", "P>|t|", "Metric", "Value"])
        self.assertEqual(len(self.summary), 9)

    def test_test_results_output(self):
        self.assertEqual(len(self.tests), 4)
        self.assertEqual(self.tests["Stage"].tolist()[2:], ["Box-Cox (λ = 0.5)", "Box-Cox (λ = 0.5)"])
        self.assertEqual(self.tests["P-Value"].tolist()[:2], ["0.0730", "0.0310"])
        self.assertTrue(all(isinstance(p, str) for p in self.tests["P-Value"]))

    def test_robust_output(self):
        self.assertEqual(self.robust["Variable"].tolist(), ["const", "speed"])
        self.assertEqual(self.robust["Covariance Type"].tolist(), ["HC3", "HC3"])
        self.assertEqual(self.robust["P>|t|"].iloc[1], "< 0.001")


class TestModelSummaryFormatting(unittest.TestCase):
    def setUp(self):
        result = run_heteroskedasticity_workflow(load_cars(), "dist", ["speed"], boxcox_mode="never")
        self.coefficients = result["coefficients"]
        self.metrics = result["metrics"]

    def test_basic_summary(self):
        summary = format_model_summary(self.coefficients, self.metrics, "Basic")

        self.assertEqual(list(summary.columns), ["Variable", "Coefficient", "P-Value", "Metric", "Value"])
        # 2 coefficients + 5 key metrics
        self.assertEqual(len(summary), 7)
        self.assertTrue(np.isnan(summary["Value"].iloc[0]))

    def test_advanced_summary(self):
        summary = format_model_summary(self.coefficients, self.metrics, "Advanced")

        self.assertEqual(list(summary.columns), ["Variable", "Coefficient", "Std Error", "P>|t|", "Metric", "Value"])
        self.assertEqual(len(summary), 9)
        self.assertEqual(summary["P>|t|"].iloc[1], "< 0.001")


class TestParameterMapping(unittest.TestCase):
    def test_covariance_type(self):
        self.assertEqual(CovarianceType.to_cov_type(CovarianceType.CONST.name), "const")
        self.assertEqual(CovarianceType.to_cov_type(CovarianceType.HC4.name), "HC4")

    def test_lambda_search(self):
        self.assertEqual(LambdaSearch.to_method(LambdaSearch.MLE.name), "mle")
        self.assertEqual(LambdaSearch.to_method(LambdaSearch.GRID.name), "grid")


if __name__ == "__main__":
    unittest.main()
