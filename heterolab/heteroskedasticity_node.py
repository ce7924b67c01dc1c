"""
Heteroskedasticity Correction Node for KNIME.

This node performs OLS (Ordinary Least Squares) regression, tests the
residuals for heteroskedasticity and corrects for it.

What This Node Does:
--------------------
1. Takes your data with a target variable (y) and predictor variables (X)
2. Fits a regression model: y = β₀ + β₁X₁ + β₂X₂ + ... + error
3. Runs the Breusch-Pagan and Non-Constant Variance tests on the residuals
4. If the variance is not constant, Box-Cox transforms the target,
   refits the model and runs the tests again
5. Reports coefficient tests with heteroskedasticity-consistent (robust)
   standard errors, which stay valid even when the variance is not constant
6. Returns four outputs:
   - Input rows with predictions, residuals and the transformed target
   - Model summary (coefficients, p-values, R²)
   - Heteroskedasticity test results before and after the transform
   - Robust coefficient tests
"""

import knime.extension as knext
import numpy as np
import pandas as pd

from .heteroskedasticity import (
    run_heteroskedasticity_workflow,
    CovarianceType,
    LambdaSearch,
    AdditionalTest,
    target_column_param,
    predictor_columns_param,
    alpha_param,
    cov_type_param,
    boxcox_mode_param,
    lambda_search_param,
    additional_test_param,
    gq_sort_variable_param,
    gq_split_fraction_param,
    output_detail_param,
    format_p_value,
)


heteroskedasticity_category = knext.category(
    path="/community",
    level_id="utd_development",
    name="University of Texas at Dallas Development",
    description="Statistical Analysis Tools",
    icon="./icons/utd.png",
)


def format_model_summary(coef_table: pd.DataFrame, metrics_table: pd.DataFrame, output_detail: str) -> pd.DataFrame:
    """Combine coefficient and metric tables into one KNIME output table."""
    metrics_table = metrics_table.copy()

    if output_detail == "Basic":
        coef_out = coef_table[["Variable", "Coefficient", "P>|t|"]].copy()
        coef_out.rename(columns={"P>|t|": "P-Value"}, inplace=True)
        coef_out["P-Value"] = coef_out["P-Value"].apply(format_p_value)

        key_metrics = ["R-squared", "Adjusted R-squared", "F-statistic", "Prob (F-statistic)", "No. Observations"]
        metrics_table = metrics_table[metrics_table["Metric"].isin(key_metrics)].copy()
        metrics_table.insert(0, "Variable", "")
        metrics_table.insert(1, "Coefficient", np.nan)
        metrics_table.insert(2, "P-Value", "")
    else:
        coef_out = coef_table[["Variable", "Coefficient", "Std Error", "P>|t|"]].copy()
        coef_out["P>|t|"] = coef_out["P>|t|"].apply(format_p_value)

        metrics_table.insert(0, "Variable", "")
        metrics_table.insert(1, "Coefficient", np.nan)
        metrics_table.insert(2, "Std Error", np.nan)
        metrics_table.insert(3, "P>|t|", "")

    coef_out["Metric"] = ""
    coef_out["Value"] = np.nan

    return pd.concat([coef_out, metrics_table], ignore_index=True)


@knext.node(
    name="Heteroskedasticity Correction",
    node_type=knext.NodeType.MANIPULATOR,
    icon_path="./icons/bell_curve.png",
    category=heteroskedasticity_category,
)
@knext.input_table(name="Input Data", description="Table containing target and predictor variables for regression analysis.")
@knext.output_table(
    name="Data with Predictions",
    description="Input rows with prediction and residual columns, plus the Box-Cox transformed target when applied.",
)
@knext.output_table(name="Model Summary", description="Regression coefficients, p-values, and model fit statistics.")
@knext.output_table(
    name="Heteroskedasticity Tests",
    description="Breusch-Pagan and Non-Constant Variance test results for the original and the transformed model.",
)
@knext.output_table(name="Robust Coefficients", description="Coefficient t-tests using heteroskedasticity-consistent standard errors.")
class HeteroskedasticityCorrectionNode:
    """
    KNIME node for detecting and correcting heteroskedasticity in OLS regression.

    The Box-Cox transform changes the model so its residual variance becomes
    constant. Robust standard errors keep the model and fix only its
    inference. Both are reported so they can be compared.
    """

    target_column = target_column_param
    predictor_columns = predictor_columns_param
    alpha = alpha_param
    cov_type = cov_type_param
    boxcox_mode = boxcox_mode_param
    lambda_search = lambda_search_param
    additional_test = additional_test_param
    gq_sort_variable = gq_sort_variable_param
    gq_split_fraction = gq_split_fraction_param
    output_detail = output_detail_param

    def configure(self, cfg_ctx, input_spec):
        # Output 1 depends on which rows and columns survive preparation
        data_schema = None

        if self.output_detail == "Basic":
            model_summary_cols = [
                knext.Column(knext.string(), "Variable"),
                knext.Column(knext.double(), "Coefficient"),
                knext.Column(knext.string(), "P-Value"),
                knext.Column(knext.string(), "Metric"),
                knext.Column(knext.double(), "Value"),
            ]
        else:
            model_summary_cols = [
                knext.Column(knext.string(), "Variable"),
                knext.Column(knext.double(), "Coefficient"),
                knext.Column(knext.double(), "Std Error"),
                knext.Column(knext.string(), "P>|t|"),
                knext.Column(knext.string(), "Metric"),
                knext.Column(knext.double(), "Value"),
            ]
        model_summary_schema = knext.Schema.from_columns(model_summary_cols)

        test_results_cols = [
            knext.Column(knext.string(), "Stage"),
            knext.Column(knext.string(), "Test"),
            knext.Column(knext.double(), "Test Statistic"),
            knext.Column(knext.int64(), "DF"),
            knext.Column(knext.string(), "P-Value"),
            knext.Column(knext.string(), "Heteroskedasticity"),
            knext.Column(knext.string(), "Interpretation"),
        ]
        test_results_schema = knext.Schema.from_columns(test_results_cols)

        robust_cols = [
            knext.Column(knext.string(), "Variable"),
            knext.Column(knext.double(), "Coefficient"),
            knext.Column(knext.double(), "Robust Std Error"),
            knext.Column(knext.double(), "t-statistic"),
            knext.Column(knext.string(), "P>|t|"),
            knext.Column(knext.string(), "Covariance Type"),
        ]
        robust_schema = knext.Schema.from_columns(robust_cols)

        return data_schema, model_summary_schema, test_results_schema, robust_schema

    def _additional_test(self):
        if self.additional_test == AdditionalTest.WHITE.name:
            return "white"
        if self.additional_test == AdditionalTest.GOLDFELD_QUANDT.name:
            return "goldfeld_quandt"
        return None

    def execute(self, exec_ctx, input_table):
        df = input_table.to_pandas()

        result = run_heteroskedasticity_workflow(
            df=df,
            target_column=self.target_column,
            predictor_columns=self.predictor_columns,
            alpha=self.alpha,
            cov_type=CovarianceType.to_cov_type(self.cov_type),
            boxcox_mode=self.boxcox_mode.lower(),
            lambda_method=LambdaSearch.to_method(self.lambda_search),
            additional_test=self._additional_test(),
            gq_sort_variable=self.gq_sort_variable,
            gq_split_fraction=self.gq_split_fraction,
            fail_on_missing=True,
        )

        for warning_msg in result["warnings"]:
            knext.LOGGER.warning(warning_msg)
            exec_ctx.set_warning(warning_msg)

        for test_result in result["results"] + result["transformed_results"]:
            knext.LOGGER.info(f"{test_result.test}: statistic={test_result.statistic:.4f}, p={test_result.p_value:.4g} ({test_result.decision})")

        if result["boxcox"] is not None:
            knext.LOGGER.info(f"Box-Cox applied to '{self.target_column}' with λ = {result['boxcox'].lmbda:g}")

        model_summary = format_model_summary(result["coefficients"], result["metrics"], self.output_detail)

        test_results_df = result["diagnostics"].copy()
        test_results_df["P-Value"] = test_results_df["P-Value"].apply(format_p_value)

        robust_df = result["robust_coefficients"].copy()
        robust_df["P>|t|"] = robust_df["P>|t|"].apply(format_p_value)

        return (
            knext.Table.from_pandas(result["data"]),
            knext.Table.from_pandas(model_summary),
            knext.Table.from_pandas(test_results_df),
            knext.Table.from_pandas(robust_df),
        )
