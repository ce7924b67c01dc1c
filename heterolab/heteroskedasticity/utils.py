"""
Utility functions and parameters for heteroskedasticity detection and correction.

This module provides parameter definitions, enumerations, and helper functions
for the Heteroskedasticity Correction Node in KNIME.
"""

import knime.extension as knext
import pandas as pd
from typing import List


def is_numeric(col: knext.Column) -> bool:
    """
    Helper function to filter for numeric columns.

    Args:
        col: KNIME column object

    Returns:
        True if column is numeric (int or float), False otherwise
    """
    return col.ktype in (knext.double(), knext.int32(), knext.int64())


def detect_categorical_columns(df: pd.DataFrame, column_names: List[str]) -> List[str]:
    """
    Automatically detect which columns should be treated as categorical.

    Categorical columns are identified by their pandas dtype:
    - object or string (text)
    - category
    - bool

    Example:
        >>> df = pd.DataFrame({'speed': [4, 7], 'road': ['dry', 'wet']})
        >>> detect_categorical_columns(df, ['speed', 'road'])
        ['road']
    """
    categorical_cols = []

    for col_name in column_names:
        if col_name in df.columns:
            series = df[col_name]
            if (
                pd.api.types.is_object_dtype(series)
                or pd.api.types.is_string_dtype(series)
                or isinstance(series.dtype, pd.CategoricalDtype)
                or pd.api.types.is_bool_dtype(series)
            ):
                categorical_cols.append(col_name)

    return categorical_cols


def format_p_value(p):
    """
    Format p-value to avoid scientific notation (e.g., E-22) in output.

    - Very small values (< 0.001) are shown as "< 0.001"
    - Other values are rounded to 4 decimal places
    - Missing values are shown as "?"

    Example:
        >>> format_p_value(0.0456)
        '0.0456'
        >>> format_p_value(1.23e-22)
        '< 0.001'
        >>> format_p_value(None)
        '?'
    """
    if pd.isna(p) or p == "?":
        return "?"

    if p < 0.001:
        return "< 0.001"
    else:
        return f"{p:.4f}"


class CovarianceType(knext.EnumParameterOptions):
    """
    Weighting variants of the heteroskedasticity-consistent covariance estimator.
    """

    CONST = ("const", "Classical OLS covariance, assumes constant error variance. Useful as a baseline.")
    HC0 = ("HC0", "White's original estimator, uses the squared residuals directly.")
    HC1 = ("HC1", "HC0 with a degrees-of-freedom correction n / (n - k). Stata's default.")
    HC2 = ("HC2", "Divides squared residuals by (1 - leverage).")
    HC3 = ("HC3", "Divides squared residuals by (1 - leverage)². Recommended for small samples.")
    HC4 = ("HC4", "Leverage-adaptive exponent. Recommended when the data contains high-leverage points.")

    @classmethod
    def to_cov_type(cls, name: str) -> str:
        return "const" if name == cls.CONST.name else name


class BoxCoxMode(knext.EnumParameterOptions):
    """When to apply the Box-Cox transform to the target variable."""

    AUTO = ("Auto", "Transform only if a heteroskedasticity test is significant and the target is strictly positive.")
    ALWAYS = ("Always", "Always transform the target. Fails if the target has zero or negative values.")
    NEVER = ("Never", "Never transform the target; only report tests and robust standard errors.")


class LambdaSearch(knext.EnumParameterOptions):
    """How the Box-Cox exponent λ is estimated."""

    GRID = ("Grid", "Search λ in steps of 0.1 over [-2, 2], rounding values near 0 or 1.")
    MLE = ("Maximum likelihood", "Continuous maximum-likelihood search over [-2, 2].")

    @classmethod
    def to_method(cls, name: str) -> str:
        return "mle" if name == cls.MLE.name else "grid"


class AdditionalTest(knext.EnumParameterOptions):
    """Optional test run alongside Breusch-Pagan and Non-Constant Variance."""

    NONE = ("None", "Only run Breusch-Pagan and Non-Constant Variance tests.")
    WHITE = ("White", "General test that doesn't assume normal distribution. Detects more complex patterns.")
    GOLDFELD_QUANDT = ("Goldfeld-Quandt", "Compares variance between two subgroups of data. Requires a sort variable.")


# Target column parameter
target_column_param = knext.ColumnParameter(
    label="Target Variable (y)",
    description=(
        "Select the numeric column you want to predict. This is the dependent variable in your regression model. "
        "It is the column the Box-Cox transform is applied to."
    ),
    column_filter=is_numeric,
)


# Predictor columns parameter
predictor_columns_param = knext.MultiColumnParameter(
    label="Predictor Variables (X)",
    description=(
        "Select one or more columns to use as predictors (independent variables). "
        "Categorical columns will be automatically converted to dummy variables."
    ),
)


# Significance level parameter
alpha_param = knext.DoubleParameter(
    label="Significance Level (α)",
    description=(
        "Threshold for determining statistical significance (default: 0.05). "
        "If a test p-value is below this threshold, heteroskedasticity is reported."
    ),
    default_value=0.05,
    min_value=0.01,
    max_value=0.20,
)


cov_type_param = knext.EnumParameter(
    label="Robust Covariance Type",
    description="Heteroskedasticity-consistent estimator used for the robust coefficient table.",
    enum=CovarianceType,
    default_value=CovarianceType.HC3.name,
)


boxcox_mode_param = knext.EnumParameter(
    label="Box-Cox Transform",
    description=(
        "Whether to transform the target with Box-Cox, refit the model and repeat the tests. "
        "The transformed target is appended to the data output."
    ),
    enum=BoxCoxMode,
    default_value=BoxCoxMode.AUTO.name,
)


lambda_search_param = knext.EnumParameter(
    label="Box-Cox λ Search",
    description="Grid search gives rounded, easy-to-interpret exponents; maximum likelihood gives the exact optimum.",
    enum=LambdaSearch,
    default_value=LambdaSearch.GRID.name,
)


additional_test_param = knext.EnumParameter(
    label="Additional Test",
    description=(
        "Optionally run a third heteroskedasticity test:\n\n"
        "• White: More general but uses more degrees of freedom\n"
        "• Goldfeld-Quandt: Compares variance between groups"
    ),
    enum=AdditionalTest,
    default_value=AdditionalTest.NONE.name,
)


# Goldfeld-Quandt sort variable parameter
gq_sort_variable_param = knext.ColumnParameter(
    label="Sort Variable (Goldfeld-Quandt)",
    description=(
        "Select which predictor variable to sort the data by before splitting. "
        "Only used when Goldfeld-Quandt test is selected."
    ),
    column_filter=is_numeric,
)


# Goldfeld-Quandt split fraction parameter
gq_split_fraction_param = knext.DoubleParameter(
    label="Split Fraction (Goldfeld-Quandt)",
    description=(
        "Proportion of data to use in each comparison group (default: 0.5). "
        "Only used when Goldfeld-Quandt test is selected."
    ),
    default_value=0.5,
    min_value=0.2,
    max_value=0.8,
)


output_detail_param = knext.StringParameter(
    label="Output Detail Level",
    description="Choose between basic (essential statistics only) or advanced (full statistical details) model summary output.",
    default_value="Advanced",
    enum=["Basic", "Advanced"],
)
