"""
Core regression functionality for OLS (Ordinary Least Squares) modeling.

This module handles:
- Data preparation (missing values, categorical encoding)
- OLS model fitting using statsmodels
- The fitted-model snapshot used by the diagnostics and robust covariance code
- Model summary extraction

What is OLS Regression?
-----------------------
OLS finds the coefficients (β values) that minimize the sum of squared
differences between the observed response and the fitted line:

    y = β₀ + β₁*X₁ + β₂*X₂ + ... + error

Every diagnostic in this package starts from the residuals of that fit.
A good model leaves residuals that scatter evenly around zero; a fan or
funnel shape in the residuals is the visual sign of heteroskedasticity.

What is the Hat Matrix?
-----------------------
H = X (XᵗX)⁻¹ Xᵗ maps the observed response onto the fitted values.
Its diagonal entries h_i (the leverages) lie between 0 and 1 and add up
to the number of coefficients. Observations with a large h_i pull the
fit toward themselves, which is why the HC2-HC4 robust estimators inflate
their residuals before using them.
"""

from dataclasses import dataclass
from typing import List, Tuple

import numpy as np
import pandas as pd
import statsmodels.api as sm

from .errors import InsufficientDataError, SingularDesignError
from .utils import detect_categorical_columns


@dataclass(frozen=True)
class FittedModel:
    """Immutable snapshot of an OLS fit, indexed by term name."""

    coefficients: pd.Series
    fitted_values: np.ndarray
    residuals: np.ndarray
    hat_diagonal: np.ndarray
    design: pd.DataFrame
    nobs: int
    df_resid: float

    @property
    def n_coefficients(self) -> int:
        return len(self.coefficients)


def prepare_data(
    df: pd.DataFrame,
    target_column: str,
    predictor_columns: List[str],
    fail_on_missing: bool = True,
) -> Tuple[pd.DataFrame, pd.Series, List[str], List[str]]:
    """
    Prepare data for OLS regression by handling missing values and encoding categoricals.

    This function:
    1. Checks for missing values (fails or drops based on parameter)
    2. Automatically detects categorical columns
    3. Converts categorical columns to dummy variables (one-hot encoding)
    4. Drops the first dummy category to avoid perfect multicollinearity

    Args:
        df: Input pandas DataFrame
        target_column: Name of the target (y) variable
        predictor_columns: List of predictor (X) variable names
        fail_on_missing: If True, raise error on missing values. If False, drop rows with missing values.

    Returns:
        Tuple of (X, y, encoded_column_names, warnings):
        - X: DataFrame of predictors (with dummy variables), float dtype
        - y: Series of target values
        - encoded_column_names: List of final column names after encoding
        - warnings: Messages about rows dropped or columns encoded

    Raises:
        ValueError: If target or predictor columns are not found, or the target is not numeric
        ValueError: If missing values found and fail_on_missing=True
        InsufficientDataError: If fewer than 3 complete rows remain
    """
    warnings = []

    if target_column not in df.columns:
        raise ValueError(f"Target column '{target_column}' not found in input data.")

    if not predictor_columns:
        raise ValueError("No predictor columns selected. Please select at least one predictor.")

    missing_predictors = [col for col in predictor_columns if col not in df.columns]
    if missing_predictors:
        raise ValueError(f"Predictor columns not found: {missing_predictors}")

    if target_column in predictor_columns:
        raise ValueError(f"Target column '{target_column}' cannot also be used as a predictor.")

    relevant_columns = [target_column] + list(predictor_columns)
    work_df = df[relevant_columns].copy()

    missing_count = work_df.isnull().sum().sum()
    if missing_count > 0:
        if fail_on_missing:
            missing_by_col = work_df.isnull().sum()
            missing_info = missing_by_col[missing_by_col > 0].to_dict()
            raise ValueError(
                f"Missing values detected in {missing_count} cells across columns: {missing_info}. "
                "Please clean your data or configure the node to drop rows with missing values."
            )
        original_len = len(work_df)
        work_df = work_df.dropna()
        warnings.append(f"Dropped {original_len - len(work_df)} rows containing missing values.")

    if len(work_df) < 3:
        raise InsufficientDataError(
            f"Insufficient data for regression. Only {len(work_df)} complete rows available. "
            "At minimum, 3 observations are required."
        )

    if not pd.api.types.is_numeric_dtype(work_df[target_column]):
        raise ValueError(f"Target column '{target_column}' must be numeric. Found type: {work_df[target_column].dtype}")

    categorical_cols = detect_categorical_columns(work_df, predictor_columns)

    X = work_df[list(predictor_columns)].copy()
    y = work_df[target_column].astype(float)

    if categorical_cols:
        X = pd.get_dummies(X, columns=categorical_cols, drop_first=True, dtype=float)
        warnings.append(f"Encoded categorical columns {categorical_cols} as dummy variables: {X.columns.tolist()}")

    X = X.astype(float)
    return X, y, X.columns.tolist(), warnings


def fit_ols_model(X: pd.DataFrame, y: pd.Series) -> sm.regression.linear_model.RegressionResultsWrapper:
    """
    Fit an Ordinary Least Squares (OLS) regression model.

    A constant (intercept) term is always added, so residuals sum to zero.

    Args:
        X: DataFrame of predictor variables (without constant)
        y: Series of target variable

    Returns:
        Fitted OLS model (statsmodels RegressionResults object)

    Raises:
        InsufficientDataError: If there are not more observations than coefficients
        SingularDesignError: If predictors are collinear or constant
    """
    X_with_const = sm.add_constant(X, has_constant="add")
    n_obs, n_coef = X_with_const.shape

    if n_obs <= n_coef:
        raise InsufficientDataError(
            f"Insufficient data for regression: n={n_obs} observations for k={n_coef} coefficients. "
            "The model needs more observations than coefficients."
        )

    # statsmodels fits through a pseudo-inverse and would silently accept a singular design
    rank = np.linalg.matrix_rank(np.asarray(X_with_const, dtype=float))
    if rank < n_coef:
        raise SingularDesignError(
            f"Design matrix is rank deficient (rank {rank} < {n_coef} coefficients). This often happens when:\n"
            "1. Predictors are perfectly correlated (multicollinearity)\n"
            "2. A predictor has constant/identical values"
        )

    try:
        return sm.OLS(y, X_with_const).fit()
    except np.linalg.LinAlgError as e:
        raise SingularDesignError(f"Failed to fit regression model. Technical error: {str(e)}") from e


def build_fitted_model(model: sm.regression.linear_model.RegressionResultsWrapper) -> FittedModel:
    """
    Take a read-only snapshot of a fitted statsmodels OLS model.

    The hat diagonal comes from statsmodels' influence measures, so the
    leverage values match what R's ``hatvalues`` reports for the same fit.
    """
    design = pd.DataFrame(model.model.exog, columns=model.model.exog_names)
    hat_diagonal = np.asarray(model.get_influence().hat_matrix_diag, dtype=float)

    return FittedModel(
        coefficients=pd.Series(np.asarray(model.params, dtype=float), index=model.model.exog_names),
        fitted_values=np.asarray(model.fittedvalues, dtype=float),
        residuals=np.asarray(model.resid, dtype=float),
        hat_diagonal=hat_diagonal,
        design=design,
        nobs=int(model.nobs),
        df_resid=float(model.df_resid),
    )


def extract_model_summary(
    model: sm.regression.linear_model.RegressionResultsWrapper,
) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """
    Extract model summary statistics in a structured format.

    Returns two tables:
    1. Coefficient table: Variable, Coefficient, Std Error, t-statistic, P>|t|, 95% CI
    2. Model metrics: R², adjusted R², F-statistic, Prob(F), N, df residual, df model

    The standard errors here assume constant error variance. When the
    heteroskedasticity tests reject that assumption, read the robust
    coefficient table instead.

    Args:
        model: Fitted OLS model

    Returns:
        Tuple of (coefficient_table, metrics_table)
    """
    conf_int = model.conf_int()

    coef_table = pd.DataFrame(
        {
            "Variable": model.params.index,
            "Coefficient": model.params.values,
            "Std Error": model.bse.values,
            "t-statistic": model.tvalues.values,
            "P>|t|": model.pvalues.values,
            "[0.025": conf_int[0].values,
            "0.975]": conf_int[1].values,
        }
    )

    metrics_table = pd.DataFrame(
        {
            "Metric": [
                "R-squared",
                "Adjusted R-squared",
                "F-statistic",
                "Prob (F-statistic)",
                "No. Observations",
                "Df Residuals",
                "Df Model",
            ],
            "Value": [
                model.rsquared,
                model.rsquared_adj,
                model.fvalue,
                model.f_pvalue,
                float(model.nobs),
                float(model.df_resid),
                float(model.df_model),
            ],
        }
    )

    return coef_table, metrics_table
