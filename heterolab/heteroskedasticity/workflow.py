"""
Detect-and-correct workflow for heteroskedasticity in OLS regression.

Steps:
1. Fit OLS of the target on the predictors
2. Run Breusch-Pagan and Non-Constant Variance tests (plus an optional third test)
3. If heteroskedasticity is found, Box-Cox transform the target, refit and test again
4. Independently, compute robust (sandwich) coefficient tests for the original model

The robust standard errors never change the fitted model; they only
replace its coefficient covariance matrix.
"""

from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd

from .boxcox_core import fit_boxcox
from .errors import NonPositiveResponseError
from .heteroskedasticity_tests import (
    DiagnosticResult,
    diagnostics_table,
    residual_vs_fitted,
    run_breusch_pagan_test,
    run_goldfeld_quandt_test,
    run_ncv_test,
    run_white_test,
)
from .regression_core import build_fitted_model, extract_model_summary, fit_ols_model, prepare_data
from .robust_covariance import robust_coefficient_test

BOXCOX_MODES = ("auto", "always", "never")
LEVERAGE_COV_TYPES = ("HC2", "HC3", "HC4")


def _unique_column_name(columns, name: str) -> str:
    """Append " (#1)", " (#2)", ... to name until it no longer clashes with an existing column."""
    candidate = name
    counter = 1
    while candidate in columns:
        candidate = f"{name} (#{counter})"
        counter += 1
    return candidate


def run_diagnostics(
    model,
    X: pd.DataFrame,
    y: pd.Series,
    alpha: float = 0.05,
    additional_test: Optional[str] = None,
    gq_sort_variable: Optional[str] = None,
    gq_split_fraction: float = 0.5,
) -> List[DiagnosticResult]:
    """
    Run Breusch-Pagan and Non-Constant Variance tests on a fitted model.

    ``additional_test`` may be "white" or "goldfeld_quandt" to add a third test.
    """
    results = [
        run_breusch_pagan_test(model, X, alpha=alpha),
        run_ncv_test(model, alpha=alpha),
    ]

    if additional_test == "white":
        results.append(run_white_test(model, alpha=alpha))
    elif additional_test == "goldfeld_quandt":
        if not gq_sort_variable:
            raise ValueError("Goldfeld-Quandt test requires a sort variable. Please select a numeric predictor to sort by.")
        results.append(
            run_goldfeld_quandt_test(model, X, y, sort_variable=gq_sort_variable, split_fraction=gq_split_fraction, alpha=alpha)
        )
    elif additional_test is not None:
        raise ValueError(f"Unknown additional test: {additional_test}")

    return results


def run_heteroskedasticity_workflow(
    df: pd.DataFrame,
    target_column: str,
    predictor_columns: List[str],
    alpha: float = 0.05,
    cov_type: str = "HC3",
    boxcox_mode: str = "auto",
    lambda_method: str = "grid",
    additional_test: Optional[str] = None,
    gq_sort_variable: Optional[str] = None,
    gq_split_fraction: float = 0.5,
    fail_on_missing: bool = True,
) -> Dict[str, Any]:
    """
    Fit, diagnose and, if needed, correct an OLS regression for heteroskedasticity.

    Parameters
    ----------
    df : pd.DataFrame
        Input data
    target_column : str
        Name of the response column
    predictor_columns : List[str]
        Names of predictor columns
    alpha : float
        Significance level for the test decisions
    cov_type : str
        Robust covariance variant ("const", "HC0" ... "HC4")
    boxcox_mode : str
        "auto" transforms only when a test is significant and the target is
        strictly positive, "always" transforms unconditionally, "never" skips it
    lambda_method : str
        "grid" or "mle" search for the Box-Cox λ
    additional_test : str, optional
        "white" or "goldfeld_quandt"
    gq_sort_variable, gq_split_fraction
        Goldfeld-Quandt settings
    fail_on_missing : bool
        Raise on missing values instead of dropping incomplete rows

    Returns
    -------
    dict
        - "data": pd.DataFrame - input rows used, with prediction, residual and (if applied) the transformed target;
          new columns get a " (#1)" style suffix when their name is already taken
        - "coefficients": pd.DataFrame - OLS coefficient table
        - "metrics": pd.DataFrame - model fit statistics
        - "diagnostics": pd.DataFrame - one row per test and stage ("Original" / "Box-Cox")
        - "robust_coefficients": pd.DataFrame - coefficient tests with robust standard errors
        - "plot_data": pd.DataFrame - fitted values and residuals of the original model
        - "results": List[DiagnosticResult] - tests on the original model
        - "transformed_results": List[DiagnosticResult] - tests after Box-Cox (empty if not applied)
        - "transformed_coefficients": pd.DataFrame or None
        - "boxcox": BoxCoxParameter or None
        - "warnings": List[str]

    Raises
    ------
    ValueError
        If the data or settings are invalid
    SingularDesignError, InsufficientDataError
        If the model cannot be fit
    NonPositiveResponseError
        If boxcox_mode is "always" and the target has values ≤ 0
    """
    if boxcox_mode not in BOXCOX_MODES:
        raise ValueError(f"Unknown Box-Cox mode '{boxcox_mode}'. Expected one of {list(BOXCOX_MODES)}.")

    # Step 1: Prepare data
    X, y, encoded_column_names, warnings = prepare_data(df, target_column, predictor_columns, fail_on_missing=fail_on_missing)

    n_obs = len(X)
    n_params = len(encoded_column_names) + 1  # +1 for intercept
    if n_obs < n_params + 20:
        warnings.append(
            f"Small sample size: n={n_obs} observations with k={n_params} parameters. "
            f"Recommended: n > {n_params + 20}. Results may be unreliable."
        )

    # Step 2: Fit and diagnose the original model
    model = fit_ols_model(X, y)
    fitted = build_fitted_model(model)
    results = run_diagnostics(model, X, y, alpha, additional_test, gq_sort_variable, gq_split_fraction)

    coef_table, metrics_table = extract_model_summary(model)
    robust_table = robust_coefficient_test(fitted, cov_type)

    if cov_type in LEVERAGE_COV_TYPES and np.any(fitted.hat_diagonal > 1.0 - 1e-8):
        warnings.append(
            "Some observations have leverage 1 (for example a category level that occurs only once), "
            f"so their {cov_type} robust standard errors are undefined. Use HC0 or HC1 instead."
        )

    # Rows are selected by position; the input index may contain duplicate labels
    complete_rows = df[[target_column] + list(predictor_columns)].notna().all(axis=1).to_numpy()
    data = df.iloc[np.flatnonzero(complete_rows)].copy()
    data[_unique_column_name(data.columns, "prediction")] = fitted.fitted_values
    data[_unique_column_name(data.columns, "residual")] = fitted.residuals

    diagnostics = [diagnostics_table(results, "Original")]

    # Step 3: Decide on the Box-Cox transform
    heteroskedastic = any(result.is_heteroskedastic for result in results)
    positive = bool((y > 0).all())

    if boxcox_mode == "always":
        if not positive:
            raise NonPositiveResponseError(
                f"Box-Cox requires a strictly positive target, but '{target_column}' has minimum {y.min()}."
            )
        apply_transform = True
    elif boxcox_mode == "auto" and heteroskedastic:
        apply_transform = positive
        if not positive:
            warnings.append(
                f"Heteroskedasticity detected but '{target_column}' has zero or negative values, "
                "so the Box-Cox transform was skipped. Use the robust standard errors instead."
            )
    else:
        apply_transform = False

    # Step 4: Transform, refit and re-diagnose
    boxcox = None
    transformed_results = []
    transformed_coefficients = None

    if apply_transform:
        boxcox, y_transformed = fit_boxcox(y, method=lambda_method)
        transformed_column = _unique_column_name(data.columns, f"{target_column}_boxcox")
        y_new = pd.Series(y_transformed, index=y.index, name=transformed_column)

        data[transformed_column] = y_transformed
        model_new = fit_ols_model(X, y_new)
        transformed_results = run_diagnostics(model_new, X, y_new, alpha, additional_test, gq_sort_variable, gq_split_fraction)
        transformed_coefficients, _ = extract_model_summary(model_new)
        diagnostics.append(diagnostics_table(transformed_results, f"Box-Cox (λ = {boxcox.lmbda:g})"))

    return {
        "data": data,
        "coefficients": coef_table,
        "metrics": metrics_table,
        "diagnostics": pd.concat(diagnostics, ignore_index=True),
        "robust_coefficients": robust_table,
        "plot_data": residual_vs_fitted(model),
        "results": results,
        "transformed_results": transformed_results,
        "transformed_coefficients": transformed_coefficients,
        "boxcox": boxcox,
        "warnings": warnings,
    }
