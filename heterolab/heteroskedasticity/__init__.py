"""
Heteroskedasticity Detection and Correction Package for KNIME.

This package detects non-constant error variance in OLS regression models
and offers two corrections: a Box-Cox transform of the response, and
heteroskedasticity-consistent (robust) standard errors.

Key Components:
---------------
- errors: Error types for singular designs, non-positive responses and too little data
- utils: Parameter definitions and helper functions
- regression_core: OLS model fitting, hat values and data preparation
- heteroskedasticity_tests: Statistical tests for heteroskedasticity
- boxcox_core: Box-Cox λ estimation and transform
- robust_covariance: HC0-HC4 sandwich covariance and robust t-tests
- workflow: Fit → test → transform → refit → test, plus robust coefficient tests
"""

from .errors import HeteroskedasticityError, SingularDesignError, NonPositiveResponseError, InsufficientDataError

from .heteroskedasticity_tests import (
    DiagnosticResult,
    run_breusch_pagan_test,
    run_ncv_test,
    run_white_test,
    run_goldfeld_quandt_test,
    residual_vs_fitted,
    diagnostics_table,
)

from .boxcox_core import BoxCoxParameter, boxcox_transform, estimate_boxcox_lambda, fit_boxcox

from .robust_covariance import COV_TYPES, RobustCovarianceMatrix, robust_covariance, robust_coefficient_test

from .utils import (
    CovarianceType,
    BoxCoxMode,
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
    is_numeric,
    detect_categorical_columns,
    format_p_value,
)

from .regression_core import (
    FittedModel,
    prepare_data,
    fit_ols_model,
    build_fitted_model,
    extract_model_summary,
)

from .workflow import run_diagnostics, run_heteroskedasticity_workflow

__all__ = [
    # Errors
    "HeteroskedasticityError",
    "SingularDesignError",
    "NonPositiveResponseError",
    "InsufficientDataError",
    # Test functions
    "DiagnosticResult",
    "run_breusch_pagan_test",
    "run_ncv_test",
    "run_white_test",
    "run_goldfeld_quandt_test",
    "residual_vs_fitted",
    "diagnostics_table",
    # Box-Cox
    "BoxCoxParameter",
    "boxcox_transform",
    "estimate_boxcox_lambda",
    "fit_boxcox",
    # Robust covariance
    "COV_TYPES",
    "RobustCovarianceMatrix",
    "robust_covariance",
    "robust_coefficient_test",
    # Parameters
    "CovarianceType",
    "BoxCoxMode",
    "LambdaSearch",
    "AdditionalTest",
    "target_column_param",
    "predictor_columns_param",
    "alpha_param",
    "cov_type_param",
    "boxcox_mode_param",
    "lambda_search_param",
    "additional_test_param",
    "gq_sort_variable_param",
    "gq_split_fraction_param",
    "output_detail_param",
    # Utilities
    "is_numeric",
    "detect_categorical_columns",
    "format_p_value",
    # Regression functions
    "FittedModel",
    "prepare_data",
    "fit_ols_model",
    "build_fitted_model",
    "extract_model_summary",
    # Workflow
    "run_diagnostics",
    "run_heteroskedasticity_workflow",
]
