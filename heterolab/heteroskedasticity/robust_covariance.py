"""
Heteroskedasticity-consistent (sandwich) covariance estimation.

When the error variance is not constant, the usual OLS standard errors
are biased. The sandwich estimator keeps the OLS coefficients and only
replaces their covariance matrix:

    V = (XᵗX)⁻¹ · Xᵗ diag(ω) X · (XᵗX)⁻¹
          bread        meat        bread

The variants differ in the per-observation weight ω_i:

    const : σ̂²                               (classical OLS covariance)
    HC0   : û_i²                             (White)
    HC1   : n / (n − k) · û_i²               (degrees-of-freedom correction)
    HC2   : û_i² / (1 − h_i)
    HC3   : û_i² / (1 − h_i)²                (close to the jackknife)
    HC4   : û_i² / (1 − h_i)^δ_i,  δ_i = min(4, h_i / h̄)

h_i are the hat-matrix diagonal entries (leverages) and h̄ their mean.
HC3 is the usual recommendation for small samples, HC4 for data with
high-leverage points.
"""

from dataclasses import dataclass
from typing import Callable, Dict

import numpy as np
import pandas as pd
from scipy import stats

from .regression_core import FittedModel

COV_TYPES = ("const", "HC0", "HC1", "HC2", "HC3", "HC4")


@dataclass(frozen=True)
class RobustCovarianceMatrix:
    """Symmetric coefficient covariance matrix labelled by term name."""

    cov_type: str
    matrix: pd.DataFrame

    @property
    def standard_errors(self) -> pd.Series:
        return pd.Series(np.sqrt(np.diag(self.matrix.values)), index=self.matrix.index)


def _omega_const(u2: np.ndarray, h: np.ndarray, n: int, k: int) -> np.ndarray:
    return np.full(n, u2.sum() / (n - k))


def _omega_hc0(u2: np.ndarray, h: np.ndarray, n: int, k: int) -> np.ndarray:
    return u2


def _omega_hc1(u2: np.ndarray, h: np.ndarray, n: int, k: int) -> np.ndarray:
    return u2 * n / (n - k)


def _omega_hc2(u2: np.ndarray, h: np.ndarray, n: int, k: int) -> np.ndarray:
    return u2 / (1.0 - h)


def _omega_hc3(u2: np.ndarray, h: np.ndarray, n: int, k: int) -> np.ndarray:
    return u2 / (1.0 - h) ** 2


def _omega_hc4(u2: np.ndarray, h: np.ndarray, n: int, k: int) -> np.ndarray:
    delta = np.minimum(4.0, h / h.mean())
    return u2 / (1.0 - h) ** delta


_OMEGA: Dict[str, Callable] = {
    "const": _omega_const,
    "HC0": _omega_hc0,
    "HC1": _omega_hc1,
    "HC2": _omega_hc2,
    "HC3": _omega_hc3,
    "HC4": _omega_hc4,
}


def robust_covariance(fitted: FittedModel, cov_type: str = "HC3") -> RobustCovarianceMatrix:
    """
    Compute the sandwich covariance matrix of the OLS coefficients.

    Args:
        fitted: Snapshot of the fitted model (see build_fitted_model)
        cov_type: One of "const", "HC0", "HC1", "HC2", "HC3", "HC4"

    Returns:
        RobustCovarianceMatrix

    Raises:
        ValueError: If cov_type is unknown
    """
    if cov_type not in _OMEGA:
        raise ValueError(f"Unknown covariance type '{cov_type}'. Expected one of {list(COV_TYPES)}.")

    X = fitted.design.values
    n, k = X.shape
    u2 = fitted.residuals**2
    h = fitted.hat_diagonal

    omega = _OMEGA[cov_type](u2, h, n, k)

    bread = np.linalg.inv(X.T @ X)
    meat = (X.T * omega) @ X
    cov = bread @ meat @ bread
    cov = (cov + cov.T) / 2.0

    labels = fitted.coefficients.index
    return RobustCovarianceMatrix(cov_type=cov_type, matrix=pd.DataFrame(cov, index=labels, columns=labels))


def robust_coefficient_test(fitted: FittedModel, cov_type: str = "HC3") -> pd.DataFrame:
    """
    t-tests of the coefficients using a robust covariance matrix (R's ``coeftest``).

    t = coefficient / sqrt(diagonal entry), two-sided p-values from a
    Student t distribution with the model's residual degrees of freedom.
    """
    covariance = robust_covariance(fitted, cov_type)
    std_errors = covariance.standard_errors.values
    coefficients = fitted.coefficients.values

    t_values = coefficients / std_errors
    p_values = 2.0 * stats.t.sf(np.abs(t_values), fitted.df_resid)

    return pd.DataFrame(
        {
            "Variable": fitted.coefficients.index,
            "Coefficient": coefficients,
            "Robust Std Error": std_errors,
            "t-statistic": t_values,
            "P>|t|": p_values,
            "Covariance Type": cov_type,
        }
    )
