"""
Error types raised by the heteroskedasticity package.

All errors derive from ValueError so KNIME reports their message as the
node error, the same way the other nodes surface validation problems.
"""


class HeteroskedasticityError(ValueError):
    """Base class for errors that stop the regression workflow."""


class SingularDesignError(HeteroskedasticityError):
    """The design matrix is rank deficient (collinear or constant predictors)."""


class NonPositiveResponseError(HeteroskedasticityError):
    """Box-Cox requires every response value to be strictly positive."""


class InsufficientDataError(HeteroskedasticityError):
    """Fewer observations than the model has coefficients."""
