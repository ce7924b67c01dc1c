"""
KNIME Extension entry point.

This module imports and registers the heteroskedasticity correction node.
"""

from .heteroskedasticity_node import HeteroskedasticityCorrectionNode

__all__ = ["HeteroskedasticityCorrectionNode"]
