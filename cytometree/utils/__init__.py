"""Utility functions for cytometree.

Provides statistical helpers shared by the tree and annotation modules.
"""

from .stats import (
    aic,
    compute_percentiles,
    gaussian_loglik,
    robust_variance,
)

__all__ = [
    "aic",
    "compute_percentiles",
    "gaussian_loglik",
    "robust_variance",
]
