"""Statistical utilities for cytometree.

Provides percentiles, a robust variance estimate, the normal
log-likelihood and the Akaike Information Criterion used by the mixture fitter.
"""

from __future__ import annotations

from typing import Iterable, Sequence, Union

import numpy as np
from scipy.stats import norm

ArrayLike = Union[Iterable[float], np.ndarray]

# IQR of the standard normal
NORMAL_IQR = 1.349


def _to_clean_array(values: ArrayLike) -> np.ndarray:
    """Convert input to clean numpy array, removing non-finite values.

    Parameters
    ----------
    values : ArrayLike
        Input values (list, iterable, or array).

    Returns
    -------
    np.ndarray
        Clean array with only finite values.
    """
    arr = np.asarray(values if isinstance(values, np.ndarray) else list(values), dtype=float)
    if arr.size == 0:
        return arr
    return arr[np.isfinite(arr)]


def compute_percentiles(values: ArrayLike, percentiles: Sequence[float]) -> np.ndarray:
    """Compute percentile values ignoring NaNs.

    Parameters
    ----------
    values : ArrayLike
        Input values.
    percentiles : Sequence[float]
        Percentiles to compute (0-100).

    Returns
    -------
    np.ndarray
        Computed percentile values. Returns NaN array if input is empty.
    """
    arr = _to_clean_array(values)
    if arr.size == 0:
        return np.full(len(percentiles), np.nan)
    return np.percentile(arr, percentiles)


def robust_variance(values: ArrayLike) -> float:
    """Variance estimated from the interquartile range, ``(IQR / 1.349) ** 2``.

    Unlike ``np.var`` it is not inflated by a few extreme events. Falls back
    to the sample variance when more than half of the values coincide.
    """
    arr = _to_clean_array(values)
    if arr.size == 0:
        return float("nan")
    q1, q3 = np.percentile(arr, [25.0, 75.0])
    variance = float(((q3 - q1) / NORMAL_IQR) ** 2)
    return variance if variance > 0.0 else float(np.var(arr))


def gaussian_loglik(values: ArrayLike, mean: float, variance: float) -> float:
    """Total log-likelihood of ``values`` under N(mean, variance)."""
    arr = np.asarray(values, dtype=float)
    return float(np.sum(norm.logpdf(arr, loc=mean, scale=np.sqrt(variance))))


def aic(loglik: float, n_params: int) -> float:
    """Akaike Information Criterion, ``2k - 2 logL`` (lower is better)."""
    return 2.0 * n_params - 2.0 * loglik
