"""Validation of the event matrix and of the tree parameters.

All checks run before any tree construction so that bad input fails fast
with a descriptive reason.
"""

from __future__ import annotations

from typing import Any, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd


class InputValidationError(ValueError):
    """Raised when the event matrix or the build parameters are invalid."""


# Column names used by the phenotype table
RESERVED_MARKER_NAMES = ("label", "combination", "count", "prop", "leaves")


def default_marker_names(n_markers: int) -> List[str]:
    """Names given to unnamed columns: M1, M2, ..."""
    return [f"M{i}" for i in range(1, n_markers + 1)]


def _as_numeric_matrix(events: Any) -> Tuple[np.ndarray, List[str]]:
    """Convert a DataFrame or array-like to a float matrix and column names."""
    if isinstance(events, pd.DataFrame):
        non_numeric = [
            str(col) for col in events.columns
            if not pd.api.types.is_numeric_dtype(events[col])
            or pd.api.types.is_bool_dtype(events[col])
        ]
        if non_numeric:
            raise InputValidationError(
                f"Event matrix must be numeric; non-numeric columns: {non_numeric}"
            )
        markers = [str(col) for col in events.columns]
        matrix = events.to_numpy(dtype=float)
    else:
        arr = np.asarray(events)
        if arr.dtype == object or not np.issubdtype(arr.dtype, np.number):
            raise InputValidationError("Event matrix must be numeric")
        if arr.ndim != 2:
            raise InputValidationError(
                f"Event matrix must be 2-dimensional, got {arr.ndim} dimension(s)"
            )
        matrix = arr.astype(float)
        markers = default_marker_names(matrix.shape[1])

    if len(set(markers)) != len(markers):
        raise InputValidationError("Marker names must be unique")
    reserved = [m for m in markers if m in RESERVED_MARKER_NAMES]
    if reserved:
        raise InputValidationError(f"Reserved names cannot be used as markers: {reserved}")
    return matrix, markers


def validate_event_matrix(
    events: Any,
    minleaf: float = 1,
    t: float = 0.1,
    forced_markers: Optional[Sequence[str]] = None,
) -> Tuple[np.ndarray, List[str]]:
    """Validate the event matrix and the build parameters.

    Parameters
    ----------
    events : pd.DataFrame or array-like
        n x p matrix of marker intensities (events in rows)
    minleaf : float
        Minimum number of events per leaf (floored)
    t : float
        Split threshold, must be a finite non-negative number
    forced_markers : Sequence[str], optional
        Markers forced at the first levels; must be column names

    Returns
    -------
    Tuple[np.ndarray, List[str]]
        Float matrix and marker names (M1..Mp for unnamed arrays)

    Raises
    ------
    InputValidationError
        If any check fails.
    """
    matrix, markers = _as_numeric_matrix(events)
    n_events, n_markers = matrix.shape

    if n_events == 0 or n_markers == 0:
        raise InputValidationError(
            f"Event matrix is empty ({n_events} events x {n_markers} markers)"
        )
    if not np.all(np.isfinite(matrix)):
        n_bad = int(np.sum(~np.isfinite(matrix)))
        raise InputValidationError(f"Event matrix contains {n_bad} NA or non-finite values")

    if minleaf is None or not np.isfinite(minleaf) or int(np.floor(minleaf)) < 1:
        raise InputValidationError(f"minleaf must be a positive integer, got {minleaf}")
    if int(np.floor(minleaf)) >= n_events:
        raise InputValidationError(
            f"minleaf ({int(np.floor(minleaf))}) must be smaller than the number of events ({n_events})"
        )
    if n_markers > n_events:
        raise InputValidationError(
            f"Number of markers ({n_markers}) exceeds the number of events ({n_events})"
        )
    if t is None or not np.isfinite(t) or t < 0:
        raise InputValidationError(f"t must be a finite non-negative number, got {t}")

    if forced_markers:
        missing = [m for m in forced_markers if m not in markers]
        if missing:
            raise InputValidationError(
                f"Forced markers not found in the event matrix columns: {missing}. "
                f"Available markers: {markers}"
            )

    return matrix, markers
