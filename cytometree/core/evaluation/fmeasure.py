"""F-measure between a reference and a predicted event labeling.

For every reference class the best-matching predicted label is the one
maximizing the F1 score; the overall F-measure is the average of these
maxima weighted by the reference class sizes. ``f_measure_no_zero`` drops
events whose reference label is 0 (unassigned events, as in FlowCAP-I).
"""

from __future__ import annotations

from typing import Any, Tuple

import numpy as np
import pandas as pd


def _check_pair(reference: Any, predicted: Any) -> Tuple[np.ndarray, np.ndarray]:
    ref = np.asarray(reference)
    pred = np.asarray(predicted)
    if ref.ndim != 1 or pred.ndim != 1:
        raise ValueError("Reference and predicted labels must be 1-dimensional")
    if ref.shape[0] != pred.shape[0]:
        raise ValueError(
            f"Reference ({ref.shape[0]}) and predicted ({pred.shape[0]}) lengths differ"
        )
    if ref.shape[0] == 0:
        raise ValueError("Cannot compute an F-measure on zero events")
    return ref, pred


def f_measure_table(reference: Any, predicted: Any) -> pd.DataFrame:
    """Per reference class: best predicted label, precision, recall and F1.

    Parameters
    ----------
    reference : array-like
        Reference label of every event
    predicted : array-like
        Predicted label of every event

    Returns
    -------
    pd.DataFrame
        Columns ``reference``, ``size``, ``best_predicted``, ``precision``,
        ``recall``, ``f``; one row per reference class, sorted by class.
        Ties between predicted labels go to the smallest label.
    """
    ref, pred = _check_pair(reference, predicted)
    contingency = pd.crosstab(pd.Series(ref, name="reference"), pd.Series(pred, name="predicted"))
    counts = contingency.to_numpy(dtype=float)
    ref_sizes = counts.sum(axis=1, keepdims=True)
    pred_sizes = counts.sum(axis=0, keepdims=True)

    precision = counts / pred_sizes
    recall = counts / ref_sizes
    with np.errstate(divide="ignore", invalid="ignore"):
        f = np.where(counts > 0, 2 * precision * recall / (precision + recall), 0.0)

    best = np.argmax(f, axis=1)
    rows = np.arange(counts.shape[0])
    return pd.DataFrame(
        {
            "reference": contingency.index.to_numpy(),
            "size": ref_sizes[:, 0].astype(int),
            "best_predicted": contingency.columns.to_numpy()[best],
            "precision": precision[rows, best],
            "recall": recall[rows, best],
            "f": f[rows, best],
        }
    )


def f_measure(reference: Any, predicted: Any) -> float:
    """Size-weighted mean of the best F1 of each reference class."""
    table = f_measure_table(reference, predicted)
    return float(np.average(table["f"], weights=table["size"]))


def f_measure_no_zero(reference: Any, predicted: Any) -> float:
    """F-measure ignoring events whose reference label is 0.

    Raises
    ------
    ValueError
        If every event has reference label 0.
    """
    ref, pred = _check_pair(reference, predicted)
    keep = ref != 0
    if not keep.any():
        raise ValueError("Every event has reference label 0")
    return f_measure(ref[keep], pred[keep])
