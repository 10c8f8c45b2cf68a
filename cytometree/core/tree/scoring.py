"""Split scoring for tree nodes.

Each marker's unimodal and bimodal fits are turned into the normalized
AIC difference

    D = (AIC_unimodal - AIC_bimodal) / n

where n is the number of events at the node. Nested normal models keep the
same log-likelihood difference under an affine rescaling of the marker, so
D is comparable across markers measured on different ranges. The node is
split on the marker with the largest D when that D exceeds the threshold t.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence

import pandas as pd

from .mixture import BimodalFit, DegenerateFit, MarkerFit


@dataclass(frozen=True)
class MarkerScore:
    """Split statistic of one marker at one node.

    Attributes
    ----------
    marker : str
        Marker name
    d : float
        Normalized AIC difference
    separation : float
        Absolute distance between the two component means (0 if degenerate)
    aic_unimodal : float
        AIC of the single normal fit
    aic_bimodal : float
        AIC of the mixture fit (or of its degenerate fallback)
    status : str
        "bimodal" or the degenerate fallback reason
    """

    marker: str
    d: float
    separation: float
    aic_unimodal: float
    aic_bimodal: float
    status: str

    @property
    def is_candidate(self) -> bool:
        return self.status == "bimodal"


def can_split(n_events: int, n_markers: int, minleaf: int) -> bool:
    """Return True if a group is large enough to be fitted at all.

    Groups with fewer than ``2 * minleaf`` events cannot yield two children
    of ``minleaf`` events, and groups with fewer events than markers are
    not identifiable.
    """
    return n_events >= 2 * minleaf and n_events >= n_markers


def normalized_aic_difference(fit: MarkerFit) -> float:
    """Normalized AIC difference D of a marker fit."""
    return (fit.unimodal.aic - fit.bimodal.aic) / fit.n


def score_marker(fit: MarkerFit) -> MarkerScore:
    """Score one marker fit."""
    bimodal = fit.bimodal
    if isinstance(bimodal, BimodalFit):
        status = "bimodal"
    elif isinstance(bimodal, DegenerateFit):
        status = bimodal.reason
    else:
        raise TypeError(f"Unsupported mixture fit type: {type(bimodal).__name__}")

    return MarkerScore(
        marker=fit.marker,
        d=float(normalized_aic_difference(fit)),
        separation=float(bimodal.separation),
        aic_unimodal=float(fit.unimodal.aic),
        aic_bimodal=float(bimodal.aic),
        status=status,
    )


def score_markers(fits: Sequence[MarkerFit]) -> List[MarkerScore]:
    """Score all marker fits of a node, preserving marker order."""
    return [score_marker(fit) for fit in fits]


def best_marker(scores: Sequence[MarkerScore]) -> Optional[int]:
    """Index of the best split candidate, or None if there is none.

    Candidates are ranked by D, then by the separation between component
    means; remaining ties go to the earlier marker.
    """
    best_idx = None
    best_key = None
    for idx, score in enumerate(scores):
        if not score.is_candidate:
            continue
        key = (score.d, score.separation)
        if best_key is None or key > best_key:
            best_idx, best_key = idx, key
    return best_idx


def select_split(scores: Sequence[MarkerScore], t: float) -> Optional[int]:
    """Index of the marker to split on, or None if the node is a leaf."""
    idx = best_marker(scores)
    if idx is None or not scores[idx].d > t:
        return None
    return idx


def scores_to_frame(scores: Sequence[MarkerScore]) -> pd.DataFrame:
    """Tabulate marker scores (one row per marker)."""
    return pd.DataFrame.from_records(
        [
            {
                "marker": s.marker,
                "d": s.d,
                "separation": s.separation,
                "aic_unimodal": s.aic_unimodal,
                "aic_bimodal": s.aic_bimodal,
                "status": s.status,
            }
            for s in scores
        ],
        columns=["marker", "d", "separation", "aic_unimodal", "aic_bimodal", "status"],
    )
