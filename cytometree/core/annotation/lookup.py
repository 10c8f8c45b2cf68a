"""Phenotype lookup in a finished phenotype table.

A phenotype query is a set of marker/level constraints such as
``{"CD4": 1, "CD8": 0}``. A table row matches when every constrained marker
carries the requested code. Rows where a constrained marker is undetermined
do not match, unless ``allow_undetermined`` is set, in which case an
undetermined code matches either level.
"""

from __future__ import annotations

import re
from typing import Any, Dict, Iterable, List, Mapping, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from .merger import PRESENT, ABSENT, phenotype_markers

Phenotype = Union[Mapping[str, Any], Sequence[Tuple[str, Any]], str]

_TOKEN = re.compile(r"^(?P<marker>.+?)(?P<level>[+-]|:[01])$")


def parse_phenotype(text: str) -> Dict[str, int]:
    """Parse ``"CD4+ CD8-"`` (or ``"CD4:1,CD8:0"``) into constraints."""
    constraints: Dict[str, int] = {}
    for token in re.split(r"[\s,]+", text.strip()):
        if not token:
            continue
        match = _TOKEN.match(token)
        if match is None:
            raise ValueError(f"Cannot parse phenotype token '{token}' in '{text}'")
        level = match.group("level")
        constraints[match.group("marker")] = PRESENT if level in ("+", ":1") else ABSENT
    if not constraints:
        raise ValueError("Empty phenotype")
    return constraints


def _normalize_level(marker: str, level: Any) -> int:
    if isinstance(level, str):
        level = level.strip()
        if level in ("+", "1"):
            return PRESENT
        if level in ("-", "0"):
            return ABSENT
    elif level in (0, 1):
        return int(level)
    raise ValueError(f"Level for marker '{marker}' must be 0/1 or -/+, got {level!r}")


def normalize_phenotype(phenotype: Phenotype) -> Dict[str, int]:
    """Convert any accepted phenotype form to a ``{marker: 0/1}`` dict."""
    if isinstance(phenotype, str):
        return parse_phenotype(phenotype)
    if isinstance(phenotype, Mapping):
        items: Iterable[Tuple[str, Any]] = phenotype.items()
    else:
        items = [tuple(pair) for pair in phenotype]
    constraints = {str(marker): _normalize_level(str(marker), level) for marker, level in items}
    if not constraints:
        raise ValueError("Empty phenotype")
    return constraints


def match_rows(
    table: pd.DataFrame,
    phenotype: Phenotype,
    allow_undetermined: bool = False,
) -> np.ndarray:
    """Boolean mask of the table rows matching a phenotype.

    Raises
    ------
    ValueError
        If the phenotype names a marker that is not in the table.
    """
    constraints = normalize_phenotype(phenotype)
    markers = phenotype_markers(table)
    unknown = [m for m in constraints if m not in markers]
    if unknown:
        raise ValueError(f"Unknown markers in phenotype: {unknown}. Available: {markers}")

    mask = np.ones(len(table), dtype=bool)
    for marker, level in constraints.items():
        codes = table[marker].to_numpy(dtype=float)
        hit = codes == level
        if allow_undetermined:
            hit |= np.isnan(codes)
        mask &= hit
    return mask


def format_phenotype(constraints: Mapping[str, int]) -> str:
    return " ".join(f"{m}{'+' if v == PRESENT else '-'}" for m, v in constraints.items())


def retrieve_populations(
    phenotypes: Sequence[Phenotype],
    table: pd.DataFrame,
    allow_undetermined: bool = False,
) -> pd.DataFrame:
    """Find the populations of each sought phenotype.

    Parameters
    ----------
    phenotypes : Sequence[Phenotype]
        Phenotype queries; each is a mapping, a list of (marker, level)
        pairs, or a string such as ``"CD4+ CD8-"``
    table : pd.DataFrame
        Phenotype table (as produced by ``AnnotationMerger``)
    allow_undetermined : bool
        If True, undetermined codes match any requested level

    Returns
    -------
    pd.DataFrame
        One row per query: ``phenotype``, ``labels`` (matching labels),
        ``count`` and ``prop`` (summed over the matching rows).
    """
    total = float(table["count"].sum())
    records: List[Dict[str, Any]] = []
    for phenotype in phenotypes:
        constraints = normalize_phenotype(phenotype)
        mask = match_rows(table, constraints, allow_undetermined=allow_undetermined)
        matched = table.loc[mask]
        count = int(matched["count"].sum())
        records.append(
            {
                "phenotype": format_phenotype(constraints),
                "labels": sorted(int(v) for v in matched["label"]),
                "count": count,
                "prop": count / total if total else 0.0,
            }
        )
    return pd.DataFrame.from_records(records, columns=["phenotype", "labels", "count", "prop"])


def cells_for_phenotype(
    phenotype: Phenotype,
    labels: np.ndarray,
    table: pd.DataFrame,
    allow_undetermined: bool = False,
) -> np.ndarray:
    """Boolean mask of the events whose population matches ``phenotype``.

    ``labels`` must use the labels of ``table`` (merged labels for a merged
    phenotype table).
    """
    mask = match_rows(table, phenotype, allow_undetermined=allow_undetermined)
    wanted = table.loc[mask, "label"].astype(int).tolist()
    return np.isin(np.asarray(labels), wanted)
