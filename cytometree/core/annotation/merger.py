"""Phenotype annotation of tree leaves.

Every leaf of a finished tree gets one expression code per marker, read
from the split records on its root-to-leaf path:

- 1 (present): the leaf descends from the high child of a split on the marker
- 0 (absent): the leaf descends from the low child
- NaN (undetermined): the marker was never used on the path

Leaves whose code vectors are identical describe the same phenotype and
are merged into one population with a new label.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from ..tree.builder import Node, Tree

ABSENT = 0
PRESENT = 1
UNDETERMINED = np.nan

# Non-marker columns of a phenotype table
PHENOTYPE_COLUMNS = ["label", "combination", "count", "prop", "leaves"]


class TreeStructureError(RuntimeError):
    """Raised when a tree violates its structural invariants."""


@dataclass
class AnnotationResult:
    """Result of annotating a tree.

    Attributes
    ----------
    phenotypes : pd.DataFrame
        Merged phenotype table, one row per final label
    labels : np.ndarray
        Final (merged) label of every event
    tree_annotation : pd.DataFrame
        Phenotype table before merging, one row per leaf
    label_map : Dict[int, int]
        Leaf label -> final label
    """

    phenotypes: pd.DataFrame
    labels: np.ndarray
    tree_annotation: pd.DataFrame
    label_map: Dict[int, int] = field(default_factory=dict)

    @property
    def n_merged(self) -> int:
        """Number of leaves absorbed into merged populations."""
        return sum(len(leaves) for leaves in self.phenotypes["leaves"] if len(leaves) > 1)


def validate_tree(tree: Tree) -> None:
    """Check the partition invariants of a finished tree.

    Raises
    ------
    TreeStructureError
        If a split node's children do not partition its members, a leaf is
        unlabeled, or some event carries no leaf label.
    """
    for node in tree.nodes:
        if node.split is not None:
            if node.children is None:
                raise TreeStructureError(f"Split node {node.node_id} has no children")
            low, high = (tree.node(c) for c in node.children)
            if low.parent != node.node_id or high.parent != node.node_id:
                raise TreeStructureError(f"Children of node {node.node_id} point to another parent")
            union = np.sort(np.concatenate([low.members, high.members]))
            if union.size != node.members.size or not np.array_equal(union, np.sort(node.members)):
                raise TreeStructureError(
                    f"Children of node {node.node_id} do not partition its members"
                )
        elif node.is_leaf:
            if node.label is None:
                raise TreeStructureError(f"Leaf {node.node_id} has no label")
            if not np.all(tree.labels[node.members] == node.label):
                raise TreeStructureError(f"Events of leaf {node.node_id} carry another label")
        else:
            raise TreeStructureError(f"Node {node.node_id} is neither split nor leaf")

    if np.any(tree.labels < 1):
        raise TreeStructureError("Some events are not assigned to any leaf")


def leaf_code(tree: Tree, leaf: Node) -> Dict[str, float]:
    """Marker codes of one leaf, from the split records on its path."""
    codes: Dict[str, float] = {marker: UNDETERMINED for marker in tree.markers}
    path = tree.path(leaf.node_id)
    for parent_id, child_id in zip(path[:-1], path[1:]):
        parent = tree.node(parent_id)
        if parent.split is None or parent.children is None:
            raise TreeStructureError(f"Node {parent_id} on the path of leaf {leaf.label} is not split")
        low, high = parent.children
        if child_id == high:
            codes[parent.split.marker] = PRESENT
        elif child_id == low:
            codes[parent.split.marker] = ABSENT
        else:
            raise TreeStructureError(f"Node {child_id} is not a child of node {parent_id}")
    return codes


def format_combination(codes: Dict[str, float], markers: Sequence[str]) -> str:
    """Readable phenotype string, e.g. ``"CD4+ CD8-"``.

    Undetermined markers are left out; a leaf with no determined marker is
    reported as ``"ungated"``.
    """
    parts = []
    for marker in markers:
        code = codes[marker]
        if pd.isna(code):
            continue
        parts.append(f"{marker}{'+' if int(code) == PRESENT else '-'}")
    return " ".join(parts) if parts else "ungated"


def _code_key(row: Sequence[float]) -> Tuple[int, ...]:
    """Hashable code vector; undetermined codes compare equal to each other."""
    return tuple(-1 if pd.isna(v) else int(v) for v in row)


def phenotype_markers(table: pd.DataFrame) -> List[str]:
    """Marker columns of a phenotype table."""
    return [c for c in table.columns if c not in PHENOTYPE_COLUMNS]


def merge_phenotypes(
    table: pd.DataFrame,
    labels: np.ndarray,
    markers: Optional[Sequence[str]] = None,
) -> Tuple[pd.DataFrame, np.ndarray, Dict[int, int]]:
    """Merge rows of a phenotype table that share a marker code vector.

    A group of two or more rows becomes a single row with a new label,
    larger than every label of the input table and allocated in order of
    the group's first (lowest) label. Rows with a unique code keep their
    label, so merging an already-merged table changes nothing.

    Parameters
    ----------
    table : pd.DataFrame
        Phenotype table (``label``, ``count``, ``leaves`` and marker columns)
    labels : np.ndarray
        Label of every event, using the table's labels
    markers : Sequence[str], optional
        Marker columns. Defaults to every non-bookkeeping column.

    Returns
    -------
    Tuple[pd.DataFrame, np.ndarray, Dict[int, int]]
        Merged table sorted by label, relabeled events, and the mapping
        from input label to output label.
    """
    markers = list(markers) if markers is not None else phenotype_markers(table)
    table = table.sort_values("label", kind="stable").reset_index(drop=True)

    groups: Dict[Tuple[int, ...], List[int]] = {}
    for idx, row in enumerate(table[markers].itertuples(index=False, name=None)):
        groups.setdefault(_code_key(row), []).append(idx)

    next_label = int(table["label"].max()) + 1 if len(table) else 1
    total = int(table["count"].sum())
    mapping: Dict[int, int] = {}
    rows = []
    for idxs in groups.values():
        group = table.iloc[idxs]
        if len(idxs) == 1:
            label = int(group["label"].iloc[0])
        else:
            label = next_label
            next_label += 1
        for old in group["label"]:
            mapping[int(old)] = label

        first = group.iloc[0]
        codes = {m: first[m] for m in markers}
        count = int(group["count"].sum())
        leaves = sorted(int(leaf) for leaves in group["leaves"] for leaf in leaves)
        rows.append(
            {
                "label": label,
                "combination": format_combination(codes, markers),
                **codes,
                "count": count,
                "prop": count / total if total else 0.0,
                "leaves": leaves,
            }
        )

    merged = pd.DataFrame.from_records(rows, columns=["label", "combination", *markers, "count", "prop", "leaves"])
    merged = merged.sort_values("label", kind="stable").reset_index(drop=True)
    merged[markers] = merged[markers].astype(float)

    labels = np.asarray(labels)
    unknown = set(np.unique(labels).tolist()) - set(mapping)
    if unknown:
        raise ValueError(f"Event labels missing from the phenotype table: {sorted(unknown)}")
    new_labels = np.array([mapping[int(v)] for v in labels], dtype=int)
    return merged, new_labels, mapping


class AnnotationMerger:
    """Builds the phenotype table of a finished tree.

    Parameters
    ----------
    logger : logging.Logger, optional
        Logger instance. If None, creates default logger.

    Example
    -------
    >>> merger = AnnotationMerger()
    >>> result = merger.annotate(tree)
    >>> result.phenotypes[["label", "combination", "count"]]
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)

    def leaf_codes(self, tree: Tree) -> pd.DataFrame:
        """Phenotype table of the raw leaves, one row per leaf label."""
        markers = tree.markers
        n_events = tree.n_events
        rows = []
        for leaf in tree.leaves():
            codes = leaf_code(tree, leaf)
            rows.append(
                {
                    "label": int(leaf.label),
                    "combination": format_combination(codes, markers),
                    **codes,
                    "count": leaf.n_events,
                    "prop": leaf.n_events / n_events,
                    "leaves": [int(leaf.label)],
                }
            )
        table = pd.DataFrame.from_records(rows, columns=["label", "combination", *markers, "count", "prop", "leaves"])
        table[markers] = table[markers].astype(float)
        return table

    def annotate(self, tree: Tree) -> AnnotationResult:
        """Annotate the leaves of ``tree`` and merge duplicate phenotypes."""
        validate_tree(tree)
        tree_annotation = self.leaf_codes(tree)
        phenotypes, labels, label_map = merge_phenotypes(
            tree_annotation, tree.labels, markers=tree.markers
        )

        self.logger.info(
            "Annotation: %d leaves -> %d phenotypes", len(tree_annotation), len(phenotypes)
        )
        for _, row in phenotypes.iterrows():
            if len(row["leaves"]) > 1:
                self.logger.info(
                    "  Merged leaves %s into label %d (%s, %d events)",
                    row["leaves"],
                    row["label"],
                    row["combination"],
                    row["count"],
                )

        return AnnotationResult(
            phenotypes=phenotypes,
            labels=labels,
            tree_annotation=tree_annotation,
            label_map=label_map,
        )
