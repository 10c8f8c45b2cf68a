"""CytomeTree engine: validate, build the tree, annotate the leaves.

Example
-------
>>> from cytometree.core import CytomeTreeEngine
>>> result = CytomeTreeEngine().run(events, minleaf=50, t=0.1)
>>> result.phenotypes[["label", "combination", "count"]]
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

import numpy as np
import pandas as pd

from .annotation import AnnotationMerger
from .tree import CytomeTreeConfig, Tree, TreeBuilder


@dataclass
class CytomeTreeResult:
    """Result of a CytomeTree run.

    Attributes
    ----------
    tree : Tree
        The finished binary tree
    leaf_labels : np.ndarray
        Leaf label (1..L) of every event
    labels : np.ndarray
        Merged phenotype label of every event
    tree_annotation : pd.DataFrame
        Phenotype table of the raw leaves, one row per leaf
    phenotypes : pd.DataFrame
        Merged phenotype table, one row per final label
    label_map : Dict[int, int]
        Leaf label -> merged label
    event_index : pd.Index
        Event identifiers (row index of the input)
    config : CytomeTreeConfig
        Configuration of the run
    elapsed : float
        Wall-clock seconds
    """

    tree: Tree
    leaf_labels: np.ndarray
    labels: np.ndarray
    tree_annotation: pd.DataFrame
    phenotypes: pd.DataFrame
    label_map: Dict[int, int]
    event_index: pd.Index
    config: CytomeTreeConfig
    elapsed: float = 0.0

    @property
    def markers(self) -> List[str]:
        return self.tree.markers

    @property
    def marker_tree(self) -> List[List[str]]:
        return self.tree.marker_tree()

    def labels_frame(self) -> pd.DataFrame:
        """Per-event leaf and merged labels."""
        return pd.DataFrame(
            {"leaf_label": self.leaf_labels, "label": self.labels},
            index=self.event_index,
        )

    def summary(self) -> Dict[str, Any]:
        """Plain-Python summary of the run."""
        return {
            "n_events": self.tree.n_events,
            "n_markers": len(self.tree.markers),
            "markers": list(self.tree.markers),
            "n_nodes": len(self.tree.nodes),
            "n_leaves": self.tree.n_leaves,
            "n_phenotypes": int(len(self.phenotypes)),
            "depth": self.tree.depth,
            "marker_tree": self.tree.marker_tree(),
            "params": self.config.to_dict(),
            "elapsed_sec": round(float(self.elapsed), 3),
        }


class CytomeTreeEngine:
    """Runs the full partition and annotation pipeline.

    Parameters
    ----------
    config : CytomeTreeConfig, optional
        Run configuration. If None, uses defaults.
    logger : logging.Logger, optional
        Logger instance. If None, creates default logger.
    """

    def __init__(
        self,
        config: Optional[CytomeTreeConfig] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.config = config or CytomeTreeConfig.default()
        self.logger = logger or logging.getLogger(__name__)

    def run(
        self,
        events: Any,
        minleaf: Optional[int] = None,
        t: Optional[float] = None,
        forced_markers: Optional[Sequence[str]] = None,
    ) -> CytomeTreeResult:
        """Partition the events and annotate the resulting populations.

        Parameters
        ----------
        events : pd.DataFrame or np.ndarray
            n x p matrix of marker intensities
        minleaf : int, optional
            Overrides the configured minimum leaf size
        t : float, optional
            Overrides the configured split threshold
        forced_markers : Sequence[str], optional
            Overrides the configured forced first markers

        Returns
        -------
        CytomeTreeResult

        Raises
        ------
        InputValidationError
            If the matrix or the parameters are invalid
        """
        config = self.config.with_overrides(
            minleaf=minleaf,
            t=t,
            force_first_markers=list(forced_markers) if forced_markers is not None else None,
        )

        self.logger.info("=" * 70)
        self.logger.info("CYTOMETREE")
        self.logger.info("=" * 70)
        self.logger.info("minleaf: %s", config.tree.minleaf)
        self.logger.info("t: %s", config.tree.t)
        if config.tree.force_first_markers:
            self.logger.info("Forced markers: %s", config.tree.force_first_markers)
        self.logger.info("")

        start_time = time.time()

        self.logger.info("Phase 1: Building tree...")
        builder = TreeBuilder(config.tree, config.mixture, logger=self.logger)
        tree = builder.build(events)

        self.logger.info("Phase 2: Annotating leaves...")
        annotation = AnnotationMerger(logger=self.logger).annotate(tree)

        if isinstance(events, pd.DataFrame):
            event_index = events.index
        else:
            event_index = pd.RangeIndex(tree.n_events)

        result = CytomeTreeResult(
            tree=tree,
            leaf_labels=tree.labels,
            labels=annotation.labels,
            tree_annotation=annotation.tree_annotation,
            phenotypes=annotation.phenotypes,
            label_map=annotation.label_map,
            event_index=event_index,
            config=config,
            elapsed=time.time() - start_time,
        )

        self.logger.info("")
        self.logger.info("=" * 70)
        self.logger.info(
            "CytomeTree complete: %d leaves, %d phenotypes (%.2f sec)",
            tree.n_leaves,
            len(result.phenotypes),
            result.elapsed,
        )
        for depth, level in enumerate(tree.marker_tree()):
            self.logger.info("  depth %d: %s", depth, ", ".join(level))
        self.logger.info("=" * 70)
        return result
