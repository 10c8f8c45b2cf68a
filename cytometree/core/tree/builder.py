"""Recursive binary tree construction.

The tree is grown top-down. At every node each marker not yet used on the
path from the root is fitted with a unimodal and a bimodal normal model;
the node is split on the marker with the largest normalized AIC difference
when it exceeds the threshold t, and becomes a leaf otherwise. Markers in
``force_first_markers`` are split on at the depth matching their position,
whatever their score, as long as their mixture fit is not degenerate.

Nodes live in an arena (a list addressed by node id). The tree is grown one
depth at a time, so nodes of the same depth can be fitted in parallel with
joblib; leaf labels are assigned afterwards by an explicit traversal and do
not depend on the order in which nodes were fitted.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from joblib import Parallel, delayed

from ...io.validation import validate_event_matrix
from .config import MixtureConfig, TreeConfig
from .mixture import BimodalFit, Component, MarkerFit, fit_marker
from .scoring import MarkerScore, can_split, score_marker, score_markers, select_split


class NodeState(str, Enum):
    """Lifecycle of a tree node. SPLIT and LEAF are final."""

    UNVISITED = "unvisited"
    SCORED = "scored"
    SPLIT = "split"
    LEAF = "leaf"


@dataclass(frozen=True)
class SplitRecord:
    """Marker split performed at an internal node.

    Attributes
    ----------
    marker : str
        Marker the node was split on
    components : Tuple[Component, Component]
        The two fitted normal components, in fitted order
    high_index : int
        Index in ``components`` of the component with the larger mean
    d : float
        Normalized AIC difference of the split
    forced : bool
        True if the marker was imposed through ``force_first_markers``
    """

    marker: str
    components: Tuple[Component, Component]
    high_index: int
    d: float
    forced: bool = False

    @property
    def high(self) -> Component:
        return self.components[self.high_index]

    @property
    def low(self) -> Component:
        return self.components[1 - self.high_index]

    @classmethod
    def from_fit(cls, fit: MarkerFit, d: float, forced: bool = False) -> "SplitRecord":
        bimodal = fit.bimodal
        return cls(
            marker=fit.marker,
            components=bimodal.components,
            high_index=bimodal.high_index,
            d=float(d),
            forced=forced,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "marker": self.marker,
            "d": self.d,
            "forced": self.forced,
            "low_mean": self.low.mean,
            "low_variance": self.low.variance,
            "low_weight": self.low.weight,
            "high_mean": self.high.mean,
            "high_variance": self.high.variance,
            "high_weight": self.high.weight,
        }


@dataclass
class Node:
    """A group of events at some depth of the tree.

    ``children`` is ``(low_child_id, high_child_id)`` for a split node.
    """

    node_id: int
    parent: Optional[int]
    depth: int
    members: np.ndarray
    state: NodeState = NodeState.UNVISITED
    scores: List[MarkerScore] = field(default_factory=list)
    split: Optional[SplitRecord] = None
    children: Optional[Tuple[int, int]] = None
    label: Optional[int] = None
    reason: str = ""

    @property
    def is_leaf(self) -> bool:
        return self.state == NodeState.LEAF

    @property
    def n_events(self) -> int:
        return int(self.members.size)

    @property
    def marker(self) -> Optional[str]:
        return self.split.marker if self.split is not None else None


@dataclass(eq=False)
class NodeDecision:
    """Outcome of scoring one node."""

    reason: str
    scores: List[MarkerScore] = field(default_factory=list)
    fit: Optional[MarkerFit] = None
    d: float = float("nan")
    forced: bool = False


def decide_node(
    values: np.ndarray,
    markers: Sequence[str],
    depth: int,
    minleaf: int,
    t: float,
    forced_markers: Sequence[str] = (),
    mixture_config: Optional[MixtureConfig] = None,
) -> NodeDecision:
    """Decide whether a node splits, and on which marker.

    Parameters
    ----------
    values : np.ndarray
        Events of the node (rows) restricted to the markers still available
        on its path (columns)
    markers : Sequence[str]
        Names of the columns of ``values``
    depth : int
        Depth of the node (root = 0)
    minleaf : int
        Minimum number of events per leaf
    t : float
        Split threshold on the normalized AIC difference
    forced_markers : Sequence[str]
        Markers forced at the first depths
    mixture_config : MixtureConfig, optional
        EM settings

    Returns
    -------
    NodeDecision
        ``fit`` is set to the chosen marker's fits when the node splits.
    """
    n_events = values.shape[0]
    if not markers:
        return NodeDecision(reason="no_markers")
    if not can_split(n_events, len(markers), minleaf):
        return NodeDecision(reason="too_small")

    if depth < len(forced_markers) and forced_markers[depth] in markers:
        marker = forced_markers[depth]
        col = list(markers).index(marker)
        fit = fit_marker(values[:, col], marker, minleaf=minleaf, config=mixture_config)
        score = score_marker(fit)
        if isinstance(fit.bimodal, BimodalFit):
            return NodeDecision(
                reason="forced_split",
                scores=[score],
                fit=fit,
                d=score.d,
                forced=True,
            )
        # Unusable forced marker: score this node normally

    fits = [
        fit_marker(values[:, j], marker, minleaf=minleaf, config=mixture_config)
        for j, marker in enumerate(markers)
    ]
    scores = score_markers(fits)
    idx = select_split(scores, t)
    if idx is None:
        has_candidate = any(s.is_candidate for s in scores)
        return NodeDecision(
            reason="below_threshold" if has_candidate else "no_candidate",
            scores=scores,
        )
    return NodeDecision(reason="split", scores=scores, fit=fits[idx], d=scores[idx].d)


def preorder(nodes: Sequence[Node]) -> Iterator[int]:
    """Yield node ids in pre-order, low child before high child."""
    if not nodes:
        return
    stack = [0]
    while stack:
        node_id = stack.pop()
        yield node_id
        children = nodes[node_id].children
        if children is not None:
            low, high = children
            stack.append(high)
            stack.append(low)


Traversal = Callable[[Sequence[Node]], Iterator[int]]


class Tree:
    """A finished binary tree over n events.

    Parameters
    ----------
    nodes : List[Node]
        Node arena; the root is node 0
    markers : List[str]
        Marker names, in input column order
    labels : np.ndarray
        Leaf label of every event
    params : Dict[str, Any]
        Parameters the tree was built with
    """

    def __init__(
        self,
        nodes: List[Node],
        markers: List[str],
        labels: np.ndarray,
        params: Optional[Dict[str, Any]] = None,
    ):
        self.nodes = nodes
        self.markers = list(markers)
        self.labels = labels
        self.params = dict(params or {})

    @property
    def root(self) -> Node:
        return self.nodes[0]

    @property
    def n_events(self) -> int:
        return int(self.labels.size)

    @property
    def n_leaves(self) -> int:
        return sum(1 for node in self.nodes if node.is_leaf)

    @property
    def depth(self) -> int:
        return max(node.depth for node in self.nodes)

    def node(self, node_id: int) -> Node:
        return self.nodes[node_id]

    def leaves(self) -> List[Node]:
        """Leaf nodes ordered by label."""
        return sorted((n for n in self.nodes if n.is_leaf), key=lambda n: n.label)

    def internal_nodes(self) -> List[Node]:
        return [n for n in self.nodes if n.split is not None]

    def leaf(self, label: int) -> Node:
        for node in self.nodes:
            if node.is_leaf and node.label == label:
                return node
        raise KeyError(f"No leaf with label {label}")

    def path(self, node_id: int) -> List[int]:
        """Node ids from the root down to ``node_id``."""
        path = []
        current: Optional[int] = node_id
        while current is not None:
            path.append(current)
            current = self.nodes[current].parent
        return path[::-1]

    def split_records(self) -> Dict[int, SplitRecord]:
        """Split record of every internal node, keyed by node id."""
        return {n.node_id: n.split for n in self.nodes if n.split is not None}

    def marker_tree(self) -> List[List[str]]:
        """Markers used for splitting, one list per depth."""
        levels: List[List[str]] = [[] for _ in range(self.depth + 1)]
        for node in self.nodes:
            if node.split is not None:
                levels[node.depth].append(node.split.marker)
        return [level for level in levels if level]

    def to_frame(self) -> pd.DataFrame:
        """One row per node with its state and split record."""
        rows = []
        for node in self.nodes:
            row: Dict[str, Any] = {
                "node_id": node.node_id,
                "parent": node.parent,
                "depth": node.depth,
                "n_events": node.n_events,
                "state": node.state.value,
                "reason": node.reason,
                "label": node.label,
                "low_child": node.children[0] if node.children else None,
                "high_child": node.children[1] if node.children else None,
            }
            if node.split is not None:
                row.update(node.split.to_dict())
            rows.append(row)
        return pd.DataFrame.from_records(rows)

    def scores_frame(self) -> pd.DataFrame:
        """Per-node, per-marker split statistics."""
        rows = []
        for node in self.nodes:
            for score in node.scores:
                rows.append(
                    {
                        "node_id": node.node_id,
                        "depth": node.depth,
                        "marker": score.marker,
                        "d": score.d,
                        "separation": score.separation,
                        "aic_unimodal": score.aic_unimodal,
                        "aic_bimodal": score.aic_bimodal,
                        "status": score.status,
                    }
                )
        return pd.DataFrame.from_records(rows)


class TreeBuilder:
    """Builds a binary tree of events by recursive marker splits.

    Parameters
    ----------
    config : TreeConfig, optional
        Tree parameters. If None, uses defaults.
    mixture_config : MixtureConfig, optional
        EM settings. If None, uses defaults.
    logger : logging.Logger, optional
        Logger instance. If None, creates default logger.
    traversal : callable, optional
        Order in which leaves are numbered (default: pre-order)

    Example
    -------
    >>> builder = TreeBuilder(TreeConfig(minleaf=50, t=0.1))
    >>> tree = builder.build(events)
    >>> tree.n_leaves, tree.marker_tree()
    """

    def __init__(
        self,
        config: Optional[TreeConfig] = None,
        mixture_config: Optional[MixtureConfig] = None,
        logger: Optional[logging.Logger] = None,
        traversal: Traversal = preorder,
    ):
        self.config = config or TreeConfig()
        self.mixture_config = mixture_config or MixtureConfig()
        self.logger = logger or logging.getLogger(__name__)
        self.traversal = traversal

    def build(
        self,
        events: Any,
        minleaf: Optional[int] = None,
        t: Optional[float] = None,
        forced_markers: Optional[Sequence[str]] = None,
    ) -> Tree:
        """Build the tree.

        Parameters
        ----------
        events : pd.DataFrame or np.ndarray
            n x p matrix of marker intensities
        minleaf : int, optional
            Overrides ``config.minleaf``
        t : float, optional
            Overrides ``config.t``
        forced_markers : Sequence[str], optional
            Overrides ``config.force_first_markers``

        Returns
        -------
        Tree

        Raises
        ------
        InputValidationError
            If the matrix or the parameters are invalid
        """
        minleaf = self.config.minleaf if minleaf is None else minleaf
        t = self.config.t if t is None else t
        if forced_markers is None:
            forced_markers = self.config.force_first_markers
        forced_markers = list(forced_markers or [])

        matrix, markers = validate_event_matrix(events, minleaf, t, forced_markers)
        minleaf = int(np.floor(minleaf))
        n_events = matrix.shape[0]

        self.logger.info(
            "Building tree: %d events, %d markers, minleaf=%d, t=%.3f",
            n_events,
            len(markers),
            minleaf,
            t,
        )
        if forced_markers:
            self.logger.info("Forced first markers: %s", forced_markers)

        start_time = time.time()
        nodes = [Node(node_id=0, parent=None, depth=0, members=np.arange(n_events))]
        frontier = [0]
        while frontier:
            decisions = self._decide_level(matrix, markers, nodes, frontier, minleaf, t, forced_markers)
            next_frontier: List[int] = []
            for node_id, decision in zip(frontier, decisions):
                next_frontier.extend(self._apply_decision(nodes, node_id, decision))
            frontier = next_frontier

        labels = self._assign_labels(nodes, n_events)
        tree = Tree(
            nodes=nodes,
            markers=markers,
            labels=labels,
            params={
                "minleaf": minleaf,
                "t": float(t),
                "force_first_markers": forced_markers,
            },
        )
        self.logger.info(
            "Tree built in %.2f sec: %d nodes, %d leaves, depth %d",
            time.time() - start_time,
            len(nodes),
            tree.n_leaves,
            tree.depth,
        )
        return tree

    def _available_markers(self, nodes: List[Node], node: Node, markers: List[str]) -> List[int]:
        """Column indices of markers not used by any ancestor of ``node``."""
        used = set()
        parent = node.parent
        while parent is not None:
            used.add(nodes[parent].split.marker)
            parent = nodes[parent].parent
        return [j for j, marker in enumerate(markers) if marker not in used]

    def _decide_level(
        self,
        matrix: np.ndarray,
        markers: List[str],
        nodes: List[Node],
        frontier: List[int],
        minleaf: int,
        t: float,
        forced_markers: List[str],
    ) -> List[NodeDecision]:
        """Score every node of one depth, in parallel when configured."""
        jobs = []
        for node_id in frontier:
            node = nodes[node_id]
            columns = self._available_markers(nodes, node, markers)
            jobs.append(
                (
                    matrix[np.ix_(node.members, columns)],
                    [markers[j] for j in columns],
                    node.depth,
                    minleaf,
                    t,
                    forced_markers,
                    self.mixture_config,
                )
            )

        n_workers = self.config.n_workers
        if n_workers > 1 and len(jobs) > 1:
            self.logger.debug("Fitting %d nodes with %d workers", len(jobs), n_workers)
            return Parallel(n_jobs=n_workers, backend="loky")(
                delayed(decide_node)(*job) for job in jobs
            )
        return [decide_node(*job) for job in jobs]

    def _apply_decision(
        self,
        nodes: List[Node],
        node_id: int,
        decision: NodeDecision,
    ) -> List[int]:
        """Record a decision on its node; return the ids of new children."""
        node = nodes[node_id]
        node.scores = decision.scores
        node.reason = decision.reason
        node.state = NodeState.SCORED

        if decision.fit is None:
            node.state = NodeState.LEAF
            self.logger.debug(
                "Node %d (depth %d, %d events): leaf (%s)",
                node_id,
                node.depth,
                node.n_events,
                decision.reason,
            )
            return []

        record = SplitRecord.from_fit(decision.fit, decision.d, forced=decision.forced)
        high_mask = decision.fit.bimodal.high_mask
        low_id, high_id = len(nodes), len(nodes) + 1
        nodes.append(
            Node(node_id=low_id, parent=node_id, depth=node.depth + 1, members=node.members[~high_mask])
        )
        nodes.append(
            Node(node_id=high_id, parent=node_id, depth=node.depth + 1, members=node.members[high_mask])
        )
        node.split = record
        node.children = (low_id, high_id)
        node.state = NodeState.SPLIT
        self.logger.debug(
            "Node %d (depth %d, %d events): split on %s (D=%.4f%s) -> %d low / %d high",
            node_id,
            node.depth,
            node.n_events,
            record.marker,
            record.d,
            ", forced" if record.forced else "",
            nodes[low_id].n_events,
            nodes[high_id].n_events,
        )
        return [low_id, high_id]

    def _assign_labels(self, nodes: List[Node], n_events: int) -> np.ndarray:
        """Number leaves 1..L in traversal order and label every event."""
        labels = np.zeros(n_events, dtype=int)
        label = 0
        for node_id in self.traversal(nodes):
            node = nodes[node_id]
            if node.is_leaf:
                label += 1
                node.label = label
                labels[node.members] = label
        return labels
