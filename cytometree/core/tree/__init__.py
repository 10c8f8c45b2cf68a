"""Binary tree module for unsupervised event partitioning.

Grows a binary tree over the events: at each node every available marker
is fitted with a normal and a two-component normal mixture, and the node
is split on the marker whose normalized AIC difference is largest, when it
exceeds the threshold t.

Example Usage
-------------
>>> from cytometree.core.tree import TreeBuilder, TreeConfig
>>> builder = TreeBuilder(TreeConfig(minleaf=1, t=0.1))
>>> tree = builder.build(events)
>>> tree.labels[:10]
>>> tree.marker_tree()
"""

# Configuration classes
from .config import (
    CytomeTreeConfig,
    MixtureConfig,
    TreeConfig,
)

# Mixture fitting
from .mixture import (
    BimodalFit,
    Component,
    DegenerateFit,
    MarkerFit,
    UnimodalFit,
    fit_bimodal,
    fit_marker,
    fit_unimodal,
)

# Split scoring
from .scoring import (
    MarkerScore,
    best_marker,
    can_split,
    normalized_aic_difference,
    score_marker,
    score_markers,
    scores_to_frame,
    select_split,
)

# Tree construction
from .builder import (
    Node,
    NodeDecision,
    NodeState,
    SplitRecord,
    Tree,
    TreeBuilder,
    decide_node,
    preorder,
)

__all__ = [
    # Config
    "CytomeTreeConfig",
    "MixtureConfig",
    "TreeConfig",
    # Mixture
    "BimodalFit",
    "Component",
    "DegenerateFit",
    "MarkerFit",
    "UnimodalFit",
    "fit_bimodal",
    "fit_marker",
    "fit_unimodal",
    # Scoring
    "MarkerScore",
    "best_marker",
    "can_split",
    "normalized_aic_difference",
    "score_marker",
    "score_markers",
    "scores_to_frame",
    "select_split",
    # Builder
    "Node",
    "NodeDecision",
    "NodeState",
    "SplitRecord",
    "Tree",
    "TreeBuilder",
    "decide_node",
    "preorder",
]
