"""Configuration classes for the binary tree module.

All tree-building parameters are configurable from YAML so that runs are
reproducible from a single settings file.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml


@dataclass
class MixtureConfig:
    """Configuration for the per-marker Gaussian mixture fits.

    Attributes
    ----------
    max_iter : int
        Maximum number of EM iterations before a fit is declared
        non-convergent
    tol : float
        Convergence threshold on the per-event log-likelihood gain
    min_variance_ratio : float
        A component whose variance falls below this fraction of the
        marker's interquartile variance, ``(IQR / 1.349) ** 2``, is
        treated as collapsed. The same scale, times 1e-6, is added to
        the component variances at every EM step
    seed_quantiles : Tuple[float, float]
        Percentiles used as the initial component means
    """

    max_iter: int = 1000
    tol: float = 1e-6
    min_variance_ratio: float = 1e-3
    seed_quantiles: Tuple[float, float] = (25.0, 75.0)


@dataclass
class TreeConfig:
    """Configuration for recursive tree construction.

    Attributes
    ----------
    minleaf : int
        Minimum number of events per leaf population
    t : float
        Threshold on the normalized AIC difference required to split
    force_first_markers : List[str]
        Markers forced, in order, at the first levels of the tree
    n_workers : int
        Number of joblib workers used to fit nodes of the same depth
        (1 = sequential)
    """

    minleaf: int = 1
    t: float = 0.1
    force_first_markers: List[str] = field(default_factory=list)
    n_workers: int = 1


@dataclass
class CytomeTreeConfig:
    """Master configuration for a tree build and its annotation.

    Attributes
    ----------
    tree : TreeConfig
        Tree construction configuration
    mixture : MixtureConfig
        Mixture fitting configuration
    """

    tree: TreeConfig = field(default_factory=TreeConfig)
    mixture: MixtureConfig = field(default_factory=MixtureConfig)

    @classmethod
    def from_yaml(cls, path: Path) -> "CytomeTreeConfig":
        """Load configuration from YAML file."""
        with open(path) as f:
            data = yaml.safe_load(f) or {}

        # Handle nested cytometree section
        if "cytometree" in data:
            data = data["cytometree"]

        tree_data = dict(data.get("tree", {}))
        if tree_data.get("force_first_markers") is None:
            tree_data["force_first_markers"] = []

        mixture_data = dict(data.get("mixture", {}))
        if "seed_quantiles" in mixture_data:
            mixture_data["seed_quantiles"] = tuple(mixture_data["seed_quantiles"])

        return cls(
            tree=TreeConfig(**tree_data),
            mixture=MixtureConfig(**mixture_data),
        )

    @classmethod
    def default(cls) -> "CytomeTreeConfig":
        """Create default configuration."""
        return cls()

    def with_overrides(
        self,
        minleaf: Optional[int] = None,
        t: Optional[float] = None,
        force_first_markers: Optional[List[str]] = None,
        n_workers: Optional[int] = None,
    ) -> "CytomeTreeConfig":
        """Return a copy with the given tree parameters replaced."""
        tree = TreeConfig(
            minleaf=self.tree.minleaf if minleaf is None else minleaf,
            t=self.tree.t if t is None else t,
            force_first_markers=list(
                self.tree.force_first_markers
                if force_first_markers is None
                else force_first_markers
            ),
            n_workers=self.tree.n_workers if n_workers is None else n_workers,
        )
        return CytomeTreeConfig(tree=tree, mixture=self.mixture)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "tree": {
                "minleaf": self.tree.minleaf,
                "t": self.tree.t,
                "force_first_markers": list(self.tree.force_first_markers),
                "n_workers": self.tree.n_workers,
            },
            "mixture": {
                "max_iter": self.mixture.max_iter,
                "tol": self.mixture.tol,
                "min_variance_ratio": self.mixture.min_variance_ratio,
                "seed_quantiles": list(self.mixture.seed_quantiles),
            },
        }
