"""Per-marker Gaussian model fitting.

For one marker restricted to the events of one node, this module fits a
single normal distribution and a two-component normal mixture. The mixture
is fit by scikit-learn's EM, seeded from the data quantiles, so repeated
runs on the same data give identical components in the same order.

Fit results are tagged types:

- ``UnimodalFit``: maximum-likelihood normal fit (2 free parameters)
- ``BimodalFit``: converged two-component mixture (5 free parameters)
- ``DegenerateFit``: the mixture could not be fit cleanly; it carries the
  unimodal log-likelihood so the marker can never win a split
"""

from __future__ import annotations

import warnings
from dataclasses import dataclass
from typing import Optional, Tuple, Union

import numpy as np
from sklearn.exceptions import ConvergenceWarning
from sklearn.mixture import GaussianMixture

from ...utils.stats import aic, compute_percentiles, gaussian_loglik, robust_variance
from .config import MixtureConfig

UNIMODAL_PARAMS = 2
BIMODAL_PARAMS = 5

# Responsibility mass below which a component counts as empty
EMPTY_COMPONENT_EPS = 1e-10

# Added to every component variance, relative to the robust marker variance
REG_COVAR_RATIO = 1e-6


@dataclass(frozen=True)
class Component:
    """One fitted normal component."""

    mean: float
    variance: float
    weight: float

    @property
    def sd(self) -> float:
        return float(np.sqrt(self.variance))


@dataclass(frozen=True)
class UnimodalFit:
    """Single normal fit of one marker."""

    mean: float
    variance: float
    loglik: float
    n: int

    @property
    def aic(self) -> float:
        return aic(self.loglik, UNIMODAL_PARAMS)


@dataclass(frozen=True, eq=False)
class BimodalFit:
    """Two-component mixture fit of one marker.

    Attributes
    ----------
    components : Tuple[Component, Component]
        Components in fitted order
    assignment : np.ndarray
        Index (0 or 1) of the most responsible component for each event
    loglik : float
        Mixture log-likelihood at convergence
    n_iter : int
        Number of EM iterations performed
    """

    components: Tuple[Component, Component]
    assignment: np.ndarray
    loglik: float
    n_iter: int

    @property
    def aic(self) -> float:
        return aic(self.loglik, BIMODAL_PARAMS)

    @property
    def high_index(self) -> int:
        """Index of the component with the larger mean."""
        return int(self.components[1].mean > self.components[0].mean)

    @property
    def high(self) -> Component:
        return self.components[self.high_index]

    @property
    def low(self) -> Component:
        return self.components[1 - self.high_index]

    @property
    def high_mask(self) -> np.ndarray:
        """Boolean mask of events assigned to the high component."""
        return self.assignment == self.high_index

    @property
    def separation(self) -> float:
        return abs(self.high.mean - self.low.mean)


@dataclass(frozen=True)
class DegenerateFit:
    """Mixture fit that fell back to the unimodal likelihood.

    Attributes
    ----------
    reason : str
        One of "zero_variance", "collapsed_variance", "empty_component",
        "small_component", "identical_means", "non_finite_likelihood",
        "not_converged"
    loglik : float
        The unimodal log-likelihood of the same data
    """

    reason: str
    loglik: float

    @property
    def aic(self) -> float:
        return aic(self.loglik, BIMODAL_PARAMS)

    @property
    def separation(self) -> float:
        return 0.0


MixtureFit = Union[BimodalFit, DegenerateFit]


@dataclass(frozen=True, eq=False)
class MarkerFit:
    """Both model fits for one marker at one node."""

    marker: str
    n: int
    unimodal: UnimodalFit
    bimodal: MixtureFit

    @property
    def is_degenerate(self) -> bool:
        return isinstance(self.bimodal, DegenerateFit)


def fit_unimodal(values: np.ndarray) -> UnimodalFit:
    """Maximum-likelihood normal fit.

    A constant marker gets the smallest positive variance so that its
    log-likelihood stays finite.
    """
    x = np.asarray(values, dtype=float)
    mean = float(np.mean(x))
    variance = float(np.var(x))
    if variance <= 0.0:
        variance = float(np.finfo(float).tiny)
    return UnimodalFit(
        mean=mean,
        variance=variance,
        loglik=gaussian_loglik(x, mean, variance),
        n=int(x.size),
    )


def _seed_parameters(
    x: np.ndarray,
    var_floor: float,
    seed_quantiles: Tuple[float, float],
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Initial means, variances and weights from the data quantiles."""
    lo, hi = compute_percentiles(x, seed_quantiles)
    if not hi > lo:
        # More than half of the events share one value
        lo, hi = float(np.min(x)), float(np.max(x))

    lower = x <= (lo + hi) / 2.0
    variances = np.array([np.var(x[lower]), np.var(x[~lower])])
    variances = np.maximum(variances, var_floor)
    return np.array([lo, hi], dtype=float), variances, np.array([0.5, 0.5])


def fit_bimodal(
    values: np.ndarray,
    unimodal: UnimodalFit,
    minleaf: int = 1,
    config: Optional[MixtureConfig] = None,
) -> MixtureFit:
    """Fit a two-component normal mixture by EM.

    Parameters
    ----------
    values : np.ndarray
        One marker's values for the events of a node
    unimodal : UnimodalFit
        Unimodal fit of the same values, used for the degenerate fallback
    minleaf : int
        Minimum number of events hard-assigned to each component
    config : MixtureConfig, optional
        EM settings. Uses defaults if None.

    Returns
    -------
    BimodalFit or DegenerateFit
        A ``DegenerateFit`` whenever the mixture cannot produce two
        well-formed components.
    """
    config = config or MixtureConfig()
    x = np.asarray(values, dtype=float)
    n = x.size

    def fallback(reason: str) -> DegenerateFit:
        return DegenerateFit(reason=reason, loglik=unimodal.loglik)

    if n < 2 or float(np.var(x)) <= 0.0:
        return fallback("zero_variance")

    # Scaled by the IQR so that outlying events do not raise the floor
    scale = robust_variance(x)
    var_floor = config.min_variance_ratio * scale
    means, variances, weights = _seed_parameters(x, var_floor, config.seed_quantiles)

    gm = GaussianMixture(
        n_components=2,
        covariance_type="spherical",
        tol=config.tol,
        reg_covar=REG_COVAR_RATIO * scale,
        max_iter=config.max_iter,
        n_init=1,
        init_params="random",
        weights_init=weights,
        means_init=means[:, None],
        precisions_init=1.0 / variances,
        random_state=0,
    )
    column = x[:, None]
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", category=ConvergenceWarning)
        gm.fit(column)

    weights = gm.weights_
    means = gm.means_[:, 0]
    variances = gm.covariances_
    if np.any(weights <= EMPTY_COMPONENT_EPS):
        return fallback("empty_component")
    if np.any(variances < var_floor):
        return fallback("collapsed_variance")
    if not gm.converged_:
        return fallback("not_converged")
    if means[0] == means[1]:
        return fallback("identical_means")

    loglik = float(gm.score(column) * n)
    if not np.isfinite(loglik):
        return fallback("non_finite_likelihood")

    assignment = gm.predict(column)
    counts = np.bincount(assignment, minlength=2)
    if np.any(counts < max(minleaf, 1)):
        return fallback("small_component")

    components = tuple(
        Component(mean=float(m), variance=float(v), weight=float(w))
        for m, v, w in zip(means, variances, weights)
    )
    return BimodalFit(
        components=components,
        assignment=assignment,
        loglik=loglik,
        n_iter=int(gm.n_iter_),
    )


def fit_marker(
    values: np.ndarray,
    marker: str,
    minleaf: int = 1,
    config: Optional[MixtureConfig] = None,
) -> MarkerFit:
    """Fit the unimodal and bimodal models for one marker."""
    unimodal = fit_unimodal(values)
    bimodal = fit_bimodal(values, unimodal, minleaf=minleaf, config=config)
    return MarkerFit(marker=marker, n=unimodal.n, unimodal=unimodal, bimodal=bimodal)
