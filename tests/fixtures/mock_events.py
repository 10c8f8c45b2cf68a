"""Synthetic event matrix generators for testing.

Provides functions to create small cytometry-like event matrices with a
known population structure, without requiring real data.
"""

from typing import Sequence, Tuple

import numpy as np
import pandas as pd


def create_bimodal_events(
    n_per_mode: int = 100,
    separation: float = 3.0,
    seed: int = 42,
) -> pd.DataFrame:
    """Two markers: A is bimodal (N(-sep, 1) and N(sep, 1)), B is noise.

    Parameters
    ----------
    n_per_mode : int
        Number of events in each mode of A
    separation : float
        Absolute mean of each mode of A
    seed : int
        Random seed for reproducibility

    Returns
    -------
    pd.DataFrame
        Events with the low mode of A first
    """
    rng = np.random.RandomState(seed)
    a = np.concatenate([
        rng.normal(-separation, 1.0, n_per_mode),
        rng.normal(separation, 1.0, n_per_mode),
    ])
    b = rng.normal(0.0, 1.0, 2 * n_per_mode)
    return pd.DataFrame({"A": a, "B": b})


def create_unimodal_events(
    n_events: int = 300,
    n_markers: int = 3,
    seed: int = 42,
) -> pd.DataFrame:
    """A single Gaussian cloud with independent markers M1..Mp."""
    rng = np.random.RandomState(seed)
    data = rng.normal(0.0, 1.0, size=(n_events, n_markers))
    return pd.DataFrame(data, columns=[f"M{i}" for i in range(1, n_markers + 1)])


def create_population_events(
    phenotypes: Sequence[Sequence[int]],
    markers: Sequence[str],
    n_per_population: int = 150,
    shift: float = 4.0,
    noise: float = 0.7,
    seed: int = 42,
) -> Tuple[pd.DataFrame, np.ndarray]:
    """Populations defined by +/- codes on each marker.

    Parameters
    ----------
    phenotypes : Sequence[Sequence[int]]
        One 0/1 code vector per population
    markers : Sequence[str]
        Marker names
    n_per_population : int
        Events per population
    shift : float
        Mean of a positive marker (negative markers are centered on 0)
    noise : float
        Standard deviation within a population
    seed : int
        Random seed for reproducibility

    Returns
    -------
    Tuple[pd.DataFrame, np.ndarray]
        Event matrix and the true population (1..K) of every event
    """
    rng = np.random.RandomState(seed)
    blocks = []
    truth = []
    for k, codes in enumerate(phenotypes, start=1):
        means = np.asarray(codes, dtype=float) * shift
        blocks.append(rng.normal(means, noise, size=(n_per_population, len(markers))))
        truth.append(np.full(n_per_population, k))
    events = pd.DataFrame(np.vstack(blocks), columns=list(markers))
    return events, np.concatenate(truth)


def create_four_population_events(
    n_per_population: int = 150,
    seed: int = 42,
) -> Tuple[pd.DataFrame, np.ndarray]:
    """CD4/CD8 quadrants: CD4-CD8-, CD4+CD8-, CD4-CD8+, CD4+CD8+."""
    return create_population_events(
        phenotypes=[(0, 0), (1, 0), (0, 1), (1, 1)],
        markers=["CD4", "CD8"],
        n_per_population=n_per_population,
        seed=seed,
    )
