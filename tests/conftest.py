"""Pytest configuration and shared fixtures for cytometree tests."""

import sys
from pathlib import Path

import pytest
import numpy as np
import pandas as pd

# Add package to path
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

# Import synthetic data generators
from tests.fixtures import (
    create_bimodal_events,
    create_four_population_events,
    create_unimodal_events,
)


# ============================================================================
# Event Matrix Fixtures
# ============================================================================


@pytest.fixture
def bimodal_events() -> pd.DataFrame:
    """200 events: A from N(-3,1)/N(3,1) (100 each), B noise."""
    return create_bimodal_events(n_per_mode=100, separation=3.0, seed=42)


@pytest.fixture
def unimodal_events() -> pd.DataFrame:
    """A single Gaussian cloud over 3 markers."""
    return create_unimodal_events(n_events=300, n_markers=3, seed=42)


@pytest.fixture
def four_population_events():
    """CD4/CD8 quadrant populations and their true labels."""
    return create_four_population_events(n_per_population=150, seed=42)


@pytest.fixture
def quadrant_table() -> pd.DataFrame:
    """Hand-written phenotype table with an undetermined marker."""
    return pd.DataFrame({
        "label": [1, 2, 3],
        "combination": ["CD4-", "CD4+ CD8-", "CD4+ CD8+"],
        "CD4": [0.0, 1.0, 1.0],
        "CD8": [np.nan, 0.0, 1.0],
        "count": [50, 30, 20],
        "prop": [0.5, 0.3, 0.2],
        "leaves": [[1], [2], [3]],
    })


@pytest.fixture
def tmp_output_dir(tmp_path: Path) -> Path:
    """Create a temporary output directory for tests."""
    output_dir = tmp_path / "output"
    output_dir.mkdir(parents=True, exist_ok=True)
    return output_dir


# ============================================================================
# File Fixtures
# ============================================================================


@pytest.fixture
def bimodal_csv(tmp_path, bimodal_events) -> Path:
    """Bimodal events written to CSV with an ID and a reference label column."""
    df = bimodal_events.copy()
    df.insert(0, "event_id", [f"e{i}" for i in range(len(df))])
    df["truth"] = np.repeat([1, 2], 100)
    path = tmp_path / "events.csv"
    df.to_csv(path, index=False)
    return path


@pytest.fixture
def sample_config_yaml(tmp_path) -> Path:
    """Create sample CytomeTree configuration file."""
    import yaml

    config = {
        "cytometree": {
            "tree": {
                "minleaf": 5,
                "t": 0.2,
                "force_first_markers": ["A"],
            },
            "mixture": {
                "max_iter": 500,
                "tol": 1e-7,
            },
        },
    }

    path = tmp_path / "cytometree.yaml"
    with open(path, "w") as f:
        yaml.dump(config, f)

    return path
