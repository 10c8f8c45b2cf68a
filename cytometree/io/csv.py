"""CSV I/O utilities for cytometree.

Provides functions for loading event matrices and label vectors and for
writing result tables.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional, Sequence, Union

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def ensure_output_dir(path: PathLike) -> Path:
    """Create the directory at path if it does not exist and return it.

    Parameters
    ----------
    path : PathLike
        Directory path to create.

    Returns
    -------
    Path
        The created/existing directory path.
    """
    directory = Path(path)
    directory.mkdir(parents=True, exist_ok=True)
    return directory


def marker_columns(
    df: pd.DataFrame,
    exclude: Optional[Sequence[str]] = None,
) -> List[str]:
    """Return the numeric marker columns of an event table.

    Parameters
    ----------
    df : pd.DataFrame
        Event table.
    exclude : Sequence[str], optional
        Columns that are never markers (IDs, reference labels).

    Returns
    -------
    List[str]
        Marker column names, in file order.
    """
    excluded = set(exclude or [])
    return [
        col for col in df.columns
        if col not in excluded
        and pd.api.types.is_numeric_dtype(df[col])
        and not pd.api.types.is_bool_dtype(df[col])
    ]


def load_event_matrix(
    path: PathLike,
    markers: Optional[Sequence[str]] = None,
    id_column: Optional[str] = None,
    drop_columns: Optional[Sequence[str]] = None,
) -> pd.DataFrame:
    """Read an event-by-marker matrix from CSV.

    Parameters
    ----------
    path : PathLike
        Path to the CSV file (one row per event).
    markers : Sequence[str], optional
        Marker columns to keep. If None, every numeric column that is not
        the ID column or a dropped column is kept.
    id_column : str, optional
        Name of an event ID column, used as the index.
    drop_columns : Sequence[str], optional
        Columns to drop (e.g. a reference label column).

    Returns
    -------
    pd.DataFrame
        Event-by-marker matrix.

    Raises
    ------
    FileNotFoundError
        If the file does not exist.
    ValueError
        If the table is empty or requested columns are missing.
    """
    csv_path = Path(path)
    if not csv_path.exists():
        raise FileNotFoundError(f"Event matrix not found: {csv_path}")
    df = pd.read_csv(csv_path)
    if df.empty:
        raise ValueError(f"Event matrix {csv_path} is empty")

    if id_column is not None:
        if id_column not in df.columns:
            raise ValueError(f"ID column `{id_column}` not found in {csv_path}")
        df = df.set_index(id_column)

    cols_to_drop = [c for c in (drop_columns or []) if c in df.columns]
    if cols_to_drop:
        df = df.drop(columns=cols_to_drop)

    if markers is not None:
        missing = [m for m in markers if m not in df.columns]
        if missing:
            raise ValueError(f"Markers not found in {csv_path}: {missing}")
        df = df[list(markers)]
    else:
        selected = marker_columns(df)
        skipped = [c for c in df.columns if c not in selected]
        if skipped:
            logger.info("Ignoring non-numeric columns: %s", skipped)
        df = df[selected]

    logger.info("Loaded %d events x %d markers from %s", df.shape[0], df.shape[1], csv_path)
    return df


def load_label_column(path: PathLike, column: str) -> np.ndarray:
    """Read one integer label column from a CSV file."""
    csv_path = Path(path)
    if not csv_path.exists():
        raise FileNotFoundError(f"Label file not found: {csv_path}")
    df = pd.read_csv(csv_path)
    if column not in df.columns:
        raise ValueError(f"Column `{column}` not found in {csv_path}")
    return df[column].to_numpy()


def write_dataframe(df: pd.DataFrame, path: PathLike, *, index: bool = False) -> Path:
    """Write DataFrame to path ensuring the parent directory exists.

    Parameters
    ----------
    df : pd.DataFrame
        DataFrame to write.
    path : PathLike
        Output path.
    index : bool
        Whether to write row index (default: False).

    Returns
    -------
    Path
        The output path.
    """
    output_path = Path(path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(output_path, index=index)
    return output_path
