"""Export functions for CytomeTree outputs.

This module writes:
- Event labels (leaf and merged label per event)
- Phenotype table (merged populations)
- Tree annotation (one row per raw leaf)
- Node table (split records) and per-node marker scores
- Run record (YAML) and one line of run history (JSON lines)
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional, Union

import pandas as pd

from ..io.csv import ensure_output_dir, write_dataframe
from ..io.logging import append_run_history, write_run_record
from .engine import CytomeTreeResult

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def _phenotype_frame_for_csv(table: pd.DataFrame) -> pd.DataFrame:
    """Flatten list-valued columns so the table survives a CSV round trip."""
    out = table.copy()
    for col in ("leaves", "labels"):
        if col in out.columns:
            out[col] = out[col].apply(lambda values: ";".join(str(v) for v in values))
    return out


def export_results(
    result: CytomeTreeResult,
    output_dir: PathLike,
    prefix: str = "cytometree",
    event_id_name: Optional[str] = None,
) -> Dict[str, Path]:
    """Write every output of a run to ``output_dir``.

    Parameters
    ----------
    result : CytomeTreeResult
        Result of ``CytomeTreeEngine.run``
    output_dir : PathLike
        Directory to write to (created if missing)
    prefix : str
        File name prefix
    event_id_name : str, optional
        Column name for the event index in the labels file

    Returns
    -------
    Dict[str, Path]
        Output kind -> written path
    """
    output_dir = ensure_output_dir(output_dir)
    paths: Dict[str, Path] = {}

    labels = result.labels_frame()
    labels.index.name = event_id_name or labels.index.name or "event"
    paths["labels"] = write_dataframe(
        labels.reset_index(), output_dir / f"{prefix}_labels.csv"
    )
    paths["phenotypes"] = write_dataframe(
        _phenotype_frame_for_csv(result.phenotypes), output_dir / f"{prefix}_phenotypes.csv"
    )
    paths["tree_annotation"] = write_dataframe(
        _phenotype_frame_for_csv(result.tree_annotation),
        output_dir / f"{prefix}_tree_annotation.csv",
    )
    paths["nodes"] = write_dataframe(result.tree.to_frame(), output_dir / f"{prefix}_nodes.csv")
    paths["scores"] = write_dataframe(
        result.tree.scores_frame(), output_dir / f"{prefix}_scores.csv"
    )

    record = {
        "timestamp": datetime.now().isoformat(timespec="seconds"),
        **result.summary(),
        "outputs": {kind: path.name for kind, path in paths.items()},
    }
    paths["run"] = write_run_record(output_dir / f"{prefix}_run.yaml", record)
    paths["history"] = append_run_history(output_dir / f"{prefix}_runs.jsonl", record)

    for kind, path in paths.items():
        logger.info("Wrote %s: %s", kind, path)
    return paths


def read_phenotype_table(path: PathLike) -> pd.DataFrame:
    """Read a phenotype table written by ``export_results``."""
    table = pd.read_csv(path)
    if "leaves" in table.columns:
        table["leaves"] = table["leaves"].apply(
            lambda text: [int(v) for v in str(text).split(";") if v != ""]
        )
    return table
