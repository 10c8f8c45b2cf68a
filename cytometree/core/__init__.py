"""Core computational modules for cytometree.

This package contains:
- tree: mixture fitting, split scoring and tree construction
- annotation: leaf phenotype codes, merging and phenotype lookup
- evaluation: F-measure against reference labels
- engine: the end-to-end run (build then annotate)
- export: CSV and YAML outputs of a run
"""

from .engine import CytomeTreeEngine, CytomeTreeResult
from .export import export_results, read_phenotype_table

__all__ = [
    "CytomeTreeEngine",
    "CytomeTreeResult",
    "export_results",
    "read_phenotype_table",
]
