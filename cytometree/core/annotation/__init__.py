"""Annotation module: phenotype codes of tree leaves and phenotype lookup.

Example Usage
-------------
>>> from cytometree.core.annotation import AnnotationMerger, retrieve_populations
>>> result = AnnotationMerger().annotate(tree)
>>> retrieve_populations([{"CD4": 1, "CD8": 0}], result.phenotypes)
"""

from .merger import (
    ABSENT,
    PHENOTYPE_COLUMNS,
    PRESENT,
    UNDETERMINED,
    AnnotationMerger,
    AnnotationResult,
    TreeStructureError,
    format_combination,
    leaf_code,
    merge_phenotypes,
    phenotype_markers,
    validate_tree,
)
from .lookup import (
    cells_for_phenotype,
    match_rows,
    normalize_phenotype,
    parse_phenotype,
    retrieve_populations,
)

__all__ = [
    # Codes
    "ABSENT",
    "PRESENT",
    "UNDETERMINED",
    "PHENOTYPE_COLUMNS",
    # Merger
    "AnnotationMerger",
    "AnnotationResult",
    "TreeStructureError",
    "format_combination",
    "leaf_code",
    "merge_phenotypes",
    "phenotype_markers",
    "validate_tree",
    # Lookup
    "cells_for_phenotype",
    "match_rows",
    "normalize_phenotype",
    "parse_phenotype",
    "retrieve_populations",
]
