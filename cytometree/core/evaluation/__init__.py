"""Evaluation of a labeling against a reference (F-measure)."""

from .fmeasure import f_measure, f_measure_no_zero, f_measure_table

__all__ = [
    "f_measure",
    "f_measure_no_zero",
    "f_measure_table",
]
