"""Unit tests for F-measure evaluation."""

import pytest
import numpy as np

from cytometree.core.evaluation import f_measure, f_measure_no_zero, f_measure_table


class TestFMeasure:
    """Tests for f_measure."""

    def test_perfect_agreement(self):
        """Identical partitions score 1, whatever the label values."""
        ref = np.array([1, 1, 2, 2, 3])
        pred = np.array([7, 7, 5, 5, 9])
        assert f_measure(ref, pred) == pytest.approx(1.0)

    def test_single_predicted_cluster(self):
        """Everything in one cluster: F_i = 2 n_i / (n_i + n)."""
        ref = np.array([1, 1, 1, 2])
        pred = np.ones(4, dtype=int)
        expected = 0.75 * (2 * 3 / 7) + 0.25 * (2 * 1 / 5)
        assert f_measure(ref, pred) == pytest.approx(expected)

    def test_length_mismatch(self):
        """Label vectors must have the same length."""
        with pytest.raises(ValueError):
            f_measure([1, 2], [1])

    def test_empty(self):
        """Empty labelings are rejected."""
        with pytest.raises(ValueError):
            f_measure([], [])


class TestFMeasureNoZero:
    """Tests for f_measure_no_zero."""

    def test_zero_reference_ignored(self):
        """Events with reference 0 do not count."""
        ref = np.array([0, 0, 1, 1, 2, 2])
        pred = np.array([1, 2, 3, 3, 4, 4])
        assert f_measure_no_zero(ref, pred) == pytest.approx(1.0)
        assert f_measure(ref, pred) < 1.0

    def test_all_zero(self):
        """At least one labeled reference event is required."""
        with pytest.raises(ValueError):
            f_measure_no_zero([0, 0], [1, 2])


class TestFMeasureTable:
    """Tests for the per-class table."""

    def test_columns_and_best_match(self):
        """Each reference class is matched to its best predicted label."""
        ref = np.array([1, 1, 1, 2, 2])
        pred = np.array([5, 5, 6, 6, 6])
        table = f_measure_table(ref, pred)
        assert list(table.columns) == ["reference", "size", "best_predicted", "precision", "recall", "f"]
        assert list(table["best_predicted"]) == [5, 6]
        row = table.iloc[1]
        assert row["precision"] == pytest.approx(2 / 3)
        assert row["recall"] == pytest.approx(1.0)
        assert row["f"] == pytest.approx(0.8)
