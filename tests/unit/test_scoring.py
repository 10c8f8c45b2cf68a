"""Unit tests for split scoring."""

import pytest
import numpy as np

from cytometree.core.tree import (
    MarkerScore,
    best_marker,
    can_split,
    fit_marker,
    normalized_aic_difference,
    score_marker,
    score_markers,
    scores_to_frame,
    select_split,
)


def _score(marker, d, separation=1.0, status="bimodal"):
    return MarkerScore(
        marker=marker,
        d=d,
        separation=separation,
        aic_unimodal=0.0,
        aic_bimodal=0.0,
        status=status,
    )


class TestCanSplit:
    """Tests for the group size check."""

    def test_large_group(self):
        """A group of 2 * minleaf events with few markers can be fitted."""
        assert can_split(10, 2, 5)

    def test_too_few_for_minleaf(self):
        """Fewer than 2 * minleaf events cannot give two children."""
        assert not can_split(9, 2, 5)

    def test_fewer_events_than_markers(self):
        """Groups smaller than the number of markers are not fitted."""
        assert not can_split(3, 4, 1)


class TestScoreMarker:
    """Tests for scoring marker fits."""

    def test_bimodal_marker_positive_d(self, bimodal_events):
        """A clearly bimodal marker has a large positive D."""
        fit = fit_marker(bimodal_events["A"].to_numpy(), "A")
        score = score_marker(fit)
        assert score.status == "bimodal"
        assert score.is_candidate
        assert score.d > 0.1
        assert score.d == pytest.approx(normalized_aic_difference(fit))
        assert score.separation > 4.0

    def test_degenerate_marker_negative_d(self):
        """A degenerate fit has D = -6 / n."""
        fit = fit_marker(np.full(30, 1.0), "C")
        score = score_marker(fit)
        assert not score.is_candidate
        assert score.status == "zero_variance"
        assert score.d == pytest.approx(-6.0 / 30)

    def test_d_scale_invariant(self, bimodal_events):
        """Affine rescaling of a marker leaves D unchanged."""
        x = bimodal_events["A"].to_numpy()
        d1 = score_marker(fit_marker(x, "A")).d
        d2 = score_marker(fit_marker(10.0 * x + 5.0, "A")).d
        assert d2 == pytest.approx(d1, rel=1e-4)

    def test_score_markers_preserves_order(self, bimodal_events):
        """Scores come back in marker order."""
        fits = [fit_marker(bimodal_events[m].to_numpy(), m) for m in ["B", "A"]]
        scores = score_markers(fits)
        assert [s.marker for s in scores] == ["B", "A"]


class TestSelectSplit:
    """Tests for choosing the split marker."""

    def test_best_by_d(self):
        """The largest D wins."""
        scores = [_score("A", 0.2), _score("B", 0.5), _score("C", 0.3)]
        assert best_marker(scores) == 1

    def test_tie_broken_by_separation(self):
        """Equal D: the larger mean separation wins."""
        scores = [_score("A", 0.5, separation=1.0), _score("B", 0.5, separation=2.0)]
        assert best_marker(scores) == 1

    def test_full_tie_takes_first(self):
        """Equal D and separation: the earlier marker wins."""
        scores = [_score("A", 0.5), _score("B", 0.5)]
        assert best_marker(scores) == 0

    def test_degenerate_never_selected(self):
        """Only bimodal fits are candidates."""
        scores = [_score("A", 0.9, status="collapsed_variance"), _score("B", 0.2)]
        assert best_marker(scores) == 1

    def test_no_candidate(self):
        """No bimodal fit, no marker."""
        assert best_marker([_score("A", -0.1, status="zero_variance")]) is None

    def test_threshold_is_strict(self):
        """D must exceed t; D == t does not split."""
        scores = [_score("A", 0.1)]
        assert select_split(scores, 0.1) is None
        assert select_split(scores, 0.05) == 0

    def test_scores_to_frame(self):
        """One row per marker with all statistics."""
        df = scores_to_frame([_score("A", 0.1), _score("B", 0.2)])
        assert list(df["marker"]) == ["A", "B"]
        assert "status" in df.columns
