"""Unit tests for per-marker mixture fitting."""

import pytest
import numpy as np

from cytometree.core.tree import (
    BimodalFit,
    DegenerateFit,
    MixtureConfig,
    UnimodalFit,
    fit_bimodal,
    fit_marker,
    fit_unimodal,
)
from cytometree.utils import aic, compute_percentiles, gaussian_loglik, robust_variance


class TestStats:
    """Tests for statistical helpers."""

    def test_aic(self):
        """AIC is 2k - 2 logL."""
        assert aic(-10.0, 2) == pytest.approx(24.0)

    def test_gaussian_loglik_standard_normal(self):
        """Log-likelihood of a single point at the mean."""
        value = gaussian_loglik(np.array([0.0]), 0.0, 1.0)
        assert value == pytest.approx(-0.5 * np.log(2 * np.pi))

    def test_percentiles_ignore_nan(self):
        """Non-finite values are dropped before computing percentiles."""
        result = compute_percentiles([1.0, 2.0, np.nan, 3.0], [50])
        assert result[0] == pytest.approx(2.0)

    def test_robust_variance_ignores_outlier(self, bimodal_events):
        """The IQR-based scale barely moves when an extreme event is added."""
        x = bimodal_events["A"].to_numpy()
        with_outlier = np.append(x, 500.0)
        assert robust_variance(with_outlier) == pytest.approx(robust_variance(x), rel=0.05)
        assert np.var(with_outlier) > 100 * robust_variance(with_outlier)

    def test_robust_variance_tied_quartiles(self):
        """Tied quartiles fall back to the sample variance."""
        x = np.array([1.0] * 8 + [0.0, 2.0])
        assert robust_variance(x) == pytest.approx(np.var(x))


class TestFitUnimodal:
    """Tests for the single normal fit."""

    def test_maximum_likelihood_estimates(self):
        """Mean and (biased) variance of the data."""
        x = np.array([1.0, 2.0, 3.0, 4.0])
        fit = fit_unimodal(x)
        assert isinstance(fit, UnimodalFit)
        assert fit.mean == pytest.approx(2.5)
        assert fit.variance == pytest.approx(1.25)
        assert fit.n == 4
        assert fit.aic == pytest.approx(4.0 - 2.0 * fit.loglik)

    def test_constant_values_stay_finite(self):
        """A constant marker gets a positive variance and finite loglik."""
        fit = fit_unimodal(np.full(10, 3.0))
        assert fit.variance > 0
        assert np.isfinite(fit.loglik)


class TestFitBimodal:
    """Tests for the two-component EM fit."""

    def test_recovers_separated_modes(self, bimodal_events):
        """Components land near -3 and 3 with unit variance."""
        x = bimodal_events["A"].to_numpy()
        fit = fit_bimodal(x, fit_unimodal(x))
        assert isinstance(fit, BimodalFit)
        assert fit.low.mean == pytest.approx(-3.0, abs=0.5)
        assert fit.high.mean == pytest.approx(3.0, abs=0.5)
        assert fit.low.variance == pytest.approx(1.0, abs=0.5)
        assert sum(c.weight for c in fit.components) == pytest.approx(1.0)

    def test_high_mask_matches_mode(self, bimodal_events):
        """Events of the upper mode are assigned to the high component."""
        x = bimodal_events["A"].to_numpy()
        fit = fit_bimodal(x, fit_unimodal(x))
        truth_high = np.arange(200) >= 100
        agreement = np.mean(fit.high_mask == truth_high)
        assert agreement > 0.97

    def test_bimodal_beats_unimodal(self, bimodal_events):
        """The mixture has a lower AIC on bimodal data."""
        x = bimodal_events["A"].to_numpy()
        uni = fit_unimodal(x)
        fit = fit_bimodal(x, uni)
        assert fit.loglik > uni.loglik
        assert fit.aic < uni.aic

    def test_deterministic(self, bimodal_events):
        """Repeated fits give identical components in the same order."""
        x = bimodal_events["A"].to_numpy()
        first = fit_bimodal(x, fit_unimodal(x))
        second = fit_bimodal(x, fit_unimodal(x))
        assert first.components == second.components
        np.testing.assert_array_equal(first.assignment, second.assignment)

    def test_zero_variance_is_degenerate(self):
        """Constant data cannot be split."""
        x = np.full(20, 1.5)
        uni = fit_unimodal(x)
        fit = fit_bimodal(x, uni)
        assert isinstance(fit, DegenerateFit)
        assert fit.reason == "zero_variance"
        assert fit.loglik == uni.loglik
        assert fit.separation == 0.0

    def test_two_distinct_values_collapse(self):
        """Two point masses collapse the component variances."""
        x = np.array([0.0] * 10 + [1.0] * 10)
        fit = fit_bimodal(x, fit_unimodal(x))
        assert isinstance(fit, DegenerateFit)
        assert fit.reason == "collapsed_variance"

    @pytest.mark.parametrize("outlier", [500.0, 2000.0])
    def test_single_outlier_keeps_components(self, bimodal_events, outlier):
        """One extreme event does not make the low component look collapsed."""
        x = np.append(bimodal_events["A"].to_numpy(), outlier)
        fit = fit_bimodal(x, fit_unimodal(x))
        assert isinstance(fit, BimodalFit)
        assert fit.low.mean == pytest.approx(-3.0, abs=0.5)
        assert fit.low.variance == pytest.approx(1.0, abs=0.5)
        assert fit.high_mask[-1]

    def test_small_component_respects_minleaf(self, bimodal_events):
        """A component with fewer than minleaf events is rejected."""
        x = bimodal_events["A"].to_numpy()
        fit = fit_bimodal(x, fit_unimodal(x), minleaf=150)
        assert isinstance(fit, DegenerateFit)
        assert fit.reason == "small_component"

    def test_not_converged(self, bimodal_events):
        """Hitting max_iter without convergence falls back."""
        x = bimodal_events["B"].to_numpy()
        config = MixtureConfig(max_iter=1, tol=0.0)
        fit = fit_bimodal(x, fit_unimodal(x), config=config)
        assert isinstance(fit, DegenerateFit)
        assert fit.reason == "not_converged"

    def test_degenerate_aic_never_better(self):
        """Degenerate fits keep the unimodal loglik with 5 parameters."""
        x = np.full(20, 2.0)
        uni = fit_unimodal(x)
        fit = fit_bimodal(x, uni)
        assert fit.aic > uni.aic


class TestFitMarker:
    """Tests for the combined marker fit."""

    def test_fit_marker(self, bimodal_events):
        """Both fits are attached to the marker name."""
        fit = fit_marker(bimodal_events["A"].to_numpy(), "A")
        assert fit.marker == "A"
        assert fit.n == 200
        assert not fit.is_degenerate

    def test_fit_marker_degenerate(self):
        """is_degenerate reflects the mixture outcome."""
        fit = fit_marker(np.ones(10), "C")
        assert fit.is_degenerate
