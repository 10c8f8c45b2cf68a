"""Unit tests for configuration classes."""

import pytest

from cytometree.core.tree import CytomeTreeConfig, MixtureConfig, TreeConfig


class TestTreeConfig:
    """Tests for TreeConfig dataclass."""

    def test_default_values(self):
        """Test default configuration values."""
        config = TreeConfig()
        assert config.minleaf == 1
        assert config.t == 0.1
        assert config.force_first_markers == []
        assert config.n_workers == 1


class TestMixtureConfig:
    """Tests for MixtureConfig dataclass."""

    def test_default_values(self):
        """Test default EM settings."""
        config = MixtureConfig()
        assert config.max_iter == 1000
        assert config.tol == 1e-6
        assert config.seed_quantiles == (25.0, 75.0)


class TestCytomeTreeConfig:
    """Tests for CytomeTreeConfig master config."""

    def test_from_yaml(self, sample_config_yaml):
        """Test loading config nested under a cytometree key."""
        config = CytomeTreeConfig.from_yaml(sample_config_yaml)
        assert config.tree.minleaf == 5
        assert config.tree.t == 0.2
        assert config.tree.force_first_markers == ["A"]
        assert config.mixture.max_iter == 500
        assert config.mixture.tol == pytest.approx(1e-7)
        assert config.mixture.min_variance_ratio == 1e-3

    def test_from_yaml_flat(self, tmp_path):
        """Test loading a config without the cytometree key."""
        path = tmp_path / "flat.yaml"
        path.write_text(
            "tree:\n  minleaf: 3\n  force_first_markers:\nmixture:\n  seed_quantiles: [10, 90]\n"
        )
        config = CytomeTreeConfig.from_yaml(path)
        assert config.tree.minleaf == 3
        assert config.tree.force_first_markers == []
        assert config.mixture.seed_quantiles == (10, 90)

    def test_from_empty_yaml(self, tmp_path):
        """An empty file gives the defaults."""
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert CytomeTreeConfig.from_yaml(path).to_dict() == CytomeTreeConfig.default().to_dict()

    def test_with_overrides(self):
        """Only the given parameters change."""
        base = CytomeTreeConfig.default()
        config = base.with_overrides(t=0.5, force_first_markers=["CD4"])
        assert config.tree.t == 0.5
        assert config.tree.force_first_markers == ["CD4"]
        assert config.tree.minleaf == base.tree.minleaf
        assert base.tree.t == 0.1

    def test_to_dict(self):
        """Test dictionary form."""
        data = CytomeTreeConfig.default().to_dict()
        assert data["tree"]["minleaf"] == 1
        assert data["mixture"]["seed_quantiles"] == [25.0, 75.0]
