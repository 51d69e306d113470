"""
Tests for configuration management module.
"""

import json
import logging

import pytest
import yaml

from cubemodel.core.config import CubeConfig, load_config, save_config


def test_default_config_is_valid():
    """Defaults match the documented hyperparameters and validate."""
    config = CubeConfig()
    assert config.perplexity == 30.0
    assert config.tsne_iterations == 1000
    assert config.early_exaggeration == 12.0
    assert config.initial_momentum == 0.5
    assert config.final_momentum == 0.8
    assert config.regressor_hidden == (64, 64)
    assert config.validate() is True


def test_load_config_yaml(tmp_path):
    """Test loading YAML configuration."""
    path = tmp_path / "cube.yaml"
    path.write_text("cube:\n  perplexity: 12\n")
    config = load_config(path)
    assert config["cube"]["perplexity"] == 12


def test_load_config_json(tmp_path):
    """Test loading JSON configuration."""
    path = tmp_path / "cube.json"
    path.write_text(json.dumps({"cube": {"seed": 4}}))
    assert load_config(path) == {"cube": {"seed": 4}}


def test_load_config_empty_file(tmp_path):
    """An empty YAML document loads as an empty mapping."""
    path = tmp_path / "empty.yaml"
    path.write_text("")
    assert load_config(path) == {}


def test_load_config_not_found():
    """Test loading non-existent config file."""
    with pytest.raises(FileNotFoundError):
        load_config("nonexistent.yaml")


def test_load_config_invalid_format(tmp_path):
    """Test loading invalid file format."""
    path = tmp_path / "cube.txt"
    path.write_text("perplexity = 5")
    with pytest.raises(ValueError, match="Unsupported config file format"):
        load_config(path)


def test_save_config_unknown_suffix_writes_yaml(tmp_path):
    """Unknown suffixes are replaced by .yaml."""
    save_config({"cube": {"seed": 2}}, tmp_path / "cube.cfg")
    written = tmp_path / "cube.yaml"
    assert written.exists()
    assert yaml.safe_load(written.read_text()) == {"cube": {"seed": 2}}


class TestCubeConfig:
    """Tests for CubeConfig."""

    @pytest.mark.parametrize("suffix", [".yaml", ".json"])
    def test_save_and_load(self, tmp_path, suffix):
        """A saved configuration loads back unchanged."""
        config = CubeConfig(perplexity=8.0, regressor_hidden=(32, 16, 8), seed=11)
        path = tmp_path / f"cube{suffix}"
        config.save(path)

        loaded = CubeConfig.from_file(path)
        assert loaded == config
        assert loaded.regressor_hidden == (32, 16, 8)

    def test_from_file_requires_cube_section(self, tmp_path):
        """Files without a cube section are rejected."""
        path = tmp_path / "other.yaml"
        path.write_text("plasma:\n  Te: 10000\n")
        with pytest.raises(ValueError, match="'cube' section"):
            CubeConfig.from_file(path)

    def test_from_file_validates(self, tmp_path):
        """Loaded values are validated."""
        path = tmp_path / "bad.yaml"
        path.write_text("cube:\n  perplexity: -1\n")
        with pytest.raises(ValueError, match="perplexity must be positive"):
            CubeConfig.from_file(path)

    def test_from_dict_ignores_unknown_keys(self, caplog):
        """Unknown keys are dropped with a warning."""
        with caplog.at_level(logging.WARNING, logger="cubemodel.core.config"):
            config = CubeConfig.from_dict({"perplexity": 7, "colour": "blue"})
        assert config.perplexity == 7
        assert "colour" in caplog.text

    def test_to_dict_lists_hidden_widths(self):
        """Hidden widths serialise as a list."""
        values = CubeConfig(regressor_hidden=(8, 4)).to_dict()
        assert values["regressor_hidden"] == [8, 4]
        assert values["seed"] == 0

    @pytest.mark.parametrize(
        "overrides, message",
        [
            ({"perplexity": 0.0}, "perplexity must be positive"),
            ({"tsne_iterations": 0}, "tsne_iterations must be >= 1"),
            ({"tsne_learning_rate": 0.0}, "tsne_learning_rate must be positive"),
            ({"early_exaggeration": 0.5}, "early_exaggeration must be >= 1"),
            ({"exaggeration_fraction": 1.0}, r"exaggeration_fraction must be in \[0, 1\)"),
            ({"initial_momentum": -0.1}, r"initial_momentum must be in \[0, 1\)"),
            ({"final_momentum": 1.0}, r"final_momentum must be in \[0, 1\)"),
            ({"ica_max_iterations": 0}, "ica_max_iterations must be >= 1"),
            ({"ica_tolerance": 0.0}, "ica_tolerance must be positive"),
            ({"regressor_hidden": ()}, "regressor_hidden must list"),
            ({"regressor_hidden": (16, 0)}, "regressor_hidden must list"),
            ({"regressor_epochs": 0}, "regressor_epochs must be >= 1"),
            ({"regressor_batch_size": 0}, "regressor_batch_size must be >= 1"),
            ({"regressor_learning_rate": -1e-3}, "regressor_learning_rate must be positive"),
        ],
    )
    def test_validate_rejects(self, overrides, message):
        """Out-of-range values raise ValueError."""
        with pytest.raises(ValueError, match=message):
            CubeConfig(**overrides).validate()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
