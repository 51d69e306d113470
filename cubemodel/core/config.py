"""
Configuration management for the cube model.

Provides utilities for loading and validating YAML/JSON configuration files
holding the reduction and inverse-regression hyperparameters.
"""

import json
from dataclasses import dataclass, asdict, field, fields
from pathlib import Path
from typing import Dict, Any, Tuple, Union

import yaml

from cubemodel.core.logging_config import get_logger

logger = get_logger("core.config")


def load_config(config_path: Union[str, Path]) -> Dict[str, Any]:
    """
    Load configuration from YAML or JSON file.

    Parameters
    ----------
    config_path : str or Path
        Path to configuration file (.yaml, .yml, or .json)

    Returns
    -------
    dict
        Configuration dictionary

    Raises
    ------
    FileNotFoundError
        If config file does not exist
    ValueError
        If file format is not supported
    """
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    suffix = config_path.suffix.lower()

    with open(config_path, "r") as f:
        if suffix in [".yaml", ".yml"]:
            config = yaml.safe_load(f)
        elif suffix == ".json":
            config = json.load(f)
        else:
            raise ValueError(
                f"Unsupported config file format: {suffix}. " "Use .yaml, .yml, or .json"
            )

    logger.info(f"Loaded configuration from {config_path}")
    return config or {}


def save_config(config: Dict[str, Any], config_path: Union[str, Path]) -> None:
    """
    Save configuration to YAML or JSON file.

    Parameters
    ----------
    config : dict
        Configuration dictionary
    config_path : str or Path
        Path to output file; unknown suffixes are written as YAML
    """
    config_path = Path(config_path)
    suffix = config_path.suffix.lower()

    if suffix == ".json":
        with open(config_path, "w") as f:
            json.dump(config, f, indent=2)
    else:
        if suffix not in [".yaml", ".yml"]:
            config_path = config_path.with_suffix(".yaml")
        with open(config_path, "w") as f:
            yaml.safe_dump(config, f, default_flow_style=False, sort_keys=False)

    logger.info(f"Saved configuration to {config_path}")


@dataclass
class CubeConfig:
    """
    Hyperparameters for one cube model.

    Attributes
    ----------
    perplexity : float
        Target effective neighbourhood size of the t-SNE affinities
    tsne_iterations : int
        Gradient steps of the t-SNE optimisation
    tsne_learning_rate : float
        Step size of the t-SNE optimisation
    early_exaggeration : float
        Affinity scale applied during the exaggeration phase
    exaggeration_fraction : float
        Fraction of t-SNE iterations run with exaggerated affinities
    initial_momentum : float
        Momentum during the first 250 t-SNE iterations
    final_momentum : float
        Momentum for the remaining t-SNE iterations
    ica_max_iterations : int
        Fixed-point iteration cap per independent component
    ica_tolerance : float
        Convergence tolerance of the FastICA fixed-point update
    regressor_hidden : Tuple[int, ...]
        Hidden layer widths of the inverse network
    regressor_epochs : int
        Passes over the (latent, preset) training pairs
    regressor_batch_size : int
        Mini-batch size for inverse training
    regressor_learning_rate : float
        Adam step size for inverse training
    seed : int
        Seed for every random initialisation in a training job
    """

    perplexity: float = 30.0
    tsne_iterations: int = 1000
    tsne_learning_rate: float = 200.0
    early_exaggeration: float = 12.0
    exaggeration_fraction: float = 0.25
    initial_momentum: float = 0.5
    final_momentum: float = 0.8
    ica_max_iterations: int = 1000
    ica_tolerance: float = 1e-6
    regressor_hidden: Tuple[int, ...] = field(default_factory=lambda: (64, 64))
    regressor_epochs: int = 300
    regressor_batch_size: int = 64
    regressor_learning_rate: float = 1e-3
    seed: int = 0

    @classmethod
    def from_dict(cls, values: Dict[str, Any]) -> "CubeConfig":
        """Build a config from a mapping, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = set(values) - known
        if unknown:
            logger.warning(f"Ignoring unknown cube config keys: {sorted(unknown)}")
        kwargs = {k: v for k, v in values.items() if k in known}
        if "regressor_hidden" in kwargs:
            kwargs["regressor_hidden"] = tuple(int(h) for h in kwargs["regressor_hidden"])
        return cls(**kwargs)

    @classmethod
    def from_file(cls, config_path: Union[str, Path]) -> "CubeConfig":
        """
        Load cube configuration from a YAML or JSON file.

        Parameters
        ----------
        config_path : str or Path
            Path to configuration file with a top-level ``cube`` section

        Returns
        -------
        CubeConfig
            Validated configuration instance
        """
        config = load_config(config_path)

        if "cube" not in config:
            raise ValueError("Configuration must contain 'cube' section")

        cube_config = cls.from_dict(config["cube"] or {})
        cube_config.validate()
        return cube_config

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a plain dictionary suitable for YAML/JSON."""
        values = asdict(self)
        values["regressor_hidden"] = list(self.regressor_hidden)
        return values

    def save(self, config_path: Union[str, Path]) -> None:
        """Write this configuration under a ``cube`` section."""
        save_config({"cube": self.to_dict()}, config_path)

    def validate(self) -> bool:
        """
        Validate configuration.

        Returns
        -------
        bool
            True if valid

        Raises
        ------
        ValueError
            If configuration is invalid
        """
        if self.perplexity <= 0:
            raise ValueError("perplexity must be positive")

        if self.tsne_iterations < 1:
            raise ValueError("tsne_iterations must be >= 1")

        if self.tsne_learning_rate <= 0:
            raise ValueError("tsne_learning_rate must be positive")

        if self.early_exaggeration < 1.0:
            raise ValueError("early_exaggeration must be >= 1")

        if not 0.0 <= self.exaggeration_fraction < 1.0:
            raise ValueError("exaggeration_fraction must be in [0, 1)")

        for name in ("initial_momentum", "final_momentum"):
            value = getattr(self, name)
            if not 0.0 <= value < 1.0:
                raise ValueError(f"{name} must be in [0, 1)")

        if self.ica_max_iterations < 1:
            raise ValueError("ica_max_iterations must be >= 1")

        if self.ica_tolerance <= 0:
            raise ValueError("ica_tolerance must be positive")

        if len(self.regressor_hidden) == 0 or any(h < 1 for h in self.regressor_hidden):
            raise ValueError("regressor_hidden must list at least one positive width")

        if self.regressor_epochs < 1:
            raise ValueError("regressor_epochs must be >= 1")

        if self.regressor_batch_size < 1:
            raise ValueError("regressor_batch_size must be >= 1")

        if self.regressor_learning_rate <= 0:
            raise ValueError("regressor_learning_rate must be positive")

        return True
