"""
cubemodel: reversible dimensionality reduction of presets.

Learns a mapping from high-dimensional sample vectors ("presets") down to a
2- or 3-dimensional latent space (t-SNE or FastICA) together with an inverse
network that restores a plausible preset from any latent coordinate.
"""

__version__ = "0.1.0"

from cubemodel.core.config import CubeConfig
from cubemodel.core.constants import ReductionMethod
from cubemodel.cube.instance import CubeInstance, CubeState
from cubemodel.cube.registry import CubeRegistry, get_registry

__all__ = [
    "__version__",
    "CubeConfig",
    "ReductionMethod",
    "CubeInstance",
    "CubeState",
    "CubeRegistry",
    "get_registry",
]
