"""
Cube instances, the id registry and the handle API.
"""

from cubemodel.cube.instance import CubeInstance, CubeState
from cubemodel.cube.registry import CubeRegistry, get_registry, reset_registry

__all__ = [
    "CubeInstance",
    "CubeState",
    "CubeRegistry",
    "get_registry",
    "reset_registry",
]
