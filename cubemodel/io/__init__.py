"""
Input/output utilities.

This module provides:
- Model parameter export/import and file persistence
- CSV preset tables
"""

from cubemodel.io.model_store import (
    ModelStore,
    export_parameters,
    import_parameters,
    save_parameters,
    load_parameters,
)
from cubemodel.io.presets import load_presets, save_presets

__all__ = [
    "ModelStore",
    "export_parameters",
    "import_parameters",
    "save_parameters",
    "load_parameters",
    "load_presets",
    "save_presets",
]
