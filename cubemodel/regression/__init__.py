"""
Inverse regression from latent space back to presets.
"""

from cubemodel.regression.network import InverseRegressor, AdamOptimizer, FitHistory

__all__ = [
    "InverseRegressor",
    "AdamOptimizer",
    "FitHistory",
]
