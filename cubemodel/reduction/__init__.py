"""
Forward dimensionality reduction.

- Perplexity-calibrated affinities and t-SNE (nonlinear path)
- Whitening and FastICA (linear path)
- Strategy registry selecting one of them per training job
"""

from cubemodel.reduction.affinity import AffinityModel, AffinityResult
from cubemodel.reduction.tsne import TSNEEmbedder, EmbeddingResult
from cubemodel.reduction.ica import FastICAProjector, ProjectionResult
from cubemodel.reduction.factory import ReducerFactory, ReductionOutcome, standardize_embedding

__all__ = [
    "AffinityModel",
    "AffinityResult",
    "TSNEEmbedder",
    "EmbeddingResult",
    "FastICAProjector",
    "ProjectionResult",
    "ReducerFactory",
    "ReductionOutcome",
    "standardize_embedding",
]
