"""
Validation utilities.

Round-trip testing: generate clustered presets, train a cube, and verify
that exported parameters reproduce the trained cube's restores.
"""

from cubemodel.validation.round_trip import (
    ClusteredPresets,
    RoundTripResult,
    RoundTripValidator,
    generate_cluster_presets,
)

__all__ = [
    "ClusteredPresets",
    "RoundTripResult",
    "RoundTripValidator",
    "generate_cluster_presets",
]
