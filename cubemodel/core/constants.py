"""
Constants shared across the cube model.
"""

from enum import IntEnum


class ReductionMethod(IntEnum):
    """
    Forward dimensionality reduction method.

    The integer values are the method tags stored in exported model
    parameters and accepted by the handle API.
    """

    LINEAR = 0  # whitening + FastICA
    NONLINEAR = 1  # t-SNE

    @classmethod
    def parse(cls, value) -> "ReductionMethod":
        """
        Parse a method from an enum member, tag or name.

        Accepts ``ReductionMethod`` members, integer tags and the names
        ``"linear"``, ``"ica"``, ``"nonlinear"`` and ``"tsne"``.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            key = value.strip().lower()
            if key in METHOD_ALIASES:
                return METHOD_ALIASES[key]
            raise ValueError(f"Unknown reduction method: {value}")
        return cls(int(value))


METHOD_ALIASES = {
    "linear": ReductionMethod.LINEAR,
    "ica": ReductionMethod.LINEAR,
    "nonlinear": ReductionMethod.NONLINEAR,
    "tsne": ReductionMethod.NONLINEAR,
    "t-sne": ReductionMethod.NONLINEAR,
}

# Handle API method tags
CUBE_METHOD_ICA = int(ReductionMethod.LINEAR)
CUBE_METHOD_TSNE = int(ReductionMethod.NONLINEAR)

# Latent space dimensions accepted by training
SUPPORTED_LATENT_DIMS = (2, 3)

# Exported parameter layout
MODEL_MAGIC = float(0x43554245)  # "CUBE"
MODEL_FORMAT_VERSION = 1
SUPPORTED_MODEL_VERSIONS = (1,)

# HDF5 model files: attribute values and dataset name
FILE_MAGIC = "CUBEMDL"
FILE_DATASET = "parameters"
FILE_FORMAT_VERSION = 1

# Numerical floors
MIN_PROBABILITY = 1e-12
MIN_FEATURE_SCALE = 1e-8

# Sentinels returned by the handle API
FAILURE = -1
