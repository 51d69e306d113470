"""
Core utilities.

This module provides:
- Constants and method tags
- Configuration and logging
- Error kinds
- Progress reporting protocol
"""

from cubemodel.core import constants
from cubemodel.core import config
from cubemodel.core import logging_config
from cubemodel.core.abc import ProgressReporter
from cubemodel.core.config import CubeConfig
from cubemodel.core.constants import ReductionMethod
from cubemodel.core.errors import (
    ErrorKind,
    CubeError,
    InvalidHandleError,
    DimensionMismatchError,
    InvalidParameterError,
    ConflictError,
    NotReadyError,
    SerializationError,
    ResourceExhaustionError,
    NumericalError,
    CancelledError,
)

__all__ = [
    # Modules
    "constants",
    "config",
    "logging_config",
    # Protocols
    "ProgressReporter",
    # Configuration
    "CubeConfig",
    "ReductionMethod",
    # Errors
    "ErrorKind",
    "CubeError",
    "InvalidHandleError",
    "DimensionMismatchError",
    "InvalidParameterError",
    "ConflictError",
    "NotReadyError",
    "SerializationError",
    "ResourceExhaustionError",
    "NumericalError",
    "CancelledError",
]
