"""
Error kinds raised by the cube model.

Every exception derives from :class:`CubeError` and carries an
:class:`ErrorKind` so that the handle API can map failures to sentinels
while remembering what went wrong.
"""

from enum import Enum


class ErrorKind(Enum):
    """Failure categories reported by cube operations."""

    NONE = "none"
    INVALID_HANDLE = "invalid_handle"
    DIMENSION_MISMATCH = "dimension_mismatch"
    INVALID_PARAMETER = "invalid_parameter"
    CONFLICT = "conflict"
    NOT_READY = "not_ready"
    SERIALIZATION = "serialization"
    RESOURCE_EXHAUSTION = "resource_exhaustion"
    NUMERICAL = "numerical"
    CANCELLED = "cancelled"
    INTERNAL = "internal"


class CubeError(Exception):
    """Base class for all cube model errors."""

    kind = ErrorKind.INTERNAL


class InvalidHandleError(CubeError, KeyError):
    """Unknown cube id."""

    kind = ErrorKind.INVALID_HANDLE

    def __str__(self) -> str:
        # KeyError quotes its argument; keep messages readable
        return str(self.args[0]) if self.args else "invalid handle"


class DimensionMismatchError(CubeError, ValueError):
    """Input or latent dimension inconsistent with prior usage."""

    kind = ErrorKind.DIMENSION_MISMATCH


class InvalidParameterError(CubeError, ValueError):
    """Bad argument: latent dimension, empty samples, unsupported method."""

    kind = ErrorKind.INVALID_PARAMETER


class ConflictError(CubeError):
    """A training job is already running for the instance."""

    kind = ErrorKind.CONFLICT


class NotReadyError(CubeError):
    """No installed model to restore from or export."""

    kind = ErrorKind.NOT_READY


class SerializationError(CubeError, ValueError):
    """Corrupt or version-incompatible model payload."""

    kind = ErrorKind.SERIALIZATION


class ResourceExhaustionError(CubeError, MemoryError):
    """Allocation failure while preparing or running a job."""

    kind = ErrorKind.RESOURCE_EXHAUSTION


class NumericalError(CubeError, ArithmeticError):
    """Singular covariance, non-finite gradients and similar failures."""

    kind = ErrorKind.NUMERICAL


class CancelledError(CubeError):
    """Raised inside a job when a stop request is observed."""

    kind = ErrorKind.CANCELLED


def error_kind(exc: BaseException) -> ErrorKind:
    """
    Classify an arbitrary exception.

    Parameters
    ----------
    exc : BaseException
        Exception to classify

    Returns
    -------
    ErrorKind
        The carried kind for cube errors, RESOURCE_EXHAUSTION for plain
        MemoryError, SERIALIZATION for file system errors and INTERNAL
        otherwise.
    """
    if isinstance(exc, CubeError):
        return exc.kind
    if isinstance(exc, MemoryError):
        return ErrorKind.RESOURCE_EXHAUSTION
    if isinstance(exc, OSError):
        return ErrorKind.SERIALIZATION
    return ErrorKind.INTERNAL
