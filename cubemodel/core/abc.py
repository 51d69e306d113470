"""
Protocols for structural typing.

Long-running algorithms accept any object implementing
:class:`ProgressReporter`, so they can run inside a training job (which
publishes messages and honours stop requests) or standalone.
"""

from typing import Optional, Protocol, runtime_checkable


@runtime_checkable
class ProgressReporter(Protocol):
    """
    Protocol for progress sinks with cooperative cancellation.

    Any class with these methods can be passed to the reduction and
    regression algorithms without explicit inheritance.
    """

    def report(self, message: str) -> None:
        """Publish a progress or warning message."""
        ...

    def check_cancelled(self) -> None:
        """Raise CancelledError if a stop was requested."""
        ...


def report(progress: Optional[ProgressReporter], message: str) -> None:
    """Publish ``message`` if a reporter is attached."""
    if progress is not None:
        progress.report(message)


def check_cancelled(progress: Optional[ProgressReporter]) -> None:
    """Honour a pending stop request if a reporter is attached."""
    if progress is not None:
        progress.check_cancelled()
