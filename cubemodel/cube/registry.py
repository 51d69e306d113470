"""
Registry mapping integer cube ids to instances.
"""

from typing import Dict, List, Optional, Set
import threading

from cubemodel.core.config import CubeConfig
from cubemodel.core.errors import ErrorKind, InvalidHandleError
from cubemodel.core.logging_config import get_logger
from cubemodel.cube.instance import CubeInstance

logger = get_logger("cube.registry")


class CubeRegistry:
    """
    Thread-safe table of live cube instances.

    Ids are the smallest non-negative integers not currently in use, so an
    id may be handed out again once its instance has been deleted and its
    worker joined.

    Parameters
    ----------
    config : CubeConfig, optional
        Default configuration for new instances
    """

    def __init__(self, config: Optional[CubeConfig] = None):
        self.config = config or CubeConfig()
        self._instances: Dict[int, CubeInstance] = {}
        self._errors: Dict[int, ErrorKind] = {}
        # ids being deleted; they keep their slot until the worker has joined
        self._closing: Set[int] = set()
        self._lock = threading.Lock()

    def create(self, config: Optional[CubeConfig] = None) -> int:
        """
        Create an empty instance.

        Returns
        -------
        int
            New cube id
        """
        with self._lock:
            cube_id = 0
            while cube_id in self._instances:
                cube_id += 1
            self._instances[cube_id] = CubeInstance(cube_id, config or self.config)
            self._errors[cube_id] = ErrorKind.NONE
        logger.debug(f"Created cube {cube_id}")
        return cube_id

    def _live(self, cube_id: int) -> Optional[CubeInstance]:
        # caller holds the lock
        if cube_id in self._closing:
            return None
        return self._instances.get(cube_id)

    def get(self, cube_id: int) -> CubeInstance:
        """
        Look up an instance.

        Raises
        ------
        InvalidHandleError
            If no live instance has this id
        """
        with self._lock:
            instance = self._live(cube_id)
        if instance is None:
            raise InvalidHandleError(f"Unknown cube id: {cube_id}")
        return instance

    def delete(self, cube_id: int) -> None:
        """
        Remove an instance, stopping and joining its worker first.

        The id stays reserved until the worker has finished, so ``create``
        cannot hand it out while the old instance is still running.

        Raises
        ------
        InvalidHandleError
            If no live instance has this id
        """
        with self._lock:
            instance = self._live(cube_id)
            if instance is not None:
                self._closing.add(cube_id)
        if instance is None:
            raise InvalidHandleError(f"Unknown cube id: {cube_id}")

        try:
            instance.close()
        finally:
            with self._lock:
                self._instances.pop(cube_id, None)
                self._errors.pop(cube_id, None)
                self._closing.discard(cube_id)
        logger.debug(f"Deleted cube {cube_id}")

    def record_error(self, cube_id: int, kind: ErrorKind) -> None:
        with self._lock:
            if self._live(cube_id) is not None:
                self._errors[cube_id] = kind

    def last_error(self, cube_id: int) -> ErrorKind:
        """Error kind of the latest failed handle call on ``cube_id``."""
        with self._lock:
            if self._live(cube_id) is None:
                return ErrorKind.INVALID_HANDLE
            return self._errors.get(cube_id, ErrorKind.NONE)

    def ids(self) -> List[int]:
        with self._lock:
            return sorted(i for i in self._instances if i not in self._closing)

    def clear(self) -> None:
        """Delete every instance."""
        for cube_id in self.ids():
            try:
                self.delete(cube_id)
            except InvalidHandleError:
                # deleted concurrently
                pass

    def __contains__(self, cube_id: int) -> bool:
        with self._lock:
            return self._live(cube_id) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._instances) - len(self._closing)


# Global registry used by the handle API
_registry: Optional[CubeRegistry] = None
_registry_lock = threading.Lock()


def get_registry() -> CubeRegistry:
    """Get or create the process-wide registry."""
    global _registry
    with _registry_lock:
        if _registry is None:
            _registry = CubeRegistry()
        return _registry


def reset_registry(config: Optional[CubeConfig] = None) -> CubeRegistry:
    """Delete all cubes and start a fresh process-wide registry."""
    global _registry
    with _registry_lock:
        old, _registry = _registry, CubeRegistry(config)
    if old is not None:
        old.clear()
    return _registry
