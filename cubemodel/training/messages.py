"""
Thread-safe message queue between a training worker and its pollers.
"""

from collections import deque
from typing import Deque, List, Optional
import threading

from cubemodel.core.logging_config import get_logger

logger = get_logger("training.messages")


class MessageQueue:
    """
    FIFO of progress messages.

    The worker appends, any thread drains. Draining is destructive: each
    message is handed to exactly one :meth:`drain` call.

    Parameters
    ----------
    max_messages : int, optional
        Drop the oldest messages beyond this many undrained entries
    """

    def __init__(self, max_messages: Optional[int] = 10000):
        self._messages: Deque[str] = deque()
        self._lock = threading.Lock()
        self.max_messages = max_messages
        self.dropped = 0

    def put(self, message: str) -> None:
        """Append a message."""
        with self._lock:
            self._messages.append(str(message))
            if self.max_messages is not None and len(self._messages) > self.max_messages:
                self._messages.popleft()
                self.dropped += 1

    def drain(self) -> List[str]:
        """Remove and return all pending messages in arrival order."""
        with self._lock:
            messages = list(self._messages)
            self._messages.clear()
        return messages

    def clear(self) -> None:
        with self._lock:
            self._messages.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._messages)
