"""Sliding window of the most recent pose observations."""

import threading
from collections import deque
from typing import Iterator, Tuple

from .config import PREDICTION_WINDOW_SIZE
from .pose import PoseObservation


class PoseWindow:
    """
    Fixed-capacity FIFO buffer of pose observations, oldest first.

    Appending to a full window evicts the oldest observation. All access goes
    through a lock so frames delivered from different threads cannot
    interleave a mutation with a snapshot.
    """

    def __init__(self, capacity: int = PREDICTION_WINDOW_SIZE):
        if capacity <= 0:
            raise ValueError(f"Window capacity must be positive, got {capacity}")

        self._capacity = capacity
        self._observations: deque = deque(maxlen=capacity)
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._capacity

    def append(self, observation: PoseObservation) -> None:
        """Add an observation at the tail, dropping the head when full."""
        with self._lock:
            self._observations.append(observation)

    def snapshot(self) -> Tuple[PoseObservation, ...]:
        """Return the current contents in arrival order."""
        with self._lock:
            return tuple(self._observations)

    def is_full(self) -> bool:
        with self._lock:
            return len(self._observations) == self._capacity

    def clear(self) -> None:
        with self._lock:
            self._observations.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._observations)

    def __iter__(self) -> Iterator[PoseObservation]:
        return iter(self.snapshot())
