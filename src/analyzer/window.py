"""
Bounded sliding window of recent samples shared by the ingest and detection loops.
"""

import threading
from collections import deque

import structlog

from .models import MetricSample

logger = structlog.get_logger(__name__)


class SlidingWindow:
    """Thread-safe FIFO buffer holding at most ``capacity`` samples.

    Every operation takes the same lock, and only for the duration of the
    deque manipulation itself. Parsing and detection happen outside of it.
    """

    def __init__(self, capacity: int):
        if capacity < 1:
            raise ValueError(f"Window capacity must be >= 1, got {capacity}")
        self._capacity = capacity
        self._samples: deque[MetricSample] = deque()
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._capacity

    def push(self, sample: MetricSample) -> int:
        """Append a sample and evict the oldest ones past capacity

        Returns:
            The window size after the insert
        """
        with self._lock:
            self._samples.append(sample)
            while len(self._samples) > self._capacity:
                self._samples.popleft()
            return len(self._samples)

    def snapshot(self) -> list[MetricSample]:
        """Copy of the current contents, oldest first"""
        with self._lock:
            return list(self._samples)

    def shrink_to_half(self) -> int:
        """Drop the oldest samples until at most capacity // 2 remain

        The newer half stays so that it is scanned once more on the next cycle.

        Returns:
            Number of evicted samples
        """
        target = self._capacity // 2
        with self._lock:
            evicted = 0
            while len(self._samples) > target:
                self._samples.popleft()
                evicted += 1

        if evicted:
            logger.debug("Window trimmed", evicted=evicted, remaining=target)
        return evicted

    def __len__(self) -> int:
        with self._lock:
            return len(self._samples)
