from collections import deque
from typing import List, Optional

from models.sample import Sample

DEFAULT_CAPACITY = 50


class SampleWindow:
    """
    Bounded, time-ordered history of charging samples.

    Insertion order is time order. Once full, pushing a new sample evicts
    the oldest one.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._samples = deque(maxlen=capacity)

    def push(self, sample: Sample) -> None:
        self._samples.append(sample)

    def clear(self) -> None:
        self._samples.clear()

    def size(self) -> int:
        return len(self._samples)

    def __len__(self) -> int:
        return len(self._samples)

    def samples(self) -> List[Sample]:
        return list(self._samples)

    def latest(self) -> Optional[Sample]:
        return self._samples[-1] if self._samples else None

    def estimate_rate_per_minute(self, recent_count: int = 10, min_samples: int = 2) -> Optional[float]:
        """
        Two-point slope, in level units per minute, over the trailing sub-window.

        Only the first and last of the most recent ``recent_count`` samples
        are used. Returns None when the sub-window holds fewer than
        ``min_samples`` samples or spans no time.
        """
        count = min(recent_count, len(self._samples))
        if count < max(min_samples, 2):
            return None

        first = self._samples[-count]
        last = self._samples[-1]
        elapsed_min = (last.at_time - first.at_time) / 60.0
        if elapsed_min <= 0:
            return None
        return (last.level - first.level) / elapsed_min
