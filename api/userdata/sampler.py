import threading
from collections import deque
from typing import Deque


class ResponseTimeSampler:
    """Rolling window of the most recent response times (ms)."""

    def __init__(self, max_samples: int = 1000):
        if max_samples < 1:
            raise ValueError("max_samples must be >= 1")
        self.max_samples = int(max_samples)
        self._samples: Deque[float] = deque(maxlen=self.max_samples)
        self._lock = threading.Lock()

    def record(self, latency_ms: float) -> None:
        with self._lock:
            self._samples.append(float(latency_ms))

    def average(self) -> float:
        with self._lock:
            if not self._samples:
                return 0.0
            return sum(self._samples) / len(self._samples)

    def reset(self) -> None:
        with self._lock:
            self._samples.clear()

    @property
    def count(self) -> int:
        with self._lock:
            return len(self._samples)
