import math
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Deque, Dict, Literal, Optional

from .periodic import PeriodicJob

LimitKind = Literal["burst", "sustained"]


@dataclass(frozen=True)
class RateLimitConfig:
    max_requests: int = 10
    window_seconds: float = 60.0
    burst_requests: int = 5
    burst_window_seconds: float = 10.0

    def __post_init__(self):
        if self.max_requests < 1 or self.burst_requests < 1:
            raise ValueError("request quotas must be >= 1")
        if self.window_seconds <= 0 or self.burst_window_seconds <= 0:
            raise ValueError("windows must be > 0")


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    retry_after_seconds: int = 0
    limit: Optional[LimitKind] = None
    max_requests: Optional[int] = None
    window_seconds: Optional[float] = None

    def __bool__(self) -> bool:
        return self.allowed


ALLOW = RateLimitDecision(allowed=True)


@dataclass
class ClientWindow:
    burst: Deque[float] = field(default_factory=deque)
    sustained: Deque[float] = field(default_factory=deque)

    def prune(self, now: float, cfg: RateLimitConfig) -> None:
        while self.burst and now - self.burst[0] >= cfg.burst_window_seconds:
            self.burst.popleft()
        while self.sustained and now - self.sustained[0] >= cfg.window_seconds:
            self.sustained.popleft()

    def is_idle(self) -> bool:
        return not self.burst and not self.sustained


class DualWindowRateLimiter:
    """
    In-memory, per-process, per-client sliding window rate limiter with two
    windows: a short burst window and a longer sustained one. Burst is checked
    first, so a client over both quotas is reported as burst-limited.

    Idle clients (both windows empty) are dropped by a periodic cleanup so
    memory tracks the active clients only. Call close() on shutdown.
    """

    def __init__(
        self,
        cfg: RateLimitConfig,
        *,
        cleanup_interval_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
        start_background: bool = True,
    ):
        self.cfg = cfg
        self._clock = clock
        self._lock = threading.Lock()
        self._clients: Dict[str, ClientWindow] = {}

        interval = cleanup_interval_seconds if cleanup_interval_seconds is not None else cfg.window_seconds
        self._cleaner = PeriodicJob(interval, self.cleanup, name="rate-limit-cleanup")
        if start_background:
            self._cleaner.start()

    def admit(self, client_id: str) -> RateLimitDecision:
        now = self._clock()
        cfg = self.cfg
        with self._lock:
            window = self._clients.get(client_id)
            if window is None:
                window = ClientWindow()
                self._clients[client_id] = window

            window.prune(now, cfg)

            if len(window.burst) >= cfg.burst_requests:
                return self._deny("burst", window.burst[0], cfg.burst_requests, cfg.burst_window_seconds, now)
            if len(window.sustained) >= cfg.max_requests:
                return self._deny("sustained", window.sustained[0], cfg.max_requests, cfg.window_seconds, now)

            window.burst.append(now)
            window.sustained.append(now)
            return ALLOW

    def allow(self, client_id: str) -> bool:
        return self.admit(client_id).allowed

    @staticmethod
    def _deny(kind: LimitKind, oldest: float, quota: int, window_seconds: float, now: float) -> RateLimitDecision:
        return RateLimitDecision(
            allowed=False,
            retry_after_seconds=math.ceil(oldest + window_seconds - now),
            limit=kind,
            max_requests=quota,
            window_seconds=window_seconds,
        )

    def cleanup(self) -> int:
        """Prune every client and forget the idle ones; returns how many were dropped."""
        now = self._clock()
        with self._lock:
            idle = []
            for client_id, window in self._clients.items():
                window.prune(now, self.cfg)
                if window.is_idle():
                    idle.append(client_id)
            for client_id in idle:
                del self._clients[client_id]
        return len(idle)

    @property
    def client_count(self) -> int:
        with self._lock:
            return len(self._clients)

    def close(self) -> None:
        self._cleaner.stop()
