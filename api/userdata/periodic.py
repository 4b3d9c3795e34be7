import logging
import threading
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class PeriodicJob:
    """
    Calls `fn` every `interval` seconds on a daemon thread until stopped.
    The owner starts it once and must call stop() exactly when it is disposed;
    stop() wakes the sleeping thread instead of waiting out the interval.
    """

    def __init__(self, interval: float, fn: Callable[[], object], name: str = "periodic-job"):
        if interval <= 0:
            raise ValueError("interval must be > 0")
        self.interval = float(interval)
        self._fn = fn
        self._name = name
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return bool(self._thread and self._thread.is_alive())

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name=self._name, daemon=True)
        self._thread.start()
        logger.debug("%s started (interval=%ss)", self._name, self.interval)

    def stop(self, timeout: float = 3.0) -> None:
        self._stop.set()
        thread, self._thread = self._thread, None
        if thread is None:
            return
        if thread is not threading.current_thread():
            thread.join(timeout=timeout)
        logger.debug("%s stopped", self._name)

    def _run(self) -> None:
        # Event.wait returns True once stop() is called
        while not self._stop.wait(self.interval):
            try:
                self._fn()
            except Exception:
                logger.exception("%s iteration failed", self._name)
