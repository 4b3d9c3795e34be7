import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, Hashable, List, Optional, TypeVar

from .periodic import PeriodicJob

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

_NIL = -1


@dataclass(frozen=True)
class CacheStats:
    hits: int
    misses: int
    size: int
    evictions: int

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0


@dataclass
class _Slot(Generic[K, V]):
    key: K
    value: V
    written_at: float
    prev: int = _NIL
    next: int = _NIL


class ExpiringLRUCache(Generic[K, V]):
    """
    Thread-safe LRU cache whose entries expire `ttl_seconds` after their last write.

    Entries live in an arena of slots addressed by integer handle. The recency
    list is threaded through the slots with prev/next handles (head = most
    recently used, tail = least recently used) and `_index` maps key -> handle,
    so get, set, promotion and eviction are all O(1). Freed handles are reused.

    Expired entries are treated as absent on access and are also removed by a
    background sweep every `sweep_interval_seconds` (default ttl / 6). Call
    destroy() when the owner shuts down to stop the sweep.
    """

    def __init__(
        self,
        capacity: int = 100,
        ttl_seconds: float = 60.0,
        *,
        sweep_interval_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
        start_background: bool = True,
    ):
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be > 0")
        self.capacity = int(capacity)
        self.ttl = float(ttl_seconds)
        self._clock = clock
        self._lock = threading.Lock()

        self._slots: List[Optional[_Slot[K, V]]] = []
        self._free: List[int] = []
        self._index: Dict[K, int] = {}
        self._head = _NIL
        self._tail = _NIL

        self._hits = 0
        self._misses = 0
        self._evictions = 0

        interval = sweep_interval_seconds if sweep_interval_seconds is not None else self.ttl / 6
        self._sweeper = PeriodicJob(interval, self.sweep, name="lru-cache-sweep")
        self._destroyed = False
        if start_background:
            self._sweeper.start()

    # -- recency list -------------------------------------------------------

    def _unlink(self, handle: int) -> None:
        slot = self._slots[handle]
        if slot.prev != _NIL:
            self._slots[slot.prev].next = slot.next
        else:
            self._head = slot.next
        if slot.next != _NIL:
            self._slots[slot.next].prev = slot.prev
        else:
            self._tail = slot.prev
        slot.prev = slot.next = _NIL

    def _push_front(self, handle: int) -> None:
        slot = self._slots[handle]
        slot.prev = _NIL
        slot.next = self._head
        if self._head != _NIL:
            self._slots[self._head].prev = handle
        self._head = handle
        if self._tail == _NIL:
            self._tail = handle

    def _promote(self, handle: int) -> None:
        if handle == self._head:
            return
        self._unlink(handle)
        self._push_front(handle)

    def _allocate(self, key: K, value: V, now: float) -> int:
        slot = _Slot(key=key, value=value, written_at=now)
        if self._free:
            handle = self._free.pop()
            self._slots[handle] = slot
        else:
            handle = len(self._slots)
            self._slots.append(slot)
        return handle

    def _remove(self, handle: int) -> None:
        slot = self._slots[handle]
        self._unlink(handle)
        del self._index[slot.key]
        self._slots[handle] = None
        self._free.append(handle)

    def _is_expired(self, slot: _Slot[K, V], now: float) -> bool:
        return now - slot.written_at > self.ttl

    # -- public API ---------------------------------------------------------

    def get(self, key: K, default: Any = None) -> Any:
        now = self._clock()
        with self._lock:
            handle = self._index.get(key)
            if handle is None:
                self._misses += 1
                return default
            slot = self._slots[handle]
            if self._is_expired(slot, now):
                self._remove(handle)
                self._misses += 1
                return default
            self._hits += 1
            self._promote(handle)
            return slot.value

    def set(self, key: K, value: V) -> None:
        now = self._clock()
        with self._lock:
            handle = self._index.get(key)
            if handle is not None:
                slot = self._slots[handle]
                slot.value = value
                slot.written_at = now
                self._promote(handle)
                return

            handle = self._allocate(key, value, now)
            self._index[key] = handle
            self._push_front(handle)

            # size may exceed capacity by one until this check runs
            if len(self._index) > self.capacity:
                self._remove(self._tail)
                self._evictions += 1

    def has(self, key: K) -> bool:
        """Peek: same expiry rules as get() but no counters and no promotion."""
        now = self._clock()
        with self._lock:
            handle = self._index.get(key)
            if handle is None:
                return False
            if self._is_expired(self._slots[handle], now):
                self._remove(handle)
                return False
            return True

    def delete(self, key: K) -> bool:
        with self._lock:
            handle = self._index.get(key)
            if handle is None:
                return False
            self._remove(handle)
            return True

    def clear(self) -> None:
        """Drop every entry. Hit, miss and eviction counters are kept."""
        with self._lock:
            self._slots.clear()
            self._free.clear()
            self._index.clear()
            self._head = self._tail = _NIL

    def stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(
                hits=self._hits,
                misses=self._misses,
                size=len(self._index),
                evictions=self._evictions,
            )

    def sweep(self) -> int:
        """Remove every expired entry; returns how many were removed."""
        now = self._clock()
        with self._lock:
            stale = [h for h in self._index.values() if self._is_expired(self._slots[h], now)]
            for handle in stale:
                self._remove(handle)
        if stale:
            logger.debug("Swept %d expired cache entries", len(stale))
        return len(stale)

    def destroy(self) -> None:
        if self._destroyed:
            return
        self._destroyed = True
        self._sweeper.stop()
        self.clear()

    def keys(self) -> List[K]:
        """Keys from most to least recently used (expired entries included until swept)."""
        with self._lock:
            out: List[K] = []
            handle = self._head
            while handle != _NIL:
                slot = self._slots[handle]
                out.append(slot.key)
                handle = slot.next
            return out

    def __len__(self) -> int:
        with self._lock:
            return len(self._index)

    def __contains__(self, key: object) -> bool:
        return self.has(key)  # type: ignore[arg-type]

    def __enter__(self) -> "ExpiringLRUCache[K, V]":
        return self

    def __exit__(self, *exc) -> None:
        self.destroy()
