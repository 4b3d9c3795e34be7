import asyncio
import enum
import functools
import inspect
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Deque, Dict, Optional, Union

FetchFn = Callable[[], Union[Awaitable[Any], Any]]


class TaskState(enum.Enum):
    QUEUED = "queued"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(eq=False)
class InFlightTask:
    key: str
    fetch_fn: FetchFn
    future: asyncio.Future
    state: TaskState = TaskState.QUEUED
    waiters: int = 0
    runner: Optional[asyncio.Task] = field(default=None, repr=False)


class SingleFlightScheduler:
    """
    Runs fetches with at most `max_concurrent` executing at once and coalesces
    concurrent requests for the same key into a single fetch.

    New keys queue in arrival order and start as slots free up. Callers that
    ask for a key already queued or running attach to that task's future and
    receive the same value or the same exception. A task leaves the in-flight
    table before its future resolves, so a call made after completion always
    triggers a new fetch. Nothing is retried here.

    Must be used from a single event loop.
    """

    def __init__(self, max_concurrent: int = 10):
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be >= 1")
        self.max_concurrent = int(max_concurrent)
        self._in_flight: Dict[str, InFlightTask] = {}
        self._queue: Deque[InFlightTask] = deque()
        self._running = 0

    async def run(self, key: str, fetch_fn: FetchFn) -> Any:
        # no await between lookup and insert: join-or-create is atomic on the loop
        task = self._in_flight.get(key)
        if task is None:
            future = asyncio.get_running_loop().create_future()
            # consume the outcome even if every waiter has gone away
            future.add_done_callback(_retrieve)
            task = InFlightTask(key=key, fetch_fn=fetch_fn, future=future)
            self._in_flight[key] = task
            self._queue.append(task)
            self._pump()

        task.waiters += 1
        try:
            # shield: a caller giving up must not cancel a fetch others share
            return await asyncio.shield(task.future)
        finally:
            task.waiters -= 1

    def _pump(self) -> None:
        while self._queue and self._running < self.max_concurrent:
            task = self._queue.popleft()
            task.state = TaskState.RUNNING
            self._running += 1
            task.runner = asyncio.ensure_future(self._execute(task.fetch_fn))
            task.runner.add_done_callback(functools.partial(self._settle, task))

    @staticmethod
    async def _execute(fetch_fn: FetchFn) -> Any:
        if inspect.iscoroutinefunction(fetch_fn):
            return await fetch_fn()
        # plain callables may block; keep them off the event loop
        value = await asyncio.to_thread(fetch_fn)
        if inspect.isawaitable(value):
            value = await value
        return value

    def _settle(self, task: InFlightTask, runner: asyncio.Task) -> None:
        # leave the in-flight table before any waiter is woken
        self._running -= 1
        if self._in_flight.get(task.key) is task:
            del self._in_flight[task.key]

        if runner.cancelled():
            task.state = TaskState.FAILED
            task.future.cancel()
        elif runner.exception() is not None:
            task.state = TaskState.FAILED
            task.future.set_exception(runner.exception())
        else:
            task.state = TaskState.SUCCEEDED
            task.future.set_result(runner.result())
        self._pump()

    def is_in_flight(self, key: str) -> bool:
        return key in self._in_flight

    def state_of(self, key: str) -> Optional[TaskState]:
        """QUEUED or RUNNING for a key with a task in flight, else None."""
        task = self._in_flight.get(key)
        return task.state if task is not None else None

    def stats(self) -> Dict[str, int]:
        return {
            "queue_length": len(self._queue),
            "processing": self._running,
            "pending": len(self._in_flight),
        }


def _retrieve(future: asyncio.Future) -> None:
    if not future.cancelled():
        future.exception()
