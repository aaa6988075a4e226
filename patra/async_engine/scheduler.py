"""
POLLING SCHEDULER

One place that owns every recurring task (session re-verification, letter
list refresh). Views register tasks under their own owner key and cancel
them when they are torn down.

Rules:
- A task failure is logged and the loop keeps going
- cancel() stops future runs; a run already in progress finishes
- Mutations are never scheduled here, so cancelling a view never cancels
  an in-flight mutation
"""

import logging
import threading
from typing import Callable, Dict, Optional, Tuple

logger = logging.getLogger(__name__)


class PeriodicTask:
    """Run `fn` every `interval` seconds on a daemon thread until cancelled."""

    def __init__(
        self,
        name: str,
        interval: float,
        fn: Callable[[], None],
        *,
        run_immediately: bool = False,
    ):
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.name = name
        self.interval = interval
        self.fn = fn
        self.run_immediately = run_immediately
        self.runs = 0
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def cancelled(self) -> bool:
        return self._stop.is_set()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> "PeriodicTask":
        if self._thread is not None:
            return self
        self._thread = threading.Thread(
            target=self._loop, name=f"poll-{self.name}", daemon=True
        )
        self._thread.start()
        return self

    def run_once(self) -> None:
        try:
            self.fn()
        except Exception:
            # Never crash the poller
            logger.exception(f"Polling task '{self.name}' failed")
        finally:
            self.runs += 1

    def _loop(self) -> None:
        if self.run_immediately and not self._stop.is_set():
            self.run_once()
        while not self._stop.wait(self.interval):
            self.run_once()

    def cancel(self, join_timeout: Optional[float] = None) -> None:
        self._stop.set()
        if join_timeout is not None and self._thread is not None:
            self._thread.join(join_timeout)


class TaskScheduler:
    """Registry of periodic tasks keyed by (owner, name)."""

    def __init__(self):
        self._lock = threading.Lock()
        self._tasks: Dict[Tuple[str, str], PeriodicTask] = {}

    def schedule(
        self,
        owner: str,
        name: str,
        interval: float,
        fn: Callable[[], None],
        *,
        run_immediately: bool = False,
    ) -> PeriodicTask:
        """Start a task; an existing task with the same key is replaced."""
        key = (owner, name)
        task = PeriodicTask(name, interval, fn, run_immediately=run_immediately)
        with self._lock:
            previous = self._tasks.pop(key, None)
            self._tasks[key] = task
        if previous is not None:
            previous.cancel()
        logger.debug(f"Scheduling '{name}' for {owner} every {interval}s")
        return task.start()

    def is_scheduled(self, owner: str, name: str) -> bool:
        with self._lock:
            task = self._tasks.get((owner, name))
        return task is not None and not task.cancelled

    def cancel(self, owner: str, name: str) -> None:
        with self._lock:
            task = self._tasks.pop((owner, name), None)
        if task is not None:
            task.cancel()

    def cancel_owner(self, owner: str) -> int:
        """Cancel every task a view registered. Returns how many were stopped."""
        with self._lock:
            keys = [key for key in self._tasks if key[0] == owner]
            tasks = [self._tasks.pop(key) for key in keys]
        for task in tasks:
            task.cancel()
        return len(tasks)

    def cancel_all(self) -> None:
        with self._lock:
            tasks = list(self._tasks.values())
            self._tasks.clear()
        for task in tasks:
            task.cancel()
