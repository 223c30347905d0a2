"""
Periodic task ticker.

One daemon thread decides when tasks are due and submits each firing to
a small shared ThreadPoolExecutor. A task is never resubmitted while its
previous firing is still running, and fixed-delay tasks only compute
their next run after the previous one completes.
"""

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional

from flighttracker.models import utcnow

logger = logging.getLogger(__name__)


def seconds_until_next_hour(now: Optional[datetime] = None) -> float:
    """Delay until the next top of the hour."""
    now = now or utcnow()
    next_hour = now.replace(minute=0, second=0, microsecond=0) + timedelta(hours=1)
    return (next_hour - now).total_seconds()


@dataclass
class PeriodicTask:
    """
    A named callable fired on a schedule.

    ``next_delay`` returns the wait in seconds after the previous firing
    completed; ``initial_delay`` applies to the first firing.
    """
    name: str
    func: Callable[[], object]
    next_delay: Callable[[], float]
    initial_delay: float = 0.0

    # Runtime state owned by TaskTicker
    next_run: float = field(default=0.0, repr=False)
    future: Optional[Future] = field(default=None, repr=False)
    runs: int = field(default=0, repr=False)

    @classmethod
    def fixed_delay(cls, name: str, func: Callable[[], object],
                    interval: float, initial_delay: float = 0.0) -> 'PeriodicTask':
        """Fire ``interval`` seconds after the previous firing finished."""
        return cls(name=name, func=func, next_delay=lambda: interval, initial_delay=initial_delay)

    @classmethod
    def hourly(cls, name: str, func: Callable[[], object]) -> 'PeriodicTask':
        """Fire at the top of every hour."""
        return cls(
            name=name,
            func=func,
            next_delay=seconds_until_next_hour,
            initial_delay=seconds_until_next_hour(),
        )

    @property
    def running(self) -> bool:
        return self.future is not None and not self.future.done()


class TaskTicker:
    """Drives a fixed set of PeriodicTasks on a shared worker pool."""

    def __init__(self, pool_size: int = 3, tick_seconds: float = 1.0):
        self.pool_size = pool_size
        self.tick_seconds = tick_seconds

        self._tasks: Dict[str, PeriodicTask] = {}
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._executor: Optional[ThreadPoolExecutor] = None

    def add(self, task: PeriodicTask) -> None:
        """Register a task; its first firing is ``initial_delay`` from now."""
        with self._lock:
            if task.name in self._tasks:
                raise ValueError(f'Task {task.name!r} already registered')
            task.next_run = time.monotonic() + task.initial_delay
            self._tasks[task.name] = task

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the ticker thread."""
        if self.running:
            logger.warning('Ticker already running')
            return

        self._stop.clear()
        self._executor = ThreadPoolExecutor(
            max_workers=self.pool_size,
            thread_name_prefix='flighttracker-task',
        )
        self._thread = threading.Thread(
            target=self._run,
            name='flighttracker-ticker',
            daemon=True,
        )
        self._thread.start()
        logger.info(f'Ticker started with {len(self._tasks)} tasks on {self.pool_size} workers')

    def stop(self, wait: bool = True, timeout: float = 5.0) -> None:
        """Stop scheduling new firings and shut down the pool."""
        self._stop.set()
        if self._thread:
            self._thread.join(timeout=timeout)
            self._thread = None
        if self._executor:
            self._executor.shutdown(wait=wait, cancel_futures=True)
            self._executor = None
        logger.info('Ticker stopped')

    def _on_done(self, task: PeriodicTask, future: Future) -> None:
        exc = future.exception() if not future.cancelled() else None
        if exc is not None:
            logger.error(f'Task {task.name} raised: {exc}')

        try:
            delay = task.next_delay()
        except Exception as e:
            logger.error(f'Task {task.name} schedule error, retrying in 60s: {e}')
            delay = 60.0

        with self._lock:
            task.next_run = time.monotonic() + max(delay, 0.0)

    def _submit_due(self) -> float:
        """Submit due tasks. Returns seconds until the earliest next run."""
        executor = self._executor
        if executor is None:
            raise RuntimeError('executor is shut down')

        now = time.monotonic()
        earliest = float('inf')

        with self._lock:
            tasks = list(self._tasks.values())

        for task in tasks:
            if task.running:
                continue
            if task.next_run <= now:
                # Completion callback sets the next run
                task.next_run = float('inf')
                task.runs += 1
                task.future = executor.submit(task.func)
                task.future.add_done_callback(lambda f, t=task: self._on_done(t, f))
                logger.debug(f'Submitted {task.name} (run #{task.runs})')
            else:
                earliest = min(earliest, task.next_run - now)

        return earliest

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                wait = self._submit_due()
            except RuntimeError as e:
                # Executor shut down underneath us
                logger.debug(f'Ticker stopping: {e}')
                return
            self._stop.wait(min(wait, self.tick_seconds))
