"""
Managed worker pool for the monitor's background tasks.

The monitor runs a small, fixed number of periodic tasks (sampling, deadlock
alerts) plus on-demand snapshot requests. Each periodic task occupies one
worker for its whole life, looping on a shared stop event, so the pool must
have at least one more worker than there are periodic tasks.
"""

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Set

from ..models.config import SchedulerConfig
from ..validation import ErrorSeverity, handle_error

logger = logging.getLogger(__name__)


@dataclass
class ThreadPoolConfig:
    """Configuration for the monitor's worker pool."""

    max_workers: int = 3
    thread_name_prefix: str = "ThreadScope-Monitor"
    shutdown_timeout: float = 5.0

    @classmethod
    def from_scheduler_config(cls, scheduler: SchedulerConfig, min_workers: int = 1) -> "ThreadPoolConfig":
        return cls(
            max_workers=max(scheduler.max_workers, min_workers),
            thread_name_prefix=scheduler.thread_name_prefix,
            shutdown_timeout=scheduler.shutdown_timeout,
        )


class ManagedThreadPoolExecutor:
    """
    ThreadPoolExecutor wrapper with task statistics, fixed-rate scheduling
    and bounded shutdown.

    - ``submit`` tracks every future until it completes
    - ``schedule_at_fixed_rate`` runs a callable periodically on one worker
    - ``shutdown`` signals all periodic loops, waits a bounded time for
      in-flight work, then cancels whatever is still pending
    """

    def __init__(self, config: ThreadPoolConfig):
        """
        Initialize the managed thread pool executor.

        Args:
            config: Thread pool configuration
        """
        self.config = config
        self.executor: Optional[ThreadPoolExecutor] = None
        self.active_futures: Set[Future] = set()
        self.is_shutdown = False
        self._lock = threading.Lock()
        self._stop_event = threading.Event()

        self.stats = {
            "tasks_submitted": 0,
            "tasks_completed": 0,
            "tasks_failed": 0,
            "periodic_tasks": 0,
            "periodic_runs": 0,
            "periodic_failures": 0,
            "periodic_runs_skipped": 0,
        }

    @property
    def stop_event(self) -> threading.Event:
        """Set when the pool is shutting down; periodic loops exit on it."""
        return self._stop_event

    def start(self) -> None:
        """
        Start the thread pool executor.

        Raises:
            RuntimeError: If already started
        """
        if self.executor is not None:
            raise RuntimeError("Thread pool already started")

        try:
            self._stop_event.clear()
            self.executor = ThreadPoolExecutor(
                max_workers=self.config.max_workers,
                thread_name_prefix=self.config.thread_name_prefix,
            )
            self.is_shutdown = False
            logger.info(
                f"Started thread pool '{self.config.thread_name_prefix}' "
                f"with {self.config.max_workers} workers"
            )
        except Exception as e:
            handle_error(
                error=e,
                context="starting managed thread pool",
                severity=ErrorSeverity.ERROR,
                reraise=True,
                logger=logger,
            )

    def submit(self, fn: Callable, *args, **kwargs) -> Future:
        """
        Submit a task to the thread pool.

        Args:
            fn: Function to execute
            *args: Positional arguments
            **kwargs: Keyword arguments

        Returns:
            Future representing the task

        Raises:
            RuntimeError: If executor is not started or is shutdown
        """
        if self.executor is None:
            raise RuntimeError("Thread pool not started")
        if self.is_shutdown:
            raise RuntimeError("Thread pool is shutdown")

        try:
            future = self.executor.submit(fn, *args, **kwargs)
        except Exception as e:
            with self._lock:
                self.stats["tasks_failed"] += 1
            handle_error(
                error=e,
                context="submitting task to thread pool",
                severity=ErrorSeverity.ERROR,
                reraise=True,
                logger=logger,
            )

        with self._lock:
            self.stats["tasks_submitted"] += 1
            self.active_futures.add(future)
        future.add_done_callback(self._task_completed)
        return future

    def schedule_at_fixed_rate(
        self,
        fn: Callable[[], Any],
        interval: float,
        initial_delay: float = 0.0,
        name: Optional[str] = None,
    ) -> Future:
        """
        Run ``fn`` every ``interval`` seconds until the pool shuts down.

        The loop occupies one worker. Runs are aligned to the original
        schedule; when a run overruns, the missed runs are skipped rather
        than executed back to back. Exceptions from ``fn`` are logged and
        the loop continues.

        Args:
            fn: Callable taking no arguments
            interval: Seconds between scheduled runs
            initial_delay: Seconds before the first run
            name: Task name used in log messages

        Returns:
            Future that completes when the loop exits
        """
        if interval <= 0:
            raise ValueError(f"interval must be > 0, got {interval}")

        task_name = name or getattr(fn, "__name__", "periodic task")
        with self._lock:
            self.stats["periodic_tasks"] += 1
        logger.debug(f"Scheduling '{task_name}' every {interval}s (initial delay {initial_delay}s)")
        return self.submit(self._run_periodic, fn, interval, initial_delay, task_name)

    def _run_periodic(self, fn: Callable[[], Any], interval: float, initial_delay: float, name: str) -> None:
        next_run = time.monotonic() + max(0.0, initial_delay)

        while not self._stop_event.is_set():
            delay = next_run - time.monotonic()
            if delay > 0 and self._stop_event.wait(delay):
                break

            try:
                fn()
                with self._lock:
                    self.stats["periodic_runs"] += 1
            except Exception as e:
                with self._lock:
                    self.stats["periodic_failures"] += 1
                handle_error(
                    error=e,
                    context=f"periodic task '{name}'",
                    severity=ErrorSeverity.ERROR,
                    reraise=False,
                    logger=logger,
                )

            next_run += interval
            now = time.monotonic()
            if next_run <= now:
                missed = int((now - next_run) // interval) + 1
                next_run += missed * interval
                with self._lock:
                    self.stats["periodic_runs_skipped"] += missed
                logger.debug(f"Periodic task '{name}' overran; skipped {missed} run(s)")

        logger.debug(f"Periodic task '{name}' stopped")

    def shutdown(self, timeout: Optional[float] = None) -> bool:
        """
        Shutdown the thread pool executor within a bounded time.

        Signals every periodic loop to stop, waits up to ``timeout`` seconds
        (default: the configured shutdown timeout) for in-flight tasks, then
        cancels anything still pending. Never blocks longer than the timeout.

        Returns:
            True if all tasks finished within the timeout
        """
        if self.executor is None or self.is_shutdown:
            return True

        grace = self.config.shutdown_timeout if timeout is None else timeout
        finished = True
        try:
            self.is_shutdown = True
            self._stop_event.set()

            with self._lock:
                pending = set(self.active_futures)
            if pending:
                _, not_done = wait(pending, timeout=grace)
                finished = not not_done
                if not_done:
                    logger.warning(
                        f"{len(not_done)} task(s) still running after {grace}s; "
                        f"abandoning them"
                    )

            self.executor.shutdown(wait=False, cancel_futures=True)
            logger.info("Thread pool shutdown completed")

        except Exception as e:
            handle_error(
                error=e,
                context="shutting down thread pool",
                severity=ErrorSeverity.WARNING,
                reraise=False,
                logger=logger,
            )
        finally:
            self.executor = None
            with self._lock:
                self.active_futures.clear()

        return finished

    def get_stats(self) -> Dict[str, Any]:
        """
        Get current thread pool statistics.

        Returns:
            Dictionary containing usage statistics
        """
        with self._lock:
            stats = self.stats.copy()
            stats["active_futures"] = len(self.active_futures)

        stats["is_shutdown"] = self.is_shutdown
        stats["max_workers"] = self.config.max_workers
        return stats

    def _task_completed(self, future: Future) -> None:
        """
        Callback executed when a task completes.

        Args:
            future: The completed future
        """
        try:
            with self._lock:
                self.active_futures.discard(future)

                if future.cancelled():
                    pass
                elif future.exception() is not None:
                    self.stats["tasks_failed"] += 1
                else:
                    self.stats["tasks_completed"] += 1

        except Exception as e:
            logger.warning(f"Error in task completion callback: {e}")

    def __enter__(self):
        """Context manager entry."""
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.shutdown()
