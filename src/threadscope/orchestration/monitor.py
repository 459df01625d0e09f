"""
Thread monitor orchestration.

``ThreadMonitor`` owns the sampling cadence. On every sampling tick it reads
raw thread state from the introspection provider, filters and converts it,
runs the detector registry over the batch, and publishes the resulting
snapshot to its listeners. An independent alert task runs the deadlock
analyzer alone and surfaces cycles as alert events.

Nothing raised by the provider, a detector or a listener escapes a tick: the
monitor degrades to emptier snapshots and exposes the failures through
``get_stats()`` and ``snapshot_age()``.
"""

import logging
import threading
import time
from concurrent.futures import Future
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Sequence, Tuple

from ..detectors.async_threads import AsyncThreadClassifier
from ..detectors.deadlock import DeadlockAnalyzer
from ..detectors.registry import DetectorRegistry
from ..executor.thread_pool import ManagedThreadPoolExecutor, ThreadPoolConfig
from ..models.config import ThreadScopeConfig
from ..models.detection import DeadlockCycle, ThreadBatch
from ..models.snapshot import SnapshotBatch
from ..models.thread_state import RawThreadState, ThreadStateRecord
from ..providers.base import AbstractIntrospectionProvider
from ..validation import ErrorSeverity, handle_error, handle_provider_error
from .listeners import SnapshotListener

logger = logging.getLogger(__name__)

# Runtime helper threads hidden unless include_system_threads is set.
SYSTEM_THREAD_PREFIXES: Tuple[str, ...] = (
    "ThreadScope-",
    "pydevd.",
    "ptvsd.",
    "Dummy-",
    "QueueFeederThread",
    "IPythonHistorySavingThread",
)

SAMPLING_TASK_NAME = "snapshot-sampling"
ALERT_TASK_NAME = "deadlock-alerts"


class MonitorState(Enum):
    """Lifecycle states of a ThreadMonitor."""

    STOPPED = "STOPPED"
    STARTING = "STARTING"
    RUNNING = "RUNNING"
    STOPPING = "STOPPING"


class ThreadMonitor:
    """
    Periodic thread sampler and deadlock alerter.

    ``start()`` and ``stop()`` are idempotent: calling ``start()`` while not
    STOPPED, or ``stop()`` while not RUNNING, does nothing.
    """

    def __init__(
        self,
        config: ThreadScopeConfig,
        provider: AbstractIntrospectionProvider,
        registry: Optional[DetectorRegistry] = None,
        listeners: Optional[Iterable[SnapshotListener]] = None,
    ):
        """
        Args:
            config: Immutable agent configuration
            provider: Source of raw thread state
            registry: Detector registry; a new empty one when omitted. The
                      detectors enabled by ``config`` are added on start.
            listeners: Initial listeners, notified in this order
        """
        self.config = config
        self.provider = provider
        self.registry = registry if registry is not None else DetectorRegistry()
        self.deadlock_analyzer = DeadlockAnalyzer(
            enabled=config.alerts.deadlock_detection,
            confidence_threshold=config.alerts.deadlock_confidence_threshold,
        )

        self._listeners: Tuple[SnapshotListener, ...] = tuple(listeners or ())
        self._listener_lock = threading.Lock()
        self._lifecycle_lock = threading.Lock()
        self._state = MonitorState.STOPPED
        self._pool: Optional[ManagedThreadPoolExecutor] = None

        self._stats_lock = threading.Lock()
        self._latest_snapshot: Optional[SnapshotBatch] = None
        self._latest_snapshot_at: Optional[float] = None
        self.stats = {
            "ticks": 0,
            "snapshots_published": 0,
            "provider_failures": 0,
            "consecutive_provider_failures": 0,
            "detector_failures": 0,
            "listener_failures": 0,
            "deadlock_checks": 0,
            "deadlocks_reported": 0,
        }

    # --- lifecycle ---

    @property
    def state(self) -> MonitorState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is MonitorState.RUNNING

    def start(self) -> None:
        """
        Registers the configured detectors and starts the periodic tasks.

        Raises:
            RuntimeError: If the worker pool cannot be started
        """
        with self._lifecycle_lock:
            if self._state is not MonitorState.STOPPED:
                logger.debug(f"start() ignored: monitor is {self._state.value}")
                return
            if not self.config.enabled:
                logger.info("Thread monitoring is disabled by configuration")
                return

            self._state = MonitorState.STARTING
            pool: Optional[ManagedThreadPoolExecutor] = None
            try:
                self.register_configured_detectors()

                periodic_tasks = int(self.config.snapshot.enabled) + int(
                    self.config.alerts.deadlock_detection
                )
                pool = ManagedThreadPoolExecutor(
                    ThreadPoolConfig.from_scheduler_config(
                        self.config.scheduler, min_workers=periodic_tasks + 1
                    )
                )
                pool.start()

                if self.config.snapshot.enabled:
                    pool.schedule_at_fixed_rate(
                        self._sampling_tick,
                        interval=self.config.snapshot.interval_seconds,
                        initial_delay=0.0,
                        name=SAMPLING_TASK_NAME,
                    )
                if self.config.alerts.deadlock_detection:
                    pool.schedule_at_fixed_rate(
                        self._alert_tick,
                        interval=self.config.alerts.check_interval_seconds,
                        initial_delay=self.config.alerts.check_interval_seconds,
                        name=ALERT_TASK_NAME,
                    )
            except Exception as e:
                self._state = MonitorState.STOPPED
                if pool is not None:
                    pool.shutdown(timeout=0)
                handle_error(
                    error=e,
                    context="starting thread monitor",
                    severity=ErrorSeverity.ERROR,
                    reraise=True,
                    logger=logger
                )

            self._pool = pool
            self._state = MonitorState.RUNNING

        logger.info(
            f"Thread monitor started: detectors={list(self.registry.names)}, "
            f"snapshot interval={self.config.snapshot.interval_seconds}s "
            f"(enabled={self.config.snapshot.enabled}), "
            f"alert interval={self.config.alerts.check_interval_seconds}s "
            f"(enabled={self.config.alerts.deadlock_detection})"
        )

    def stop(self, timeout: Optional[float] = None) -> bool:
        """
        Stops the periodic tasks within a bounded grace period.

        Args:
            timeout: Seconds to wait for in-flight ticks (defaults to
                     ``scheduler.shutdown_timeout``)

        Returns:
            True if every in-flight tick finished within the grace period
        """
        with self._lifecycle_lock:
            if self._state is not MonitorState.RUNNING:
                logger.debug(f"stop() ignored: monitor is {self._state.value}")
                return True

            self._state = MonitorState.STOPPING
            pool, self._pool = self._pool, None
            finished = True
            try:
                if pool is not None:
                    finished = pool.shutdown(timeout=timeout)
            finally:
                self._state = MonitorState.STOPPED

        if finished:
            logger.info("Thread monitor stopped")
        else:
            logger.warning("Thread monitor stopped with ticks still in flight")
        return finished

    def register_configured_detectors(self) -> None:
        """Adds the detectors enabled by the configuration that are not yet registered."""
        if self.config.alerts.deadlock_detection and DeadlockAnalyzer.name not in self.registry:
            self.registry.register(self.deadlock_analyzer)
        if self.config.advanced.enable_async_detection and AsyncThreadClassifier.name not in self.registry:
            self.registry.register(
                AsyncThreadClassifier(
                    enabled=True,
                    confidence_threshold=self.config.advanced.async_confidence_threshold,
                )
            )

    # --- listeners ---

    @property
    def listeners(self) -> Tuple[SnapshotListener, ...]:
        return self._listeners

    def add_listener(self, listener: SnapshotListener) -> None:
        with self._listener_lock:
            self._listeners = self._listeners + (listener,)

    def remove_listener(self, listener: SnapshotListener) -> bool:
        with self._listener_lock:
            if listener not in self._listeners:
                return False
            remaining = list(self._listeners)
            remaining.remove(listener)
            self._listeners = tuple(remaining)
            return True

    # --- ticks ---

    def _sampling_tick(self) -> None:
        self.capture_snapshot()

    def _alert_tick(self) -> None:
        self.check_for_deadlocks()

    def request_snapshot(self) -> "Future[Optional[SnapshotBatch]]":
        """
        Runs a sampling tick on the worker pool.

        Raises:
            RuntimeError: If the monitor is not running
        """
        with self._lifecycle_lock:
            if self._state is not MonitorState.RUNNING or self._pool is None:
                raise RuntimeError("Thread monitor is not running")
            pool = self._pool
        return pool.submit(self.capture_snapshot)

    def capture_snapshot(self) -> Optional[SnapshotBatch]:
        """
        Performs one sampling tick and publishes the result.

        Returns:
            The published snapshot, or None when the provider failed and the
            tick was skipped
        """
        with self._stats_lock:
            self.stats["ticks"] += 1

        timestamp = time.time()
        raw_states = self._fetch_raw_states()
        if raw_states is None:
            return None

        batch = self._build_batch(raw_states, timestamp, self._fetch_hint(), apply_thread_cap=True)
        report = self.registry.run(batch)

        snapshot = SnapshotBatch.build(
            timestamp=timestamp,
            threads=report.records,
            deadlocks=report.deadlocks,
            complete=batch.complete,
        )

        with self._stats_lock:
            self.stats["detector_failures"] += len(report.failures)
            self._latest_snapshot = snapshot
            self._latest_snapshot_at = time.monotonic()

        logger.debug(
            f"Snapshot captured: {snapshot.total_threads} threads, "
            f"{snapshot.active_threads} runnable, {len(snapshot.deadlocks)} deadlock(s), "
            f"complete={snapshot.complete}"
        )
        self._publish_snapshot(snapshot)
        return snapshot

    def check_for_deadlocks(self) -> List[DeadlockCycle]:
        """
        Runs the deadlock analyzer on a fresh, uncapped fetch.

        Cycles found are logged at ERROR and sent to every listener's
        ``on_deadlock_alert``.
        """
        analyzer = self._alert_analyzer()
        if analyzer is None or not analyzer.enabled:
            return []

        with self._stats_lock:
            self.stats["deadlock_checks"] += 1

        timestamp = time.time()
        raw_states = self._fetch_raw_states()
        if raw_states is None:
            return []

        batch = self._build_batch(raw_states, timestamp, self._fetch_hint(), apply_thread_cap=False)
        cycles = analyzer.analyze(batch)
        if not cycles:
            return []

        for cycle in cycles:
            logger.error(
                f"Deadlock detected among {cycle.size} threads: {cycle.describe()} "
                f"(confidence {cycle.confidence})"
            )
        with self._stats_lock:
            self.stats["deadlocks_reported"] += len(cycles)

        self._publish_alert(cycles)
        return cycles

    def _alert_analyzer(self) -> Optional[DeadlockAnalyzer]:
        registered = self.registry.get(DeadlockAnalyzer.name)
        if isinstance(registered, DeadlockAnalyzer):
            return registered
        if self.config.alerts.deadlock_detection:
            return self.deadlock_analyzer
        return None

    def _fetch_raw_states(self) -> Optional[List[Optional[RawThreadState]]]:
        try:
            raw_states = list(self.provider.fetch_all())
        except Exception as e:
            with self._stats_lock:
                self.stats["provider_failures"] += 1
                self.stats["consecutive_provider_failures"] += 1
                consecutive = self.stats["consecutive_provider_failures"]
            handle_provider_error(
                e,
                getattr(self.provider, "name", type(self.provider).__name__),
                severity=ErrorSeverity.WARNING,
                reraise=False,
                logger=logger
            )
            logger.warning(f"Skipping tick after {consecutive} consecutive provider failure(s)")
            return None

        with self._stats_lock:
            self.stats["consecutive_provider_failures"] = 0
        return raw_states

    def _fetch_hint(self) -> Optional[FrozenSet[int]]:
        try:
            hint = self.provider.find_deadlocked_thread_ids()
        except Exception as e:
            logger.debug(f"Ignoring deadlocked-thread hint failure: {e}")
            return None
        return frozenset(hint) if hint else None

    def is_system_thread(self, name: str) -> bool:
        return name.startswith(SYSTEM_THREAD_PREFIXES) or name.startswith(
            self.config.scheduler.thread_name_prefix
        )

    def _build_batch(
        self,
        raw_states: Sequence[Optional[RawThreadState]],
        timestamp: float,
        hint: Optional[FrozenSet[int]],
        apply_thread_cap: bool,
    ) -> ThreadBatch:
        advanced = self.config.advanced
        complete = True
        records: List[ThreadStateRecord] = []

        for raw in raw_states:
            if raw is None:
                complete = False
                continue
            if not advanced.include_system_threads and self.is_system_thread(raw.name):
                continue
            records.append(ThreadStateRecord.from_raw(raw, advanced.max_stack_depth, timestamp))

        if apply_thread_cap and len(records) > advanced.max_threads_to_monitor:
            logger.debug(
                f"Capping snapshot at {advanced.max_threads_to_monitor} of {len(records)} threads"
            )
            records = records[:advanced.max_threads_to_monitor]
            complete = False

        return ThreadBatch(
            records=tuple(records),
            timestamp=timestamp,
            complete=complete,
            deadlocked_hint=hint,
        )

    # --- publishing ---

    def _publish_snapshot(self, snapshot: SnapshotBatch) -> None:
        for listener in self._listeners:
            try:
                listener.on_snapshot(snapshot)
            except Exception as e:
                with self._stats_lock:
                    self.stats["listener_failures"] += 1
                handle_error(
                    error=e,
                    context=f"listener {type(listener).__name__}.on_snapshot",
                    severity=ErrorSeverity.ERROR,
                    reraise=False,
                    logger=logger
                )
        with self._stats_lock:
            self.stats["snapshots_published"] += 1

    def _publish_alert(self, cycles: List[DeadlockCycle]) -> None:
        for listener in self._listeners:
            try:
                listener.on_deadlock_alert(list(cycles))
            except Exception as e:
                with self._stats_lock:
                    self.stats["listener_failures"] += 1
                handle_error(
                    error=e,
                    context=f"listener {type(listener).__name__}.on_deadlock_alert",
                    severity=ErrorSeverity.ERROR,
                    reraise=False,
                    logger=logger
                )

    # --- observability ---

    @property
    def latest_snapshot(self) -> Optional[SnapshotBatch]:
        return self._latest_snapshot

    def snapshot_age(self) -> Optional[float]:
        """Seconds since the last successful snapshot, or None if there was none."""
        with self._stats_lock:
            captured_at = self._latest_snapshot_at
        if captured_at is None:
            return None
        return time.monotonic() - captured_at

    def get_stats(self) -> Dict[str, Any]:
        with self._stats_lock:
            stats: Dict[str, Any] = self.stats.copy()
        stats["state"] = self._state.value
        stats["snapshot_age"] = self.snapshot_age()
        stats["detectors"] = list(self.registry.names)
        pool = self._pool
        stats["pool"] = pool.get_stats() if pool is not None else {}
        return stats

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
