"""
High-level entry point for embedding threadscope in an application.

``ThreadScopeService`` wires the pieces together: it configures logging,
builds a ``PythonRuntimeProvider`` when none is supplied, and owns a
``ThreadMonitor``. Host applications that need finer control can build a
``ThreadMonitor`` directly.
"""

import logging
from pathlib import Path
from typing import Iterable, Mapping, Optional, Tuple, Union

from .config import load_config
from .logging_setup import configure_logging
from .models.config import ThreadScopeConfig
from .models.snapshot import SnapshotBatch
from .models.thread_state import ThreadState, ThreadStateRecord
from .orchestration.listeners import SnapshotListener
from .orchestration.monitor import ThreadMonitor
from .providers.base import AbstractIntrospectionProvider
from .providers.lock_tracking import LockTracker
from .providers.python_runtime import PythonRuntimeProvider

logger = logging.getLogger(__name__)


class ThreadScopeService:
    """Owns one configured ThreadMonitor and its provider."""

    def __init__(
        self,
        config: Optional[ThreadScopeConfig] = None,
        provider: Optional[AbstractIntrospectionProvider] = None,
        lock_tracker: Optional[LockTracker] = None,
        listeners: Iterable[SnapshotListener] = (),
        configure_logs: bool = True,
    ):
        """
        Args:
            config: Agent configuration (defaults to ``ThreadScopeConfig()``)
            provider: Introspection provider; a ``PythonRuntimeProvider``
                      using ``lock_tracker`` is built when omitted
            lock_tracker: Tracker shared with the application's TrackedLocks
            listeners: Initial snapshot listeners
            configure_logs: Install the package log handler from
                            ``config.logging``
        """
        self.config = config or ThreadScopeConfig()
        if configure_logs:
            configure_logging(self.config.logging)

        self.lock_tracker = lock_tracker
        self.provider = provider or PythonRuntimeProvider(lock_tracker=lock_tracker)
        self.monitor = ThreadMonitor(self.config, self.provider, listeners=listeners)
        # Queries made before start() still get classified snapshots.
        self.monitor.register_configured_detectors()

    @classmethod
    def from_file(cls, path: Union[str, Path], **kwargs) -> "ThreadScopeService":
        """Builds a service from a TOML file plus environment overrides."""
        return cls(load_config(path), **kwargs)

    @classmethod
    def from_environment(cls, environ: Optional[Mapping[str, str]] = None, **kwargs) -> "ThreadScopeService":
        """Builds a service from defaults plus ``THREADSCOPE_*`` variables."""
        return cls(load_config(environ=environ), **kwargs)

    def start(self) -> None:
        self.monitor.start()

    def stop(self) -> bool:
        return self.monitor.stop()

    @property
    def is_running(self) -> bool:
        return self.monitor.is_running

    def add_listener(self, listener: SnapshotListener) -> None:
        self.monitor.add_listener(listener)

    def remove_listener(self, listener: SnapshotListener) -> bool:
        return self.monitor.remove_listener(listener)

    def capture_snapshot(self) -> Optional[SnapshotBatch]:
        """Captures and publishes a snapshot on the calling thread."""
        return self.monitor.capture_snapshot()

    def _current_snapshot(self) -> Optional[SnapshotBatch]:
        return self.monitor.latest_snapshot or self.capture_snapshot()

    def get_threads_by_state(self, state: ThreadState) -> Tuple[ThreadStateRecord, ...]:
        """Threads in ``state`` in the latest snapshot (capturing one if needed)."""
        snapshot = self._current_snapshot()
        return snapshot.threads_in_state(state) if snapshot else ()

    def get_async_threads(self) -> Tuple[ThreadStateRecord, ...]:
        """Threads classified as async in the latest snapshot (capturing one if needed)."""
        snapshot = self._current_snapshot()
        return snapshot.async_threads() if snapshot else ()

    def get_stats(self):
        return self.monitor.get_stats()

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
