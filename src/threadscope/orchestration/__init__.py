"""
Monitor orchestration: the sampling and alert cadence and the listener
interface through which snapshots and deadlock alerts are published.
"""

from .listeners import LoggingListener, SnapshotListener
from .monitor import SYSTEM_THREAD_PREFIXES, MonitorState, ThreadMonitor

__all__ = [
    "LoggingListener",
    "MonitorState",
    "SYSTEM_THREAD_PREFIXES",
    "SnapshotListener",
    "ThreadMonitor",
]
