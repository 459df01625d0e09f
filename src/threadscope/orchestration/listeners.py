"""
Listener interface for snapshot and deadlock alert events.
"""

import logging
from abc import ABC
from typing import List, Optional

from ..models.detection import DeadlockCycle
from ..models.snapshot import SnapshotBatch

logger = logging.getLogger(__name__)


class SnapshotListener(ABC):
    """
    Receives monitor events. Both callbacks default to no-ops.

    Callbacks run synchronously on a monitor worker, in registration order.
    The batch and the cycle list are read-only and must not be retained
    beyond the callback. Exceptions raised here are logged and counted by
    the monitor; they never reach other listeners.
    """

    def on_snapshot(self, batch: SnapshotBatch) -> None:
        """Called once per sampling tick with the fully annotated batch."""

    def on_deadlock_alert(self, cycles: List[DeadlockCycle]) -> None:
        """Called by the alert task when at least one cycle was found."""


class LoggingListener(SnapshotListener):
    """Writes a one-line summary of every snapshot and alert to a logger."""

    def __init__(self, target: Optional[logging.Logger] = None, level: int = logging.INFO):
        self.target = target or logger
        self.level = level

    def on_snapshot(self, batch: SnapshotBatch) -> None:
        self.target.log(
            self.level,
            f"Snapshot: {batch.total_threads} threads, {batch.active_threads} runnable, "
            f"{len(batch.async_threads())} async, {len(batch.deadlocks)} deadlock(s)"
            + ("" if batch.complete else " [partial]"),
        )

    def on_deadlock_alert(self, cycles: List[DeadlockCycle]) -> None:
        for cycle in cycles:
            self.target.log(
                max(self.level, logging.WARNING),
                f"Deadlock alert: {cycle.describe()} (confidence {cycle.confidence})",
            )
