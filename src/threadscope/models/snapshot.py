"""
Snapshot data model.

A ``SnapshotBatch`` is the complete, immutable result of one sampling tick:
every thread record (already annotated by all detectors) plus the deadlock
cycles found in that tick.
"""

from dataclasses import dataclass
from typing import Iterable, Optional, Tuple

from .detection import DeadlockCycle
from .thread_state import ThreadState, ThreadStateRecord


@dataclass(frozen=True)
class SnapshotBatch:
    """
    Point-in-time view of the monitored process.

    Listeners receive the batch read-only and must not keep references into
    it beyond their callback.
    """

    # Epoch seconds at which the provider was sampled.
    timestamp: float
    # Thread records in provider order, annotated by every enabled detector.
    threads: Tuple[ThreadStateRecord, ...]
    # Deadlock cycles detected in this tick.
    deadlocks: Tuple[DeadlockCycle, ...]
    # Number of threads in this snapshot.
    total_threads: int
    # Number of threads in the RUNNABLE state.
    active_threads: int
    # False when the provider returned a partial dump or the thread cap applied.
    complete: bool = True

    @classmethod
    def build(
        cls,
        timestamp: float,
        threads: Iterable[ThreadStateRecord],
        deadlocks: Iterable[DeadlockCycle] = (),
        complete: bool = True,
    ) -> "SnapshotBatch":
        """Assemble a batch, deriving the thread counters from the records."""
        thread_tuple = tuple(threads)
        active = sum(1 for record in thread_tuple if record.state is ThreadState.RUNNABLE)
        return cls(
            timestamp=timestamp,
            threads=thread_tuple,
            deadlocks=tuple(deadlocks),
            total_threads=len(thread_tuple),
            active_threads=active,
            complete=complete,
        )

    @property
    def has_deadlocks(self) -> bool:
        return bool(self.deadlocks)

    def threads_in_state(self, state: ThreadState) -> Tuple[ThreadStateRecord, ...]:
        return tuple(record for record in self.threads if record.state is state)

    def async_threads(self) -> Tuple[ThreadStateRecord, ...]:
        return tuple(record for record in self.threads if record.is_async_thread)

    def find_thread(self, thread_id: int) -> Optional[ThreadStateRecord]:
        for record in self.threads:
            if record.thread_id == thread_id:
                return record
        return None
