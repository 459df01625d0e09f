"""
Detection result models.

Every detector returns results that share a small capability surface:
``kind``, ``confidence`` and ``metadata``. The registry aggregates results by
``kind`` (a tagged variant) and never inspects the concrete detector that
produced them.

Metadata carries a creation timestamp, so it is excluded from equality:
running a detector twice over the same record must compare equal.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, List, Optional, Tuple, Union

from .thread_state import AsyncThreadType, ThreadStateRecord


class DetectionKind(Enum):
    """Discriminator used to route detection results."""

    DEADLOCK = "deadlock"
    ASYNC_THREAD = "async_thread"


@dataclass(frozen=True)
class DetectionMetadata:
    """Describes the detector that produced a result."""

    detector_name: str
    version: str
    description: str
    timestamp: float = field(default_factory=time.time)


@dataclass(frozen=True)
class DeadlockCycle:
    """
    A cycle in the wait-for graph.

    Attributes:
        cycle_id: Smallest thread id in the cycle. A cycle that persists
                  across samples keeps the same id without any tracking state.
        thread_ids: Threads taking part in the cycle (always two or more).
        chain: Wait-for order starting at ``cycle_id``; each thread waits on
               a lock held by the next, and the last waits on the first.
        confidence: Detection-quality heuristic in [0.0, 1.0].
    """

    cycle_id: int
    thread_ids: FrozenSet[int]
    chain: Tuple[int, ...]
    confidence: float
    metadata: Optional[DetectionMetadata] = field(default=None, compare=False)

    @property
    def kind(self) -> DetectionKind:
        return DetectionKind.DEADLOCK

    @property
    def size(self) -> int:
        return len(self.thread_ids)

    def describe(self) -> str:
        """Render the wait-for chain, e.g. ``3 -> 7 -> 3``."""
        if not self.chain:
            return ", ".join(str(tid) for tid in sorted(self.thread_ids))
        return " -> ".join(str(tid) for tid in self.chain + (self.chain[0],))


@dataclass(frozen=True)
class AsyncDetectionResult:
    """Verdict of the async thread classifier for one thread."""

    thread_id: int
    is_async: bool
    type: AsyncThreadType
    confidence: float
    metadata: Optional[DetectionMetadata] = field(default=None, compare=False)

    @property
    def kind(self) -> DetectionKind:
        return DetectionKind.ASYNC_THREAD


DetectionResult = Union[DeadlockCycle, AsyncDetectionResult]


@dataclass(frozen=True)
class ThreadBatch:
    """
    Input handed to every detector on one tick.

    ``complete`` is False when the provider could not describe every thread
    or the thread cap cut the list short; the deadlock analyzer then reports
    nothing rather than reasoning about a partial graph.
    """

    records: Tuple[ThreadStateRecord, ...]
    timestamp: float
    complete: bool = True
    deadlocked_hint: Optional[FrozenSet[int]] = None

    def __len__(self) -> int:
        return len(self.records)


@dataclass
class DetectionReport:
    """Aggregated output of one registry run."""

    records: Tuple[ThreadStateRecord, ...]
    deadlocks: List[DeadlockCycle] = field(default_factory=list)
    async_results: Dict[int, AsyncDetectionResult] = field(default_factory=dict)
    failures: Dict[str, str] = field(default_factory=dict)

    @property
    def has_failures(self) -> bool:
        return bool(self.failures)
