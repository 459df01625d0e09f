"""
Deadlock detection over a batch of thread records.

The analyzer builds a wait-for graph (an edge T1 -> T2 means T1 is blocked on
a lock that T2 holds) and reports every cycle in it. It looks only at the
records it is given: no live lookups, no state kept between calls.
"""

import logging
from typing import Dict, FrozenSet, Iterable, List, Optional, Set

from ..models.detection import DeadlockCycle, ThreadBatch
from ..models.thread_state import ThreadState, ThreadStateRecord
from ..validation import ErrorSeverity, handle_error
from .base import ThreadDetector

logger = logging.getLogger(__name__)

DEFAULT_DEADLOCK_THRESHOLD = 0.8

WaitForGraph = Dict[int, List[int]]


def confidence_for_cycle_size(size: int) -> float:
    """
    Heuristic confidence for a cycle of ``size`` threads.

    Longer cycles are less likely to be a sampling artefact.
    """
    if size >= 4:
        return 1.0
    if size == 3:
        return 0.9
    if size == 2:
        return 0.8
    return 0.5


def build_wait_for_graph(
    records: Iterable[ThreadStateRecord],
    deadlocked_hint: Optional[FrozenSet[int]] = None,
) -> WaitForGraph:
    """
    Build the wait-for graph of a set of records.

    A thread T1 gets an edge to T2 when T1 waits on a lock and T2 holds it,
    either as the reported ``lock_owner_id`` or because the lock appears in
    T2's held-lock sets. TERMINATED threads neither wait nor hold locks.

    When the provider has already identified a set of deadlocked threads, a
    hinted thread that waits on a lock whose holder cannot be resolved gets
    an edge to every other hinted thread that is waiting too.

    Returns:
        Adjacency lists keyed by thread id; every live thread is a key.
    """
    live = [record for record in records if record.state is not ThreadState.TERMINATED]
    live_ids = {record.thread_id for record in live}

    holders: Dict[str, Set[int]] = {}
    for record in live:
        for lock_name in record.owned_locks:
            holders.setdefault(lock_name, set()).add(record.thread_id)

    hinted_waiters: Set[int] = set()
    if deadlocked_hint:
        hinted_waiters = {
            record.thread_id
            for record in live
            if record.thread_id in deadlocked_hint and record.lock_name is not None
        }

    graph: WaitForGraph = {}
    for record in live:
        targets: Set[int] = set()
        if record.lock_name is not None:
            owner = record.lock_owner_id
            if owner is not None and owner in live_ids:
                targets.add(owner)
            targets.update(holders.get(record.lock_name, ()))
            targets.discard(record.thread_id)
            if not targets and record.thread_id in hinted_waiters:
                targets = hinted_waiters - {record.thread_id}
        graph[record.thread_id] = sorted(targets)
    return graph


class DeadlockAnalyzer(ThreadDetector):
    """
    Finds circular lock waits among the threads of one batch.

    Partial batches are never analyzed: a missing thread could hide or fake
    a cycle. Internal errors are logged and produce an empty result.
    """

    name = "deadlock-analyzer"
    version = "1.0.0"
    description = "Wait-for graph cycle detection"

    def __init__(self, enabled: bool = True, confidence_threshold: float = DEFAULT_DEADLOCK_THRESHOLD):
        super().__init__(enabled=enabled, confidence_threshold=confidence_threshold)

    def detect(self, batch: ThreadBatch) -> List[DeadlockCycle]:
        return self.analyze(batch)

    def analyze(self, batch: ThreadBatch) -> List[DeadlockCycle]:
        """
        Returns the deadlock cycles in ``batch``, sorted by ``cycle_id``.

        Returns an empty list when disabled, when the batch is partial or
        when the analysis fails.
        """
        if not self.enabled:
            return []
        if not batch.complete:
            logger.debug(f"Skipping deadlock analysis of partial batch ({len(batch)} threads)")
            return []

        try:
            return self._find_cycles(batch.records, batch.deadlocked_hint)
        except Exception as e:
            handle_error(
                error=e,
                context="deadlock analysis",
                severity=ErrorSeverity.ERROR,
                reraise=False,
                logger=logger
            )
            return []

    def _walk_order(self, graph: WaitForGraph, hint: Optional[FrozenSet[int]]) -> List[int]:
        """Hinted threads first, then the rest; each group in id order."""
        if not hint:
            return sorted(graph)
        seeded = sorted(thread_id for thread_id in hint if thread_id in graph)
        seeded_set = set(seeded)
        return seeded + sorted(thread_id for thread_id in graph if thread_id not in seeded_set)

    def _find_cycles(
        self,
        records: Iterable[ThreadStateRecord],
        hint: Optional[FrozenSet[int]],
    ) -> List[DeadlockCycle]:
        graph = build_wait_for_graph(records, hint)

        finished: Set[int] = set()
        seen: Set[FrozenSet[int]] = set()
        cycles: List[DeadlockCycle] = []

        for start in self._walk_order(graph, hint):
            if start in finished:
                continue

            path: List[int] = [start]
            on_path: Dict[int, int] = {start: 0}
            stack = [iter(graph[start])]

            while stack:
                next_id = next(stack[-1], None)
                if next_id is None:
                    stack.pop()
                    done = path.pop()
                    del on_path[done]
                    finished.add(done)
                    continue

                if next_id in on_path:
                    cycle = self._make_cycle(path[on_path[next_id]:], seen)
                    if cycle is not None:
                        cycles.append(cycle)
                elif next_id not in finished:
                    on_path[next_id] = len(path)
                    path.append(next_id)
                    stack.append(iter(graph.get(next_id, ())))

        cycles.sort(key=lambda cycle: cycle.cycle_id)
        if cycles:
            logger.debug(f"Found {len(cycles)} deadlock cycle(s)")
        return cycles

    def _make_cycle(self, members: List[int], seen: Set[FrozenSet[int]]) -> Optional[DeadlockCycle]:
        if len(members) < 2:
            return None
        thread_ids = frozenset(members)
        if thread_ids in seen:
            return None
        seen.add(thread_ids)

        confidence = confidence_for_cycle_size(len(thread_ids))
        if not self.is_valid_confidence(confidence):
            logger.debug(
                f"Dropping {len(thread_ids)}-thread cycle below threshold "
                f"({confidence} < {self.confidence_threshold})"
            )
            return None

        start = members.index(min(members))
        chain = tuple(members[start:] + members[:start])
        return DeadlockCycle(
            cycle_id=chain[0],
            thread_ids=thread_ids,
            chain=chain,
            confidence=confidence,
            metadata=self.create_metadata(
                f"{len(chain)} threads waiting in a cycle: "
                + " -> ".join(str(tid) for tid in chain + (chain[0],))
            ),
        )
