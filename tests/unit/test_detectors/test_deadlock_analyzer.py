"""
Unit tests for the deadlock analyzer.

Covers wait-for graph construction, cycle reporting, confidence policy and
failure semantics.
"""

import threading
from unittest.mock import patch

import pytest

from threadscope.detectors import DeadlockAnalyzer, build_wait_for_graph, confidence_for_cycle_size
from threadscope.models import ThreadState
from threadscope.validation import ValidationError


def ring(test_utils, ids):
    """Records where each thread waits on a lock held by the next one."""
    records = []
    for index, thread_id in enumerate(ids):
        next_id = ids[(index + 1) % len(ids)]
        records.append(
            test_utils.record(
                thread_id,
                state=ThreadState.BLOCKED,
                lock_name=f"lock-{next_id}",
                lock_owner_id=next_id,
                held=[f"lock-{thread_id}"],
            )
        )
    return records


@pytest.mark.unit
class TestWaitForGraph:
    """Test cases for wait-for graph construction."""

    def test_edge_from_owner_id(self, test_utils):
        """A waiting thread points at the reported lock owner."""
        records = [
            test_utils.record(1, lock_name="L", lock_owner_id=2),
            test_utils.record(2),
        ]

        assert build_wait_for_graph(records) == {1: [2], 2: []}

    def test_edge_from_held_locks(self, test_utils):
        """Without an owner id, the holder is found through held-lock sets."""
        records = [
            test_utils.record(1, lock_name="L"),
            test_utils.record(2, held=["L"]),
        ]

        assert build_wait_for_graph(records)[1] == [2]

    def test_unowned_lock_has_no_edge(self, test_utils):
        """Threads blocked on an unowned lock get no edge."""
        records = [test_utils.record(1, lock_name="L", lock_owner_id=None), test_utils.record(2)]

        assert build_wait_for_graph(records)[1] == []

    def test_hint_adds_edges_between_hinted_waiters(self, test_utils):
        """Only hinted waiters without a resolvable holder get hint edges."""
        records = [
            test_utils.record(1, lock_name="A"),
            test_utils.record(2, lock_name="B"),
            test_utils.record(3, lock_name="C", lock_owner_id=4),
            test_utils.record(4),
            test_utils.record(5, lock_name="D"),
        ]

        graph = build_wait_for_graph(records, frozenset({1, 2, 3, 4}))

        assert graph == {1: [2, 3], 2: [1, 3], 3: [4], 4: [], 5: []}

    def test_terminated_threads_are_ignored(self, test_utils):
        """A terminated record neither waits nor holds."""
        records = [
            test_utils.record(1, lock_name="L", lock_owner_id=2),
            test_utils.record(2, state=ThreadState.TERMINATED, lock_name="M", held=["L"]),
        ]

        graph = build_wait_for_graph(records)

        assert graph == {1: []}


@pytest.mark.unit
class TestDeadlockAnalyzer:
    """Test cases for cycle detection."""

    def test_two_thread_cycle(self, test_utils):
        """The classic ABBA deadlock is reported once with confidence 0.8."""
        analyzer = DeadlockAnalyzer()

        cycles = analyzer.analyze(test_utils.batch(ring(test_utils, [5, 3])))

        assert len(cycles) == 1
        cycle = cycles[0]
        assert cycle.thread_ids == frozenset({3, 5})
        assert cycle.cycle_id == 3
        assert cycle.chain == (3, 5)
        assert cycle.confidence == 0.8
        assert cycle.metadata.detector_name == analyzer.name

    @pytest.mark.parametrize("thread_count", [0, 1, 2, 500])
    def test_no_blocking_relationships(self, test_utils, thread_count):
        """Threads that wait on nothing held by others never form a cycle."""
        states = [ThreadState.RUNNABLE, ThreadState.WAITING, ThreadState.TIMED_WAITING]
        records = [
            test_utils.record(thread_id, state=states[thread_id % 3], held=[f"own-{thread_id}"])
            for thread_id in range(1, thread_count + 1)
        ]

        assert DeadlockAnalyzer().analyze(test_utils.batch(records)) == []

    def test_confidence_table(self):
        """Confidence depends only on cycle size."""
        assert confidence_for_cycle_size(2) == 0.8
        assert confidence_for_cycle_size(3) == 0.9
        assert confidence_for_cycle_size(4) == 1.0
        assert confidence_for_cycle_size(9) == 1.0
        assert confidence_for_cycle_size(1) == 0.5

    def test_larger_cycles_get_higher_confidence(self, test_utils):
        """Three- and four-thread cycles are reported with the table values."""
        analyzer = DeadlockAnalyzer()

        three = analyzer.analyze(test_utils.batch(ring(test_utils, [1, 2, 3])))
        four = analyzer.analyze(test_utils.batch(ring(test_utils, [10, 11, 12, 13])))

        assert [c.confidence for c in three] == [0.9]
        assert [c.confidence for c in four] == [1.0]
        assert four[0].chain == (10, 11, 12, 13)

    def test_self_wait_is_not_reported(self, test_utils):
        """A thread waiting on a lock it holds is never a cycle."""
        record = test_utils.record(1, state=ThreadState.BLOCKED, lock_name="L", lock_owner_id=1, held=["L"])

        assert DeadlockAnalyzer().analyze(test_utils.batch([record])) == []

    def test_terminated_participant_breaks_cycle(self, test_utils):
        """A cycle through a terminated thread is not reported."""
        records = ring(test_utils, [1, 2])
        records[1] = test_utils.record(
            2, state=ThreadState.TERMINATED, lock_name="lock-1", lock_owner_id=1, held=["lock-2"]
        )

        assert DeadlockAnalyzer().analyze(test_utils.batch(records)) == []

    def test_chain_into_cycle_reports_only_the_cycle(self, test_utils):
        """A thread waiting on a deadlocked thread is not part of the cycle."""
        records = ring(test_utils, [2, 3]) + [
            test_utils.record(1, state=ThreadState.BLOCKED, lock_name="lock-2", lock_owner_id=2)
        ]

        cycles = DeadlockAnalyzer().analyze(test_utils.batch(records))

        assert [c.thread_ids for c in cycles] == [frozenset({2, 3})]

    def test_independent_cycles_sorted_by_id(self, test_utils):
        """Disjoint cycles are all reported, ordered by cycle id."""
        records = ring(test_utils, [20, 21]) + ring(test_utils, [4, 9, 6])

        cycles = DeadlockAnalyzer().analyze(test_utils.batch(records))

        assert [c.cycle_id for c in cycles] == [4, 20]

    def test_threshold_drops_small_cycles(self, test_utils):
        """Cycles below the configured threshold are dropped."""
        analyzer = DeadlockAnalyzer(confidence_threshold=0.9)
        records = ring(test_utils, [1, 2]) + ring(test_utils, [5, 6, 7])

        cycles = analyzer.analyze(test_utils.batch(records))

        assert [c.size for c in cycles] == [3]

    def test_hint_supplies_unresolved_owners(self, test_utils):
        """Hinted threads blocked on locks with unknown owners form a cycle."""
        records = [
            test_utils.record(1, state=ThreadState.BLOCKED, lock_name="A"),
            test_utils.record(2, state=ThreadState.BLOCKED, lock_name="B"),
            test_utils.record(3, state=ThreadState.BLOCKED, lock_name="C"),
        ]
        analyzer = DeadlockAnalyzer()

        assert analyzer.analyze(test_utils.batch(records)) == []
        cycles = analyzer.analyze(test_utils.batch(records, hint=frozenset({1, 2})))

        assert [c.thread_ids for c in cycles] == [frozenset({1, 2})]
        assert cycles[0].confidence == 0.8

    def test_hint_keeps_resolved_cycles(self, test_utils):
        """With every owner resolvable, a hint only changes the walk order."""
        records = ring(test_utils, [8, 2]) + ring(test_utils, [5, 6, 7])
        analyzer = DeadlockAnalyzer()

        without_hint = analyzer.analyze(test_utils.batch(records))
        with_hint = analyzer.analyze(test_utils.batch(records, hint=frozenset({7, 8, 99})))

        assert without_hint == with_hint

    def test_partial_batch_reports_nothing(self, test_utils):
        """An incomplete dump degrades to no cycles."""
        batch = test_utils.batch(ring(test_utils, [1, 2]), complete=False)

        assert DeadlockAnalyzer().analyze(batch) == []

    def test_disabled_analyzer_reports_nothing(self, test_utils):
        """A disabled analyzer returns an empty list."""
        analyzer = DeadlockAnalyzer(enabled=False)

        assert analyzer.detect(test_utils.batch(ring(test_utils, [1, 2]))) == []

    def test_internal_error_is_logged_not_raised(self, test_utils, caplog):
        """An exception inside the analysis yields an empty result."""
        analyzer = DeadlockAnalyzer()

        with patch("threadscope.detectors.deadlock.build_wait_for_graph", side_effect=KeyError("boom")):
            cycles = analyzer.analyze(test_utils.batch(ring(test_utils, [1, 2])))

        assert cycles == []
        assert "deadlock analysis" in caplog.text

    def test_invalid_threshold_rejected(self):
        """Thresholds outside [0, 1] raise ValidationError."""
        with pytest.raises(ValidationError):
            DeadlockAnalyzer(confidence_threshold=1.5)

    def test_concurrent_calls_are_independent(self, test_utils):
        """The analyzer keeps no state between or across calls."""
        analyzer = DeadlockAnalyzer()
        batch = test_utils.batch(ring(test_utils, [1, 2, 3]))
        results = []

        def run():
            for _ in range(50):
                results.append(analyzer.analyze(batch))

        workers = [threading.Thread(target=run) for _ in range(4)]
        for worker in workers:
            worker.start()
        for worker in workers:
            worker.join()

        assert len(results) == 200
        assert all(result == results[0] for result in results)
        assert len(results[0]) == 1
