"""
Unit tests for tracked locks and the lock tracker.
"""

import threading
import time

import pytest

from threadscope.providers import LockTracker, TrackedLock


@pytest.fixture
def tracker():
    return LockTracker()


def wait_until(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return False


@pytest.mark.unit
class TestTrackedLock:
    """Test cases for lock ownership bookkeeping."""

    def test_acquire_release_records_owner(self, tracker):
        """The owner and held set follow acquire and release."""
        lock = tracker.create_lock("orders")
        me = threading.get_ident()

        assert lock.acquire() is True
        assert lock.locked()
        assert tracker.owner_of(lock.name) == me
        assert tracker.locks_held_by(me) == frozenset({lock.name})

        lock.release()
        assert not lock.locked()
        assert tracker.owner_of(lock.name) is None
        assert tracker.locks_held_by(me) == frozenset()

    def test_lock_names_are_unique(self, tracker):
        """Locks with the same label still get distinct names."""
        first = tracker.create_lock("db")
        second = tracker.create_lock("db")

        assert first.name != second.name
        assert first.name.startswith("db@0x")

    def test_non_blocking_acquire(self, tracker):
        """A non-blocking acquire of a held lock fails without waiting."""
        lock = tracker.create_lock()
        holder_ready = threading.Event()
        done = threading.Event()

        def hold():
            with lock:
                holder_ready.set()
                done.wait(2.0)

        thread = threading.Thread(target=hold)
        thread.start()
        holder_ready.wait(2.0)
        try:
            assert lock.acquire(blocking=False) is False
            assert tracker.waiting_on(threading.get_ident()) is None
        finally:
            done.set()
            thread.join(2.0)

    def test_timeout_clears_waiting_state(self, tracker):
        """A timed-out acquire leaves no waiting entry behind."""
        lock = tracker.create_lock()
        lock.acquire()
        result = []

        thread = threading.Thread(target=lambda: result.append(lock.acquire(timeout=0.05)))
        thread.start()
        thread.join(2.0)
        lock.release()

        assert result == [False]
        assert tracker.waiting_on(thread.ident) is None

    def test_waiting_on_reports_lock_and_owner(self, tracker):
        """A blocked thread is reported as waiting on the lock with its owner."""
        lock = tracker.create_lock("shared")
        lock.acquire()
        thread = threading.Thread(target=lambda: (lock.acquire(timeout=2.0), lock.release()))
        thread.start()
        try:
            assert wait_until(lambda: tracker.waiting_on(thread.ident) is not None)
            assert tracker.waiting_on(thread.ident) == (lock.name, threading.get_ident())
        finally:
            lock.release()
            thread.join(2.0)

    def test_reentrant_lock(self, tracker):
        """A reentrant lock keeps its owner until the last release."""
        lock = tracker.create_lock("re", reentrant=True)

        with lock:
            with lock:
                assert tracker.hold_count(lock.name) == 2
            assert lock.locked()
            assert tracker.hold_count(lock.name) == 1

        assert not lock.locked()
        assert tracker.owner_of(lock.name) is None

    def test_release_unlocked_raises(self, tracker):
        """Releasing an unheld lock raises RuntimeError like the stdlib."""
        with pytest.raises(RuntimeError):
            tracker.create_lock().release()
        with pytest.raises(RuntimeError):
            tracker.create_lock(reentrant=True).release()

    def test_repr(self, tracker):
        lock = TrackedLock(tracker, label="cache")

        assert "unlocked" in repr(lock)


@pytest.mark.unit
class TestDeadlockedThreadIds:
    """Test cases for the tracker's own cycle search."""

    def test_no_waiters(self, tracker):
        assert tracker.find_deadlocked_thread_ids() == frozenset()

    def test_cycle_found_from_bookkeeping(self, tracker):
        """A wait cycle recorded in the tracker is reported."""
        tracker._acquired("A", 1)
        tracker._acquired("B", 2)
        tracker._acquired("C", 3)
        tracker._begin_wait("B", 1)
        tracker._begin_wait("A", 2)
        tracker._begin_wait("A", 3)

        assert tracker.find_deadlocked_thread_ids() == frozenset({1, 2})

    def test_self_wait_is_not_deadlock(self, tracker):
        """Waiting on a lock one holds is not reported."""
        tracker._acquired("A", 1)
        tracker._begin_wait("A", 1)

        assert tracker.find_deadlocked_thread_ids() == frozenset()
