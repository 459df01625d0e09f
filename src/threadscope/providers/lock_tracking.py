"""
Lock ownership tracking for the CPython provider.

CPython does not record which thread owns a ``threading.Lock`` or which lock
a blocked thread is waiting for. ``TrackedLock`` is a drop-in replacement for
``threading.Lock``/``threading.RLock`` that reports both to a shared
``LockTracker``, which the provider then reads to fill in ``lock_name``,
``lock_owner_id`` and the held-lock sets of each thread.

Tracker bookkeeping happens under a private plain lock that is never held
while a thread blocks on a tracked lock, so tracking cannot itself deadlock.
"""

import logging
import threading
from typing import Dict, FrozenSet, List, Optional, Set, Tuple

logger = logging.getLogger(__name__)


class LockTracker:
    """
    Records owner, hold count and waiters for every ``TrackedLock``.

    One tracker is normally shared by all tracked locks of a process and
    handed to ``PythonRuntimeProvider``.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._owners: Dict[str, int] = {}
        self._hold_counts: Dict[str, int] = {}
        self._held_by: Dict[int, Set[str]] = {}
        self._waiting: Dict[int, str] = {}

    def create_lock(self, label: str = "lock", reentrant: bool = False) -> "TrackedLock":
        """Create a lock that reports to this tracker."""
        return TrackedLock(self, label=label, reentrant=reentrant)

    # --- bookkeeping called by TrackedLock ---

    def _begin_wait(self, lock_name: str, thread_id: int) -> None:
        with self._lock:
            self._waiting[thread_id] = lock_name

    def _end_wait(self, thread_id: int) -> None:
        with self._lock:
            self._waiting.pop(thread_id, None)

    def _acquired(self, lock_name: str, thread_id: int) -> None:
        with self._lock:
            self._owners[lock_name] = thread_id
            self._hold_counts[lock_name] = self._hold_counts.get(lock_name, 0) + 1
            self._held_by.setdefault(thread_id, set()).add(lock_name)

    def _released(self, lock_name: str) -> int:
        """Record one release; returns the remaining hold count."""
        with self._lock:
            remaining = self._hold_counts.get(lock_name, 0) - 1
            if remaining > 0:
                self._hold_counts[lock_name] = remaining
                return remaining

            self._hold_counts.pop(lock_name, None)
            owner = self._owners.pop(lock_name, None)
            if owner is not None:
                held = self._held_by.get(owner)
                if held is not None:
                    held.discard(lock_name)
                    if not held:
                        del self._held_by[owner]
            return 0

    # --- queries used by the provider ---

    def owner_of(self, lock_name: str) -> Optional[int]:
        with self._lock:
            return self._owners.get(lock_name)

    def hold_count(self, lock_name: str) -> int:
        with self._lock:
            return self._hold_counts.get(lock_name, 0)

    def waiting_on(self, thread_id: int) -> Optional[Tuple[str, Optional[int]]]:
        """
        Returns the lock a thread is blocked on and its current owner.

        Returns:
            ``(lock_name, owner_id)`` with ``owner_id`` None when the lock is
            momentarily unowned, or None when the thread is not waiting.
        """
        with self._lock:
            lock_name = self._waiting.get(thread_id)
            if lock_name is None:
                return None
            return lock_name, self._owners.get(lock_name)

    def locks_held_by(self, thread_id: int) -> FrozenSet[str]:
        with self._lock:
            return frozenset(self._held_by.get(thread_id, ()))

    def find_deadlocked_thread_ids(self) -> FrozenSet[int]:
        """
        Returns every thread on a wait-for cycle among tracked locks.

        Follows each waiting thread to the owner of the lock it waits for,
        and so on, until the chain ends or revisits a thread on the chain.
        """
        with self._lock:
            next_hop: Dict[int, int] = {}
            for thread_id, lock_name in self._waiting.items():
                owner = self._owners.get(lock_name)
                if owner is not None and owner != thread_id:
                    next_hop[thread_id] = owner

        deadlocked: Set[int] = set()
        finished: Set[int] = set()
        for start in next_hop:
            if start in finished:
                continue
            chain: List[int] = []
            position: Dict[int, int] = {}
            current: Optional[int] = start
            while current is not None and current not in finished:
                if current in position:
                    deadlocked.update(chain[position[current]:])
                    break
                position[current] = len(chain)
                chain.append(current)
                current = next_hop.get(current)
            finished.update(chain)

        return frozenset(deadlocked)


class TrackedLock:
    """
    A ``threading.Lock`` (or ``RLock`` when ``reentrant``) that reports its
    ownership and waiters to a ``LockTracker``.

    Supports ``acquire(blocking=True, timeout=-1)``, ``release()``,
    ``locked()`` and use as a context manager, like the standard locks.
    """

    def __init__(self, tracker: LockTracker, label: str = "lock", reentrant: bool = False):
        self._tracker = tracker
        self._reentrant = reentrant
        self._inner = threading.RLock() if reentrant else threading.Lock()
        self.name = f"{label}@{id(self):#x}"

    @property
    def reentrant(self) -> bool:
        return self._reentrant

    def acquire(self, blocking: bool = True, timeout: float = -1) -> bool:
        thread_id = threading.get_ident()

        if self._inner.acquire(blocking=False):
            self._tracker._acquired(self.name, thread_id)
            return True
        if not blocking:
            return False

        self._tracker._begin_wait(self.name, thread_id)
        try:
            acquired = self._inner.acquire(True, timeout)
        finally:
            self._tracker._end_wait(thread_id)

        if acquired:
            self._tracker._acquired(self.name, thread_id)
        return acquired

    def release(self) -> None:
        if self._reentrant:
            if self._tracker.owner_of(self.name) != threading.get_ident():
                raise RuntimeError("cannot release un-acquired lock")
        elif not self._inner.locked():
            raise RuntimeError("release unlocked lock")

        self._tracker._released(self.name)
        self._inner.release()

    def locked(self) -> bool:
        if self._reentrant:
            return self._tracker.owner_of(self.name) is not None
        return self._inner.locked()

    def __enter__(self) -> bool:
        return self.acquire()

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.release()

    def __repr__(self) -> str:
        owner = self._tracker.owner_of(self.name)
        status = f"owner={owner}" if owner is not None else "unlocked"
        return f"<TrackedLock {self.name} {status}>"
