"""
Introspection provider for the running CPython interpreter.

Threads are listed with ``threading.enumerate()`` and their stacks read from
``sys._current_frames()``. Lock waits and ownership come from an optional
``LockTracker``; per-thread CPU times come from psutil.
"""

import logging
import sys
import threading
import traceback
from types import FrameType
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Sequence, Tuple

import psutil

from ..models.thread_state import (
    CPU_TIME_UNSUPPORTED,
    RawThreadState,
    StackFrame,
    ThreadState,
)
from ..validation import ProviderError
from .base import AbstractIntrospectionProvider
from .lock_tracking import LockTracker

logger = logging.getLogger(__name__)

_NS_PER_SECOND = 1_000_000_000

# Functions in the threading module that park the calling thread.
_THREADING_WAIT_FUNCTIONS = {"wait", "join", "_wait_for_tstate_lock"}

# (user_ns, total_ns) per native thread id.
CpuTimes = Dict[int, Tuple[int, int]]


def frame_class_name(frame: FrameType) -> str:
    """
    Returns the module-qualified class name of a frame's function.

    ``pkg.mod.Outer.method`` gives ``pkg.mod.Outer``; a module-level
    function gives ``pkg.mod``; nested-function markers are dropped.
    """
    module = frame.f_globals.get("__name__", "") or ""
    qualname = getattr(frame.f_code, "co_qualname", frame.f_code.co_name)
    owner_parts = [part for part in qualname.split(".")[:-1] if part != "<locals>"]
    if owner_parts:
        owner = ".".join(owner_parts)
        return f"{module}.{owner}" if module else owner
    return module


def build_stack(frame: Optional[FrameType]) -> Tuple[StackFrame, ...]:
    """Converts a live frame chain into stack frames, innermost first."""
    if frame is None:
        return ()
    return tuple(
        StackFrame(
            class_name=frame_class_name(f),
            method_name=f.f_code.co_name,
            file_name=f.f_code.co_filename,
            line_number=lineno or 0,
        )
        for f, lineno in traceback.walk_stack(frame)
    )


class PythonRuntimeProvider(AbstractIntrospectionProvider):
    """
    Reports the threads of the current interpreter.

    Thread ids are ``threading.get_ident()`` values, which is also what
    ``LockTracker`` records, so lock owners line up with thread ids.
    """

    def __init__(
        self,
        lock_tracker: Optional[LockTracker] = None,
        process: Optional[psutil.Process] = None,
        name: Optional[str] = None,
    ):
        """
        Args:
            lock_tracker: Tracker shared with the application's ``TrackedLock``
                          objects; without one, no thread is reported BLOCKED.
            process: psutil handle for CPU times (defaults to this process).
            name: Provider name used in log messages.
        """
        super().__init__(name=name)
        self.lock_tracker = lock_tracker
        self._process = process
        self._cpu_time_supported: Optional[bool] = None
        self._support_lock = threading.Lock()

    def _get_process(self) -> psutil.Process:
        if self._process is None:
            self._process = psutil.Process()
        return self._process

    def supports_cpu_time(self) -> bool:
        with self._support_lock:
            if self._cpu_time_supported is None:
                try:
                    self._get_process().threads()
                    self._cpu_time_supported = True
                except (psutil.Error, NotImplementedError, OSError) as e:
                    logger.info(f"Per-thread CPU time unavailable: {e}")
                    self._cpu_time_supported = False
            return self._cpu_time_supported

    def _read_cpu_times(self) -> CpuTimes:
        if not self.supports_cpu_time():
            return {}
        try:
            return {
                pthread.id: (
                    int(pthread.user_time * _NS_PER_SECOND),
                    int((pthread.user_time + pthread.system_time) * _NS_PER_SECOND),
                )
                for pthread in self._get_process().threads()
            }
        except (psutil.Error, OSError) as e:
            logger.debug(f"Could not read thread CPU times: {e}")
            return {}

    def fetch_all(self) -> Sequence[Optional[RawThreadState]]:
        return self._describe_threads(None)

    def fetch_ids(self, thread_ids: Iterable[int]) -> Sequence[Optional[RawThreadState]]:
        wanted = list(thread_ids)
        by_id = {
            raw.thread_id: raw
            for raw in self._describe_threads(set(wanted))
            if raw is not None
        }
        return [by_id.get(thread_id) for thread_id in wanted]

    def find_deadlocked_thread_ids(self) -> FrozenSet[int]:
        if self.lock_tracker is None:
            return frozenset()
        return self.lock_tracker.find_deadlocked_thread_ids()

    def _describe_threads(self, only_ids: Optional[set]) -> List[Optional[RawThreadState]]:
        try:
            threads = threading.enumerate()
            frames = sys._current_frames()
        except Exception as e:
            raise ProviderError(f"Unable to enumerate threads: {e}", provider_name=self.name) from e

        # Threads that have not been started yet have no id to report.
        threads = [thread for thread in threads if thread.ident is not None]
        names_by_id = {thread.ident: thread.name for thread in threads}
        if only_ids is not None:
            threads = [thread for thread in threads if thread.ident in only_ids]

        cpu_times = self._read_cpu_times()

        results: List[Optional[RawThreadState]] = []
        for thread in threads:
            try:
                results.append(self._describe(thread, frames, cpu_times, names_by_id))
            except Exception as e:
                # One unreadable thread makes the sample partial, not failed.
                logger.debug(f"Could not describe thread {thread.name!r}: {e}")
                results.append(None)
        return results

    def _describe(
        self,
        thread: threading.Thread,
        frames: Mapping[int, FrameType],
        cpu_times: CpuTimes,
        names_by_id: Mapping[int, str],
    ) -> Optional[RawThreadState]:
        ident = thread.ident
        user_ns, cpu_ns = cpu_times.get(
            getattr(thread, "native_id", None), (CPU_TIME_UNSUPPORTED, CPU_TIME_UNSUPPORTED)
        )

        if not thread.is_alive():
            return RawThreadState(
                thread_id=ident,
                name=thread.name,
                state=ThreadState.TERMINATED,
                cpu_time_ns=cpu_ns,
                user_time_ns=user_ns,
                is_daemon=thread.daemon,
            )

        frame = frames.get(ident)
        if frame is None:
            return None

        state, lock_name, owner_id = self._derive_state(ident, frame)
        held = self.lock_tracker.locks_held_by(ident) if self.lock_tracker else frozenset()

        return RawThreadState(
            thread_id=ident,
            name=thread.name,
            state=state,
            cpu_time_ns=cpu_ns,
            user_time_ns=user_ns,
            is_daemon=thread.daemon,
            lock_name=lock_name,
            lock_owner_id=owner_id,
            lock_owner_name=names_by_id.get(owner_id) if owner_id is not None else None,
            stack_frames=build_stack(frame),
            locked_synchronizers=held,
        )

    def _derive_state(
        self, ident: int, frame: FrameType
    ) -> Tuple[ThreadState, Optional[str], Optional[int]]:
        """
        Derives the thread state from tracked locks and the innermost frame.

        Returns:
            ``(state, lock_name, lock_owner_id)``
        """
        if self.lock_tracker is not None:
            waiting = self.lock_tracker.waiting_on(ident)
            if waiting is not None:
                lock_name, owner_id = waiting
                return ThreadState.BLOCKED, lock_name, owner_id

        if (
            frame.f_globals.get("__name__") == "threading"
            and frame.f_code.co_name in _THREADING_WAIT_FUNCTIONS
        ):
            timeout = frame.f_locals.get("timeout")
            if isinstance(timeout, (int, float)) and timeout >= 0:
                return ThreadState.TIMED_WAITING, None, None
            return ThreadState.WAITING, None, None

        return ThreadState.RUNNABLE, None, None
