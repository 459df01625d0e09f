"""
Thread state data models.

``RawThreadState`` is what an introspection provider reports for one thread.
``ThreadStateRecord`` is the immutable value the rest of the agent works
with: it is built once per thread per sample and never modified afterwards.
Detectors, the snapshot and listeners may all hold the same record at the
same time, so every change (for example attaching the async classification)
produces a new record via ``dataclasses.replace``.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import FrozenSet, Iterable, Optional, Tuple

# Providers modelled on JVM-style APIs report "no owner" as -1.
NO_OWNER_SENTINEL = -1
CPU_TIME_UNSUPPORTED = -1


class ThreadState(Enum):
    """Observed execution state of a thread."""

    NEW = "NEW"
    RUNNABLE = "RUNNABLE"
    BLOCKED = "BLOCKED"
    WAITING = "WAITING"
    TIMED_WAITING = "TIMED_WAITING"
    TERMINATED = "TERMINATED"


class AsyncThreadType(Enum):
    """Workload category assigned by the async thread classifier."""

    COMPLETABLE_FUTURE = "COMPLETABLE_FUTURE"
    REACTIVE_STREAMS = "REACTIVE_STREAMS"
    THREAD_POOL = "THREAD_POOL"
    WEB_SERVER = "WEB_SERVER"
    SCHEDULED_TASK = "SCHEDULED_TASK"
    OTHER_ASYNC = "OTHER_ASYNC"
    UNKNOWN = "UNKNOWN"


@dataclass(frozen=True, slots=True)
class StackFrame:
    """
    One frame of a thread's stack, innermost frame first.

    Attributes:
        class_name: Declaring class, qualified by module
                    (e.g. "concurrent.futures.thread._WorkItem"). Module-level
                    functions use the module name alone.
        method_name: Function or method name.
        file_name: Source file path.
        line_number: Line currently executing in this frame.
    """

    class_name: str
    method_name: str
    file_name: str = ""
    line_number: int = 0

    def __str__(self) -> str:
        return f"{self.class_name}.{self.method_name}({self.file_name}:{self.line_number})"


@dataclass(frozen=True, slots=True)
class RawThreadState:
    """
    Thread state exactly as reported by an introspection provider.

    Stacks are reported in full; the depth cap is applied when the raw
    state is converted into a ``ThreadStateRecord``.
    """

    thread_id: int
    name: str
    state: ThreadState
    cpu_time_ns: int = CPU_TIME_UNSUPPORTED
    user_time_ns: int = CPU_TIME_UNSUPPORTED
    is_daemon: bool = False
    priority: int = 0
    in_native: bool = False
    suspended: bool = False
    lock_name: Optional[str] = None
    lock_owner_id: Optional[int] = None
    lock_owner_name: Optional[str] = None
    stack_frames: Tuple[StackFrame, ...] = ()
    locked_monitors: FrozenSet[str] = frozenset()
    locked_synchronizers: FrozenSet[str] = frozenset()


def _normalise_owner(owner_id: Optional[int]) -> Optional[int]:
    if owner_id is None or owner_id == NO_OWNER_SENTINEL:
        return None
    return owner_id


@dataclass(frozen=True, slots=True)
class ThreadStateRecord:
    """Immutable snapshot of one thread's state at one sampling instant."""

    thread_id: int
    name: str
    state: ThreadState
    timestamp: float
    cpu_time_ns: int = CPU_TIME_UNSUPPORTED
    user_time_ns: int = CPU_TIME_UNSUPPORTED
    is_daemon: bool = False
    priority: int = 0
    in_native: bool = False
    suspended: bool = False
    lock_name: Optional[str] = None
    lock_owner_id: Optional[int] = None  # None: unowned or unknown
    lock_owner_name: Optional[str] = None
    stack_frames: Tuple[StackFrame, ...] = ()
    stack_truncated: bool = False
    locked_monitors: FrozenSet[str] = frozenset()
    locked_synchronizers: FrozenSet[str] = frozenset()
    is_async_thread: bool = False
    async_thread_type: AsyncThreadType = field(default=AsyncThreadType.UNKNOWN)

    @classmethod
    def from_raw(
        cls,
        raw: RawThreadState,
        max_stack_depth: int,
        timestamp: float,
    ) -> "ThreadStateRecord":
        """
        Build a record from provider output.

        Args:
            raw: Thread state reported by the provider
            max_stack_depth: Maximum number of frames to keep
            timestamp: Sampling instant (epoch seconds)

        Returns:
            A new record with the stack capped and the owner sentinel
            normalised to ``None``.
        """
        frames = tuple(raw.stack_frames)
        truncated = len(frames) > max_stack_depth
        if truncated:
            frames = frames[:max_stack_depth]

        return cls(
            thread_id=raw.thread_id,
            name=raw.name,
            state=raw.state,
            timestamp=timestamp,
            cpu_time_ns=raw.cpu_time_ns,
            user_time_ns=raw.user_time_ns,
            is_daemon=raw.is_daemon,
            priority=raw.priority,
            in_native=raw.in_native,
            suspended=raw.suspended,
            lock_name=raw.lock_name,
            lock_owner_id=_normalise_owner(raw.lock_owner_id),
            lock_owner_name=raw.lock_owner_name,
            stack_frames=frames,
            stack_truncated=truncated,
            locked_monitors=frozenset(raw.locked_monitors),
            locked_synchronizers=frozenset(raw.locked_synchronizers),
        )

    @property
    def owned_locks(self) -> FrozenSet[str]:
        """All locks this thread currently holds."""
        return self.locked_monitors | self.locked_synchronizers

    @property
    def is_waiting_on_lock(self) -> bool:
        return self.lock_name is not None

    def stack_class_names(self) -> Iterable[str]:
        return (frame.class_name for frame in self.stack_frames)

    def with_async_info(self, is_async: bool, async_type: AsyncThreadType) -> "ThreadStateRecord":
        """Return a copy carrying the given async classification."""
        return replace(self, is_async_thread=is_async, async_thread_type=async_type)
