"""
Defines the abstract interface for thread introspection providers.

A provider is the only component that talks to the runtime: it reports the
state of every live thread as ``RawThreadState`` values. Everything the
monitor does afterwards (filtering, conversion, detection) works on those
values alone.
"""

import logging
from abc import ABC, abstractmethod
from typing import FrozenSet, Iterable, Optional, Sequence

from ..models.thread_state import RawThreadState

logger = logging.getLogger(__name__)


class AbstractIntrospectionProvider(ABC):
    """
    Abstract base class for introspection providers.

    Implementations must be safe to call from several monitor workers at
    once: the sampling tick and the alert tick may overlap.
    """

    def __init__(self, name: Optional[str] = None):
        """
        Initializes the provider.

        Args:
            name: Human-readable provider name used in log messages
                  (defaults to the class name).
        """
        self.name = name or self.__class__.__name__
        logger.debug(f"Initializing introspection provider {self.name}")

    @abstractmethod
    def fetch_all(self) -> Sequence[Optional[RawThreadState]]:
        """
        Reports the state of every live thread.

        Returns:
            One entry per thread, with full stacks and lock information.
            An entry is ``None`` when that thread's state could not be read,
            which makes the sample partial.

        Raises:
            ProviderError: If the thread list cannot be obtained at all.
        """
        pass

    def fetch_ids(self, thread_ids: Iterable[int]) -> Sequence[Optional[RawThreadState]]:
        """
        Reports the state of specific threads, in the order requested.

        Threads that no longer exist are reported as ``None``. The default
        implementation filters the output of ``fetch_all``.
        """
        by_id = {raw.thread_id: raw for raw in self.fetch_all() if raw is not None}
        return [by_id.get(thread_id) for thread_id in thread_ids]

    def supports_cpu_time(self) -> bool:
        """Whether ``cpu_time_ns`` values reported by this provider are meaningful."""
        return False

    def find_deadlocked_thread_ids(self) -> FrozenSet[int]:
        """
        Returns thread ids the runtime itself believes are deadlocked.

        This is only a hint used to order the deadlock analysis. Providers
        without such a facility return an empty set.
        """
        return frozenset()
