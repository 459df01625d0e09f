"""
Background task execution for the threadscope monitor.

Provides the managed worker pool that runs the periodic sampling and
deadlock alert tasks as well as on-demand snapshot requests.
"""

from .thread_pool import ManagedThreadPoolExecutor, ThreadPoolConfig

__all__ = [
    "ManagedThreadPoolExecutor",
    "ThreadPoolConfig",
]
