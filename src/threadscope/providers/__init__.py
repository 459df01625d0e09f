"""
Thread introspection providers.

The abstract provider interface plus the CPython implementation and the
lock tracking it relies on to report lock waits and ownership.
"""

from .base import AbstractIntrospectionProvider
from .lock_tracking import LockTracker, TrackedLock
from .python_runtime import PythonRuntimeProvider, build_stack, frame_class_name

__all__ = [
    "AbstractIntrospectionProvider",
    "LockTracker",
    "PythonRuntimeProvider",
    "TrackedLock",
    "build_stack",
    "frame_class_name",
]
