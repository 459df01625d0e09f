"""
ThreadScope: in-process thread monitoring and deadlock detection.

This package samples the threads of the running interpreter, classifies
async workloads, detects lock-ordering deadlocks and publishes immutable
snapshots to listeners.

The package is organized into specialized modules:
- config: Configuration loading (defaults, TOML file, environment)
- models: Data structures and type definitions
- validation: Input validation and error handling
- providers: Thread introspection (CPython provider, lock tracking)
- detectors: Deadlock analyzer, async classifier and detector registry
- executor: Background worker pool
- orchestration: Monitor lifecycle, sampling and alert cadence, listeners

Usage:
    from threadscope import ThreadScopeService, ThreadScopeConfig

    with ThreadScopeService(ThreadScopeConfig.for_development()) as service:
        snapshot = service.capture_snapshot()
"""

# Main interfaces
from .config import load_config
from .logging_setup import configure_logging
from .orchestration import LoggingListener, MonitorState, SnapshotListener, ThreadMonitor
from .service import ThreadScopeService

# Model classes for external use
from .models import (
    AsyncDetectionResult,
    AsyncThreadType,
    DeadlockCycle,
    SnapshotBatch,
    ThreadScopeConfig,
    ThreadState,
    ThreadStateRecord,
)

# Providers and detectors
from .providers import AbstractIntrospectionProvider, LockTracker, PythonRuntimeProvider, TrackedLock
from .detectors import AsyncThreadClassifier, DeadlockAnalyzer, DetectorRegistry, ThreadDetector

# Validation utilities
from .validation import ProviderError, ValidationError

__version__ = "1.0.0"

__all__ = [
    # Main interfaces
    "ThreadScopeService",
    "ThreadMonitor",
    "MonitorState",
    "SnapshotListener",
    "LoggingListener",
    "load_config",
    "configure_logging",
    # Models
    "AsyncDetectionResult",
    "AsyncThreadType",
    "DeadlockCycle",
    "SnapshotBatch",
    "ThreadScopeConfig",
    "ThreadState",
    "ThreadStateRecord",
    # Providers
    "AbstractIntrospectionProvider",
    "LockTracker",
    "PythonRuntimeProvider",
    "TrackedLock",
    # Detectors
    "AsyncThreadClassifier",
    "DeadlockAnalyzer",
    "DetectorRegistry",
    "ThreadDetector",
    # Validation
    "ProviderError",
    "ValidationError",
]
