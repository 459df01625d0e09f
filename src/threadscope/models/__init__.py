"""
Data models and structures for the thread monitoring agent.

Thread State Models:
- Raw provider output and the immutable per-thread record
- Thread execution states and async workload categories

Detection Models:
- Deadlock cycles and async classification results
- Detector input batches and aggregated registry reports

Snapshot Models:
- The immutable result of one sampling tick

Configuration Models:
- Immutable settings passed to the monitor at construction
"""

# Thread state models
from .thread_state import (
    AsyncThreadType,
    RawThreadState,
    StackFrame,
    ThreadState,
    ThreadStateRecord,
)

# Detection models
from .detection import (
    AsyncDetectionResult,
    DeadlockCycle,
    DetectionKind,
    DetectionMetadata,
    DetectionReport,
    DetectionResult,
    ThreadBatch,
)

# Snapshot models
from .snapshot import SnapshotBatch

# Configuration models
from .config import (
    AdvancedConfig,
    AlertsConfig,
    LoggingConfig,
    SchedulerConfig,
    SnapshotConfig,
    ThreadScopeConfig,
)

__all__ = [
    # Thread state
    "AsyncThreadType",
    "RawThreadState",
    "StackFrame",
    "ThreadState",
    "ThreadStateRecord",
    # Detection
    "AsyncDetectionResult",
    "DeadlockCycle",
    "DetectionKind",
    "DetectionMetadata",
    "DetectionReport",
    "DetectionResult",
    "ThreadBatch",
    # Snapshot
    "SnapshotBatch",
    # Configuration
    "AdvancedConfig",
    "AlertsConfig",
    "LoggingConfig",
    "SchedulerConfig",
    "SnapshotConfig",
    "ThreadScopeConfig",
]
