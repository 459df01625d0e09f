"""
Pytest configuration and shared fixtures for the ThreadScope test suite.

This module provides common fixtures, fake collaborators and test utilities
for all test modules in the ThreadScope project.
"""

import shutil
import sys
import tempfile
import threading
import time
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

import pytest

# Add src to Python path for testing
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from threadscope.models import (  # noqa: E402
    DeadlockCycle,
    RawThreadState,
    SnapshotBatch,
    StackFrame,
    ThreadBatch,
    ThreadScopeConfig,
    ThreadState,
    ThreadStateRecord,
)
from threadscope.models.config import (  # noqa: E402
    AlertsConfig,
    SchedulerConfig,
    SnapshotConfig,
)
from threadscope.orchestration import SnapshotListener  # noqa: E402
from threadscope.providers import AbstractIntrospectionProvider  # noqa: E402
from threadscope.validation import ProviderError  # noqa: E402


# ============================================================================
# Test Configuration
# ============================================================================


def pytest_configure(config):
    """Configure pytest with custom markers and settings."""
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line("markers", "integration: mark test as an integration test")
    config.addinivalue_line("markers", "slow: mark test as slow running")


# ============================================================================
# Fake Collaborators
# ============================================================================


class FakeProvider(AbstractIntrospectionProvider):
    """
    Scriptable introspection provider.

    Returns ``states`` on every call, counts calls, and can be told to fail
    or to block for a while to simulate a slow runtime.
    """

    def __init__(self, states: Optional[Sequence[Optional[RawThreadState]]] = None):
        super().__init__(name="fake")
        self.states: List[Optional[RawThreadState]] = list(states or [])
        self.hint = frozenset()
        self.fail_with: Optional[Exception] = None
        self.hint_fails = False
        self.delay = 0.0
        self.calls = 0
        self._lock = threading.Lock()

    def fetch_all(self) -> Sequence[Optional[RawThreadState]]:
        with self._lock:
            self.calls += 1
        if self.delay:
            time.sleep(self.delay)
        if self.fail_with is not None:
            raise self.fail_with
        return list(self.states)

    def supports_cpu_time(self) -> bool:
        return True

    def find_deadlocked_thread_ids(self):
        if self.hint_fails:
            raise ProviderError("hint unavailable", provider_name=self.name)
        return self.hint


class RecordingListener(SnapshotListener):
    """Listener that keeps every event it receives."""

    def __init__(self):
        self.snapshots: List[SnapshotBatch] = []
        self.alerts: List[List[DeadlockCycle]] = []
        self.received = threading.Event()

    def on_snapshot(self, batch: SnapshotBatch) -> None:
        self.snapshots.append(batch)
        self.received.set()

    def on_deadlock_alert(self, cycles: List[DeadlockCycle]) -> None:
        self.alerts.append(cycles)
        self.received.set()


class FailingListener(SnapshotListener):
    """Listener whose callbacks always raise."""

    def on_snapshot(self, batch: SnapshotBatch) -> None:
        raise RuntimeError("listener exploded")

    def on_deadlock_alert(self, cycles: List[DeadlockCycle]) -> None:
        raise RuntimeError("listener exploded")


# ============================================================================
# Test Utilities
# ============================================================================


class TestUtils:
    """Utility functions for building thread states."""

    @staticmethod
    def raw(
        thread_id: int,
        name: Optional[str] = None,
        state: ThreadState = ThreadState.RUNNABLE,
        lock_name: Optional[str] = None,
        lock_owner_id: Optional[int] = None,
        held: Iterable[str] = (),
        frames: Iterable[str] = (),
    ) -> RawThreadState:
        """Create a raw thread state; ``frames`` are class names, innermost first."""
        return RawThreadState(
            thread_id=thread_id,
            name=name or f"thread-{thread_id}",
            state=state,
            lock_name=lock_name,
            lock_owner_id=lock_owner_id,
            stack_frames=tuple(
                StackFrame(class_name=class_name, method_name="run", file_name="x.py", line_number=index + 1)
                for index, class_name in enumerate(frames)
            ),
            locked_synchronizers=frozenset(held),
        )

    @staticmethod
    def record(thread_id: int, **kwargs) -> ThreadStateRecord:
        """Create a thread record with a full-depth stack."""
        return ThreadStateRecord.from_raw(TestUtils.raw(thread_id, **kwargs), 100, 1000.0)

    @staticmethod
    def blocked_pair(first: int, second: int) -> List[RawThreadState]:
        """Two threads each holding the lock the other waits for."""
        return [
            TestUtils.raw(
                first, state=ThreadState.BLOCKED,
                lock_name=f"lock-{second}", lock_owner_id=second, held=[f"lock-{first}"],
            ),
            TestUtils.raw(
                second, state=ThreadState.BLOCKED,
                lock_name=f"lock-{first}", lock_owner_id=first, held=[f"lock-{second}"],
            ),
        ]

    @staticmethod
    def batch(records: Iterable[ThreadStateRecord], complete: bool = True, hint=None) -> ThreadBatch:
        return ThreadBatch(records=tuple(records), timestamp=1000.0, complete=complete, deadlocked_hint=hint)


@pytest.fixture
def test_utils():
    """Provide test utility functions."""
    return TestUtils


# ============================================================================
# Core Fixtures
# ============================================================================


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    temp_path = tempfile.mkdtemp()
    yield Path(temp_path)
    shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def fake_provider():
    """A provider reporting three idle threads."""
    return FakeProvider([
        TestUtils.raw(1, name="MainThread"),
        TestUtils.raw(2, name="pool-1-thread-1", state=ThreadState.WAITING),
        TestUtils.raw(3, name="ThreadScope-Monitor_0"),
    ])


@pytest.fixture
def provider_factory():
    """Build a FakeProvider from a list of raw states."""
    return FakeProvider


@pytest.fixture
def recording_listener():
    return RecordingListener()


@pytest.fixture
def failing_listener():
    return FailingListener()


@pytest.fixture
def fast_config():
    """Configuration with short intervals for orchestrator tests."""
    return ThreadScopeConfig(
        snapshot=SnapshotConfig(interval_seconds=0.05),
        alerts=AlertsConfig(check_interval_seconds=0.05),
        scheduler=SchedulerConfig(shutdown_timeout=1.0),
    )


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def sample_config_data():
    """Sample configuration data for testing."""
    return {
        "enabled": True,
        "snapshot": {"enabled": True, "interval_seconds": 2.5},
        "alerts": {
            "deadlock_detection": True,
            "check_interval_seconds": 1.0,
            "deadlock_confidence_threshold": 0.9,
        },
        "advanced": {
            "include_system_threads": True,
            "max_stack_depth": 32,
            "max_threads_to_monitor": 250,
            "enable_async_detection": False,
            "async_confidence_threshold": 0.6,
        },
        "scheduler": {
            "max_workers": 4,
            "thread_name_prefix": "ThreadScope-Test",
            "shutdown_timeout": 2.0,
        },
        "logging": {"level": "debug", "output": "console"},
    }


@pytest.fixture
def config_files(temp_dir, sample_config_data):
    """Create temporary configuration files for testing."""
    import toml

    config_file = temp_dir / "threadscope.toml"
    with open(config_file, "w") as f:
        toml.dump(sample_config_data, f)

    broken_file = temp_dir / "broken.toml"
    broken_file.write_text("[snapshot\ninterval_seconds = ")

    return {
        "config": config_file,
        "broken": broken_file,
        "dir": temp_dir,
    }
