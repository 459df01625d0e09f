"""
Configuration data models.

This module contains the immutable configuration structures consumed by the
monitor. A configuration object is built once (from defaults, a TOML file and
the environment) and passed to the monitor at construction; it is never
mutated afterwards.
"""

from dataclasses import dataclass, field, replace


@dataclass(frozen=True)
class SnapshotConfig:
    """
    Periodic sampling settings, loaded from the `[snapshot]` section.
    """

    # Whether the periodic sampling task is scheduled at all.
    enabled: bool = True
    # Seconds between two sampling ticks.
    interval_seconds: float = 10.0


@dataclass(frozen=True)
class AlertsConfig:
    """
    Deadlock alerting settings, loaded from the `[alerts]` section.
    """

    # Whether the deadlock analyzer and the alert task are active.
    deadlock_detection: bool = True
    # Seconds between two alert ticks.
    check_interval_seconds: float = 5.0
    # Cycles with a lower confidence are dropped.
    deadlock_confidence_threshold: float = 0.8


@dataclass(frozen=True)
class AdvancedConfig:
    """
    Sampling limits and async detection, loaded from the `[advanced]` section.
    """

    # Include the agent's own and debugger helper threads in snapshots.
    include_system_threads: bool = False
    # Maximum number of stack frames kept per thread.
    max_stack_depth: int = 20
    # Maximum number of threads kept per snapshot.
    max_threads_to_monitor: int = 1000
    # Whether the async thread classifier is registered.
    enable_async_detection: bool = True
    # Threads scoring below this are not considered async.
    async_confidence_threshold: float = 0.5


@dataclass(frozen=True)
class SchedulerConfig:
    """
    Worker pool settings, loaded from the `[scheduler]` section.
    """

    max_workers: int = 3
    thread_name_prefix: str = "ThreadScope-Monitor"
    # Upper bound in seconds that stop() waits for in-flight ticks.
    shutdown_timeout: float = 5.0


@dataclass(frozen=True)
class LoggingConfig:
    """
    Logging output settings, loaded from the `[logging]` section.
    """

    level: str = "INFO"
    # "console" (stdout) or "file".
    output: str = "console"
    # Target path when output is "file".
    log_file: str = ""


@dataclass(frozen=True)
class ThreadScopeConfig:
    """
    The root configuration object that aggregates all settings.
    """

    enabled: bool = True
    snapshot: SnapshotConfig = field(default_factory=SnapshotConfig)
    alerts: AlertsConfig = field(default_factory=AlertsConfig)
    advanced: AdvancedConfig = field(default_factory=AdvancedConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def defaults(cls) -> "ThreadScopeConfig":
        return cls()

    @classmethod
    def for_development(cls) -> "ThreadScopeConfig":
        """Frequent sampling, deep stacks and verbose logging."""
        return cls(
            snapshot=SnapshotConfig(interval_seconds=5.0),
            alerts=AlertsConfig(check_interval_seconds=2.0),
            advanced=AdvancedConfig(include_system_threads=True, max_stack_depth=50),
            logging=LoggingConfig(level="DEBUG"),
        )

    @classmethod
    def for_production(cls) -> "ThreadScopeConfig":
        """Infrequent sampling and shallow stacks to keep overhead low."""
        return cls(
            snapshot=SnapshotConfig(interval_seconds=30.0),
            alerts=AlertsConfig(check_interval_seconds=10.0),
            advanced=AdvancedConfig(max_stack_depth=10, max_threads_to_monitor=500),
            logging=LoggingConfig(level="WARNING"),
        )

    @classmethod
    def for_testing(cls) -> "ThreadScopeConfig":
        """Short intervals and a short shutdown timeout for test suites."""
        return cls(
            snapshot=SnapshotConfig(interval_seconds=0.05),
            alerts=AlertsConfig(check_interval_seconds=0.05),
            scheduler=SchedulerConfig(shutdown_timeout=1.0),
            logging=LoggingConfig(level="DEBUG"),
        )

    @classmethod
    def minimal(cls) -> "ThreadScopeConfig":
        """Deadlock alerts only: no periodic snapshots, no async detection."""
        return cls(
            snapshot=SnapshotConfig(enabled=False),
            advanced=AdvancedConfig(enable_async_detection=False),
        )

    def with_overrides(self, **sections) -> "ThreadScopeConfig":
        """Return a copy with whole sections (or ``enabled``) replaced."""
        return replace(self, **sections)
