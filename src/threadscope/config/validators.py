"""
Configuration validation utilities.

This module turns raw configuration data (merged TOML and environment
values) into validated, immutable configuration dataclasses. Missing keys
fall back to the dataclass defaults.
"""

import logging
from typing import Any, Dict

from ..models.config import (
    AdvancedConfig,
    AlertsConfig,
    LoggingConfig,
    SchedulerConfig,
    SnapshotConfig,
    ThreadScopeConfig,
)
from ..validation import (
    ValidationError,
    validate_bool,
    validate_confidence,
    validate_enum_choice,
    validate_non_empty_string,
    validate_positive_float,
    validate_positive_integer,
)
from .loader import CONFIG_SECTIONS

logger = logging.getLogger(__name__)

VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
VALID_LOG_OUTPUTS = ["console", "file"]


def _section(data: Dict[str, Any], name: str) -> Dict[str, Any]:
    section = data.get(name, {})
    if not isinstance(section, dict):
        raise ValidationError(
            f"[{name}] must be a table, got {type(section).__name__}",
            field_name=name,
            value=section
        )
    return section


def validate_snapshot_config(snapshot_data: Dict[str, Any]) -> SnapshotConfig:
    defaults = SnapshotConfig()
    return SnapshotConfig(
        enabled=validate_bool(
            snapshot_data.get("enabled", defaults.enabled),
            field_name="snapshot.enabled",
        ),
        interval_seconds=validate_positive_float(
            snapshot_data.get("interval_seconds", defaults.interval_seconds),
            min_value=0.01,
            max_value=3600.0,
            field_name="snapshot.interval_seconds",
        ),
    )


def validate_alerts_config(alerts_data: Dict[str, Any]) -> AlertsConfig:
    defaults = AlertsConfig()
    return AlertsConfig(
        deadlock_detection=validate_bool(
            alerts_data.get("deadlock_detection", defaults.deadlock_detection),
            field_name="alerts.deadlock_detection",
        ),
        check_interval_seconds=validate_positive_float(
            alerts_data.get("check_interval_seconds", defaults.check_interval_seconds),
            min_value=0.01,
            max_value=3600.0,
            field_name="alerts.check_interval_seconds",
        ),
        deadlock_confidence_threshold=validate_confidence(
            alerts_data.get(
                "deadlock_confidence_threshold", defaults.deadlock_confidence_threshold
            ),
            field_name="alerts.deadlock_confidence_threshold",
        ),
    )


def validate_advanced_config(advanced_data: Dict[str, Any]) -> AdvancedConfig:
    defaults = AdvancedConfig()
    return AdvancedConfig(
        include_system_threads=validate_bool(
            advanced_data.get("include_system_threads", defaults.include_system_threads),
            field_name="advanced.include_system_threads",
        ),
        max_stack_depth=validate_positive_integer(
            advanced_data.get("max_stack_depth", defaults.max_stack_depth),
            min_value=1,
            max_value=1000,
            field_name="advanced.max_stack_depth",
        ),
        max_threads_to_monitor=validate_positive_integer(
            advanced_data.get("max_threads_to_monitor", defaults.max_threads_to_monitor),
            min_value=1,
            max_value=100000,
            field_name="advanced.max_threads_to_monitor",
        ),
        enable_async_detection=validate_bool(
            advanced_data.get("enable_async_detection", defaults.enable_async_detection),
            field_name="advanced.enable_async_detection",
        ),
        async_confidence_threshold=validate_confidence(
            advanced_data.get(
                "async_confidence_threshold", defaults.async_confidence_threshold
            ),
            field_name="advanced.async_confidence_threshold",
        ),
    )


def validate_scheduler_config(scheduler_data: Dict[str, Any]) -> SchedulerConfig:
    defaults = SchedulerConfig()
    return SchedulerConfig(
        max_workers=validate_positive_integer(
            scheduler_data.get("max_workers", defaults.max_workers),
            min_value=1,
            max_value=64,
            field_name="scheduler.max_workers",
        ),
        thread_name_prefix=validate_non_empty_string(
            scheduler_data.get("thread_name_prefix", defaults.thread_name_prefix),
            field_name="scheduler.thread_name_prefix",
        ),
        shutdown_timeout=validate_positive_float(
            scheduler_data.get("shutdown_timeout", defaults.shutdown_timeout),
            min_value=0.0,
            max_value=300.0,
            field_name="scheduler.shutdown_timeout",
        ),
    )


def validate_logging_config(logging_data: Dict[str, Any]) -> LoggingConfig:
    defaults = LoggingConfig()
    output = validate_enum_choice(
        logging_data.get("output", defaults.output),
        valid_choices=VALID_LOG_OUTPUTS,
        field_name="logging.output",
        case_sensitive=False,
    )
    log_file = logging_data.get("log_file", defaults.log_file)
    if not isinstance(log_file, str):
        raise ValidationError(
            "logging.log_file must be a string",
            field_name="logging.log_file",
            value=log_file
        )
    if output == "file" and not log_file.strip():
        raise ValidationError(
            "logging.log_file is required when logging.output is 'file'",
            field_name="logging.log_file",
            value=log_file
        )

    return LoggingConfig(
        level=validate_enum_choice(
            logging_data.get("level", defaults.level),
            valid_choices=VALID_LOG_LEVELS,
            field_name="logging.level",
            case_sensitive=False,
        ),
        output=output,
        log_file=log_file,
    )


def validate_threadscope_config(config_data: Dict[str, Any]) -> ThreadScopeConfig:
    """
    Validate and create a ThreadScopeConfig from raw configuration data.

    Args:
        config_data: Raw configuration (TOML data merged with environment
                     overrides)

    Returns:
        Validated ThreadScopeConfig instance

    Raises:
        ValidationError: If validation fails
    """
    for key in config_data:
        if key != "enabled" and key not in CONFIG_SECTIONS:
            logger.warning(f"Ignoring unknown configuration key: {key}")

    config = ThreadScopeConfig(
        enabled=validate_bool(config_data.get("enabled", True), field_name="enabled"),
        snapshot=validate_snapshot_config(_section(config_data, "snapshot")),
        alerts=validate_alerts_config(_section(config_data, "alerts")),
        advanced=validate_advanced_config(_section(config_data, "advanced")),
        scheduler=validate_scheduler_config(_section(config_data, "scheduler")),
        logging=validate_logging_config(_section(config_data, "logging")),
    )

    logger.debug(f"Validated configuration: {config}")
    return config
