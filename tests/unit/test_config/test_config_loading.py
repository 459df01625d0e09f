"""
Unit tests for configuration validation and loading.

Tests defaults, TOML loading, environment overrides and validation errors.
"""

import tomllib
from dataclasses import FrozenInstanceError

import pytest

from threadscope.config import load_config, merge_config_data, read_environment, validate_threadscope_config
from threadscope.models import ThreadScopeConfig
from threadscope.validation import ValidationError


@pytest.mark.unit
class TestConfigValidation:
    """Test cases for raw configuration validation."""

    def test_empty_data_gives_defaults(self):
        """Missing sections fall back to the dataclass defaults."""
        config = validate_threadscope_config({})

        assert config == ThreadScopeConfig()
        assert config.snapshot.interval_seconds == 10.0
        assert config.alerts.check_interval_seconds == 5.0
        assert config.alerts.deadlock_confidence_threshold == 0.8
        assert config.advanced.max_stack_depth == 20
        assert config.advanced.max_threads_to_monitor == 1000
        assert config.advanced.async_confidence_threshold == 0.5
        assert config.scheduler.thread_name_prefix == "ThreadScope-Monitor"

    def test_full_data(self, sample_config_data):
        """Every section is read and normalised."""
        config = validate_threadscope_config(sample_config_data)

        assert config.snapshot.interval_seconds == 2.5
        assert config.alerts.deadlock_confidence_threshold == 0.9
        assert config.advanced.include_system_threads is True
        assert config.advanced.max_stack_depth == 32
        assert config.advanced.enable_async_detection is False
        assert config.scheduler.max_workers == 4
        assert config.logging.level == "DEBUG"

    def test_invalid_interval(self, sample_config_data):
        """A negative interval names the offending field."""
        sample_config_data["snapshot"]["interval_seconds"] = -1.0

        with pytest.raises(ValidationError) as exc_info:
            validate_threadscope_config(sample_config_data)

        assert exc_info.value.field_name == "snapshot.interval_seconds"

    def test_invalid_threshold(self, sample_config_data):
        """Confidence thresholds must be within [0, 1]."""
        sample_config_data["advanced"]["async_confidence_threshold"] = 1.2

        with pytest.raises(ValidationError) as exc_info:
            validate_threadscope_config(sample_config_data)

        assert "async_confidence_threshold" in str(exc_info.value)

    def test_invalid_log_level(self, sample_config_data):
        """Unknown log levels are rejected."""
        sample_config_data["logging"]["level"] = "LOUD"

        with pytest.raises(ValidationError):
            validate_threadscope_config(sample_config_data)

    def test_file_output_requires_path(self):
        """File logging without a path is rejected."""
        with pytest.raises(ValidationError) as exc_info:
            validate_threadscope_config({"logging": {"output": "file"}})

        assert exc_info.value.field_name == "logging.log_file"

    def test_section_must_be_table(self):
        """A scalar where a section is expected is rejected."""
        with pytest.raises(ValidationError):
            validate_threadscope_config({"alerts": 5})

    def test_boolean_fields_reject_numbers(self):
        """Booleans must be booleans or boolean strings."""
        with pytest.raises(ValidationError):
            validate_threadscope_config({"snapshot": {"enabled": 3}})

    def test_config_is_immutable(self):
        """Loaded configuration cannot be modified."""
        config = validate_threadscope_config({})

        with pytest.raises(FrozenInstanceError):
            config.enabled = False


@pytest.mark.unit
class TestEnvironmentOverrides:
    """Test cases for THREADSCOPE_* variables."""

    def test_read_environment_shapes_sections(self):
        """Variables map onto their sections; unset ones are absent."""
        overrides = read_environment({
            "THREADSCOPE_ENABLED": "false",
            "THREADSCOPE_MAX_STACK_DEPTH": "7",
            "UNRELATED": "1",
        })

        assert overrides == {"enabled": "false", "advanced": {"max_stack_depth": "7"}}

    def test_merge_keeps_other_keys(self):
        """Merging replaces only the overridden keys of a section."""
        merged = merge_config_data(
            {"advanced": {"max_stack_depth": 10, "max_threads_to_monitor": 5}},
            {"advanced": {"max_stack_depth": "7"}},
        )

        assert merged == {"advanced": {"max_stack_depth": "7", "max_threads_to_monitor": 5}}

    def test_environment_values_are_validated(self):
        """String values from the environment are converted."""
        config = load_config(environ={
            "THREADSCOPE_SNAPSHOT_INTERVAL": "1.5",
            "THREADSCOPE_INCLUDE_SYSTEM_THREADS": "yes",
            "THREADSCOPE_LOG_LEVEL": "warning",
        })

        assert config.snapshot.interval_seconds == 1.5
        assert config.advanced.include_system_threads is True
        assert config.logging.level == "WARNING"

    def test_bad_environment_value(self):
        """Unparseable environment values raise ValidationError."""
        with pytest.raises(ValidationError):
            load_config(environ={"THREADSCOPE_MAX_STACK_DEPTH": "deep"})


@pytest.mark.unit
class TestLoadConfig:
    """Test cases for file loading."""

    def test_load_from_file(self, config_files):
        """A TOML file is loaded and validated."""
        config = load_config(config_files["config"], environ={})

        assert config.snapshot.interval_seconds == 2.5
        assert config.scheduler.thread_name_prefix == "ThreadScope-Test"

    def test_environment_wins_over_file(self, config_files):
        """Environment overrides take precedence over the file."""
        config = load_config(config_files["config"], environ={"THREADSCOPE_ALERT_INTERVAL": "9"})

        assert config.alerts.check_interval_seconds == 9.0
        assert config.snapshot.interval_seconds == 2.5

    def test_missing_file(self, temp_dir):
        """A missing file raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            load_config(temp_dir / "absent.toml", environ={})

    def test_malformed_file(self, config_files):
        """A malformed file raises the TOML decode error."""
        with pytest.raises(tomllib.TOMLDecodeError):
            load_config(config_files["broken"], environ={})

    def test_presets(self):
        """Presets differ from the defaults where documented."""
        assert ThreadScopeConfig.defaults() == ThreadScopeConfig()
        assert ThreadScopeConfig.for_development().logging.level == "DEBUG"
        assert ThreadScopeConfig.for_production().snapshot.interval_seconds == 30.0
        assert ThreadScopeConfig.for_testing().scheduler.shutdown_timeout == 1.0
        minimal = ThreadScopeConfig.minimal()
        assert minimal.snapshot.enabled is False
        assert minimal.advanced.enable_async_detection is False
        assert minimal.alerts.deadlock_detection is True
