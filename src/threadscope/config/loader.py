"""
Configuration file and environment loading utilities.

This module handles the low-level reading of configuration sources: the TOML
configuration file and the ``THREADSCOPE_*`` environment variables. Both are
returned as plain nested dictionaries in the same shape, so the validators
can treat them uniformly.
"""

import logging
import os
import tomllib
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

from ..validation import ErrorSeverity, handle_config_error

logger = logging.getLogger(__name__)

# Environment variable -> (section, key). A section of None means top level.
ENVIRONMENT_OVERRIDES: Dict[str, Tuple[Optional[str], str]] = {
    "THREADSCOPE_ENABLED": (None, "enabled"),
    "THREADSCOPE_SNAPSHOT_INTERVAL": ("snapshot", "interval_seconds"),
    "THREADSCOPE_ALERT_INTERVAL": ("alerts", "check_interval_seconds"),
    "THREADSCOPE_INCLUDE_SYSTEM_THREADS": ("advanced", "include_system_threads"),
    "THREADSCOPE_MAX_STACK_DEPTH": ("advanced", "max_stack_depth"),
    "THREADSCOPE_LOG_LEVEL": ("logging", "level"),
}

CONFIG_SECTIONS = ("snapshot", "alerts", "advanced", "scheduler", "logging")


def load_toml_file(file_path: Path, description: str = "configuration file") -> Dict[str, Any]:
    """
    Load and parse a TOML file with error handling.

    Args:
        file_path: Path to the TOML file to load
        description: Human-readable description for error messages

    Returns:
        Parsed TOML data as a dictionary

    Raises:
        FileNotFoundError: If the file doesn't exist
        tomllib.TOMLDecodeError: If the file is malformed
    """
    logger.info(f"Loading {description} from: {file_path}")

    if not file_path.exists():
        logger.error(f"{description} not found: {file_path}")
        raise FileNotFoundError(f"{description} not found: {file_path}")

    try:
        with open(file_path, "rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        handle_config_error(
            error=e,
            context=f"parsing {description}",
            severity=ErrorSeverity.CRITICAL,
            reraise=True,
            logger=logger
        )
        raise


def read_environment(environ: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    """
    Collect ``THREADSCOPE_*`` overrides from the environment.

    Args:
        environ: Mapping to read from (defaults to ``os.environ``)

    Returns:
        Nested dictionary in the same shape as the TOML file, containing only
        the variables that are set. Values are left as strings.
    """
    source = os.environ if environ is None else environ
    overrides: Dict[str, Any] = {}

    for variable, (section, key) in ENVIRONMENT_OVERRIDES.items():
        raw_value = source.get(variable)
        if raw_value is None or raw_value == "":
            continue
        logger.debug(f"Configuration override from environment: {variable}={raw_value}")
        if section is None:
            overrides[key] = raw_value
        else:
            overrides.setdefault(section, {})[key] = raw_value

    return overrides


def merge_config_data(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    """
    Merge two raw configuration dictionaries, section by section.

    Keys in ``overrides`` win. Neither input is modified.
    """
    merged: Dict[str, Any] = {key: value for key, value in base.items()}
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            section = dict(merged[key])
            section.update(value)
            merged[key] = section
        else:
            merged[key] = value
    return merged
