"""
Configuration loading for the threadscope package.

Configuration is resolved once, in this order (later sources win):
built-in defaults, an optional TOML file, ``THREADSCOPE_*`` environment
variables. The result is an immutable ``ThreadScopeConfig`` that the caller
passes to the monitor explicitly.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

from ..models.config import ThreadScopeConfig
from ..validation import ErrorSeverity, ValidationError, handle_config_error
from .loader import (
    ENVIRONMENT_OVERRIDES,
    load_toml_file,
    merge_config_data,
    read_environment,
)
from .validators import (
    validate_advanced_config,
    validate_alerts_config,
    validate_logging_config,
    validate_scheduler_config,
    validate_snapshot_config,
    validate_threadscope_config,
)

logger = logging.getLogger(__name__)


def load_config(
    path: Optional[Union[str, Path]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> ThreadScopeConfig:
    """
    Load and validate the agent configuration.

    Args:
        path: Optional TOML configuration file
        environ: Environment mapping to read overrides from
                 (defaults to ``os.environ``)

    Returns:
        Validated, immutable configuration

    Raises:
        FileNotFoundError: If ``path`` is given but does not exist
        ValidationError: If any value is invalid
    """
    config_data: Dict[str, Any] = {}
    if path is not None:
        config_data = load_toml_file(Path(path), "threadscope configuration file")

    config_data = merge_config_data(config_data, read_environment(environ))

    try:
        config = validate_threadscope_config(config_data)
    except ValidationError as e:
        handle_config_error(
            error=e,
            context="validation",
            severity=ErrorSeverity.ERROR,
            reraise=True,
            logger=logger
        )
        raise

    logger.info(
        f"Configuration loaded: enabled={config.enabled}, "
        f"snapshot every {config.snapshot.interval_seconds}s, "
        f"alerts every {config.alerts.check_interval_seconds}s"
    )
    return config


__all__ = [
    "ENVIRONMENT_OVERRIDES",
    "load_config",
    "load_toml_file",
    "merge_config_data",
    "read_environment",
    "validate_advanced_config",
    "validate_alerts_config",
    "validate_logging_config",
    "validate_scheduler_config",
    "validate_snapshot_config",
    "validate_threadscope_config",
]
