"""
Logging configuration for the threadscope package.

Only the ``threadscope`` logger hierarchy is configured; the host
application's root logger is left alone.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

from .models.config import LoggingConfig

LOG_FORMAT = "%(asctime)s [%(levelname)-5.5s] %(name)s:%(filename)s:%(lineno)d\t %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
PACKAGE_LOGGER_NAME = "threadscope"

# Marks handlers installed here so reconfiguration replaces only them.
_HANDLER_MARKER = "_threadscope_handler"


def configure_logging(config: Optional[LoggingConfig] = None) -> logging.Logger:
    """
    Install a console or file handler on the ``threadscope`` logger.

    Calling this again replaces the handler installed by the previous call.

    Args:
        config: Logging settings (defaults to INFO on stdout)

    Returns:
        The configured package logger
    """
    config = config or LoggingConfig()
    package_logger = logging.getLogger(PACKAGE_LOGGER_NAME)

    for handler in list(package_logger.handlers):
        if getattr(handler, _HANDLER_MARKER, False):
            package_logger.removeHandler(handler)
            handler.close()

    if config.output == "file":
        log_path = Path(config.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handler: logging.Handler = logging.FileHandler(log_path, encoding="utf-8")
    else:
        handler = logging.StreamHandler(sys.stdout)

    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
    setattr(handler, _HANDLER_MARKER, True)

    package_logger.addHandler(handler)
    package_logger.setLevel(getattr(logging, config.level.upper(), logging.INFO))
    return package_logger
