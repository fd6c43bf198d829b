"""Logging setup for the staging manager."""

import logging
import os
from pathlib import Path
from typing import Optional

from ec2_staging.config.platform_dirs import get_logs_location
from ec2_staging.config.schemas.logging_schema import LoggingConfig

ROOT_LOGGER_NAME = "ec2_staging"

DEFAULT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def get_logger(name: str) -> logging.Logger:
    """Return a logger below the package root logger."""
    if name == ROOT_LOGGER_NAME or name.startswith(ROOT_LOGGER_NAME + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def setup_logging(config: Optional[LoggingConfig] = None) -> logging.Logger:
    """
    Configure the package root logger from a LoggingConfig.

    Handlers previously installed by this function are replaced, so calling it
    twice does not duplicate output.

    :param config: Logging configuration. Defaults are used when omitted.
    :return: The configured root logger for the package.
    """
    config = config or LoggingConfig()
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(getattr(logging, config.level.upper(), logging.INFO))

    for handler in list(logger.handlers):
        if getattr(handler, "_ec2_staging_handler", False):
            logger.removeHandler(handler)
            handler.close()

    formatter = logging.Formatter(config.format or DEFAULT_FORMAT)
    handlers: list[logging.Handler] = []

    if config.console_enabled:
        handlers.append(logging.StreamHandler())

    if config.file_path:
        log_path = Path(os.path.expanduser(config.file_path))
        if not log_path.is_absolute():
            log_path = get_logs_location() / log_path
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path, encoding="utf-8"))

    for handler in handlers:
        handler.setFormatter(formatter)
        handler._ec2_staging_handler = True
        logger.addHandler(handler)

    logger.propagate = not handlers
    return logger
