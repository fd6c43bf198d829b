"""Logging infrastructure."""

from ec2_staging.infrastructure.logging.logger import get_logger, setup_logging

__all__: list[str] = ["get_logger", "setup_logging"]
