"""Configuration for the staging manager."""

from ec2_staging.config.loader import load_config
from ec2_staging.config.schemas.logging_schema import LoggingConfig
from ec2_staging.config.schemas.staging_schema import StagingConfig

__all__: list[str] = ["LoggingConfig", "StagingConfig", "load_config"]
