"""AWS client wrapper with additional functionality."""

from typing import Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from ec2_staging.config.schemas.staging_schema import StagingConfig
from ec2_staging.domain.base.exceptions import ConfigurationError
from ec2_staging.domain.base.ports.logging_port import LoggingPort
from ec2_staging.infrastructure.adapters.logging_adapter import LoggingAdapter

DEFAULT_REGION = "us-east-1"


class AWSClient:
    """Wrapper for the boto3 EC2 client used by the staging gateway."""

    def __init__(
        self,
        config: Optional[StagingConfig] = None,
        logger: Optional[LoggingPort] = None,
        session: Optional[boto3.Session] = None,
    ) -> None:
        """
        Initialize the AWS client wrapper.

        Args:
            config: Staging configuration supplying region, profile and timeouts
            logger: Logger for logging messages
            session: Pre-built boto3 session, mainly for tests
        """
        config = config or StagingConfig()
        self._logger = logger or LoggingAdapter("aws")

        # botocore retries stay low; throttling is retried by the staging core
        self.boto_config = Config(
            region_name=config.region,
            retries={"max_attempts": config.aws_max_retries, "mode": "standard"},
            connect_timeout=config.aws_connect_timeout,
            read_timeout=config.aws_read_timeout,
        )

        try:
            self.session = session or boto3.Session(
                region_name=config.region, profile_name=config.profile
            )
        except BotoCoreError as e:
            raise ConfigurationError(f"AWS session initialization failed: {e}") from e

        self.region_name = config.region or self.session.region_name or DEFAULT_REGION
        self.profile_name = config.profile
        self._ec2_client = None

        self._logger.debug(
            "AWS client initialized with region: %s, profile: %s, retries: %d, "
            "timeouts: connect=%ds, read=%ds",
            self.region_name,
            self.profile_name or "default",
            config.aws_max_retries,
            config.aws_connect_timeout,
            config.aws_read_timeout,
        )

    @property
    def ec2_client(self):
        """Lazy initialization of EC2 client."""
        if self._ec2_client is None:
            self._logger.debug("Initializing EC2 client on first use")
            try:
                self._ec2_client = self.session.client(
                    "ec2", region_name=self.region_name, config=self.boto_config
                )
            except (BotoCoreError, ClientError) as e:
                raise ConfigurationError(f"EC2 client initialization failed: {e}") from e
        return self._ec2_client
