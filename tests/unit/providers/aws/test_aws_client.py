"""Tests for the boto3 client wrapper."""

from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ProfileNotFound

from ec2_staging.config.schemas.staging_schema import StagingConfig
from ec2_staging.domain.base.exceptions import ConfigurationError
from ec2_staging.providers.aws.infrastructure.aws_client import DEFAULT_REGION, AWSClient


@pytest.mark.unit
class TestAWSClient:
    def test_botocore_settings_follow_config(self):
        config = StagingConfig(region="eu-west-1", aws_max_retries=2, aws_read_timeout=45)

        client = AWSClient(config, session=MagicMock(region_name=None))

        assert client.region_name == "eu-west-1"
        assert client.boto_config.retries == {"max_attempts": 2, "mode": "standard"}
        assert client.boto_config.read_timeout == 45

    def test_region_falls_back_to_session_then_default(self):
        assert AWSClient(session=MagicMock(region_name="ap-south-1")).region_name == "ap-south-1"
        assert AWSClient(session=MagicMock(region_name=None)).region_name == DEFAULT_REGION

    def test_ec2_client_is_created_once(self):
        session = MagicMock(region_name="us-east-1")
        client = AWSClient(session=session)

        assert client.ec2_client is client.ec2_client
        session.client.assert_called_once_with(
            "ec2", region_name="us-east-1", config=client.boto_config
        )

    def test_unknown_profile(self):
        with pytest.raises(ConfigurationError, match="session initialization failed") as exc_info:
            AWSClient(StagingConfig(profile="no-such-profile-for-staging-tests"))

        assert isinstance(exc_info.value.__cause__, ProfileNotFound)
