"""Global test configuration and fixtures."""

import os
import shutil
import sys
import tempfile
from collections.abc import Generator
from pathlib import Path

import boto3
import pytest
from moto import mock_aws

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from ec2_staging.application.manager import StagingManager  # noqa: E402
from ec2_staging.config.schemas.staging_schema import StagingConfig  # noqa: E402
from tests.fixtures.fake_cloud import FakeClock, FakeCloudGateway, FakeProbe  # noqa: E402


@pytest.fixture(scope="session", autouse=True)
def setup_test_environment():
    """Set up test environment variables."""
    os.environ.update(
        {
            "AWS_DEFAULT_REGION": "us-east-1",
            "AWS_ACCESS_KEY_ID": "testing",
            "AWS_SECRET_ACCESS_KEY": "testing",
            "AWS_SECURITY_TOKEN": "testing",
            "AWS_SESSION_TOKEN": "testing",
        }
    )


@pytest.fixture(autouse=True)
def isolated_staging_env(monkeypatch, tmp_path):
    """Keep tests away from the user's staging directories and STAGING_* settings."""
    for key in list(os.environ):
        if key.startswith("STAGING_"):
            monkeypatch.delenv(key)
    monkeypatch.setenv("STAGING_CONFIG_DIR", str(tmp_path / "config"))
    monkeypatch.setenv("STAGING_KEY_DIR", str(tmp_path / "keys"))


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    temp_path = Path(tempfile.mkdtemp())
    try:
        yield temp_path
    finally:
        shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def gateway() -> FakeCloudGateway:
    return FakeCloudGateway()


@pytest.fixture
def probe() -> FakeProbe:
    return FakeProbe()


@pytest.fixture
def staging_config(temp_dir: Path) -> StagingConfig:
    """Configuration with a throwaway key directory that leaves servers running."""
    return StagingConfig(key_directory=str(temp_dir / "keys"), exit_policy="leave-running")


@pytest.fixture
def manager(gateway, probe, staging_config, clock) -> StagingManager:
    """A manager over the in-memory cloud with a fake clock."""
    return StagingManager(
        gateway, probe, config=staging_config, sleep=clock.sleep, clock=clock
    )


@pytest.fixture
def aws_mocks():
    """Set up AWS service mocks."""
    with mock_aws():
        yield


@pytest.fixture
def ec2_client(aws_mocks):
    """Create a mocked EC2 client."""
    return boto3.client("ec2", region_name="us-east-1")
