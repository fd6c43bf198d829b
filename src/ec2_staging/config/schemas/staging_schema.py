"""Staging manager configuration schema."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ec2_staging.config.schemas.logging_schema import LoggingConfig
from ec2_staging.domain.resource.states import ExitPolicy


class StagingConfig(BaseModel):
    """Every option recognised by the staging manager, with its default."""

    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    # AWS session
    region: Optional[str] = Field(None, description="AWS region; boto3 default chain when unset")
    profile: Optional[str] = Field(None, description="AWS named profile")
    aws_max_retries: int = Field(
        1, ge=1, description="botocore retry attempts; throttling is retried by the manager"
    )
    aws_connect_timeout: int = Field(5, description="botocore connect timeout in seconds")
    aws_read_timeout: int = Field(30, description="botocore read timeout in seconds")

    # Lifecycle policy
    exit_policy: ExitPolicy = Field(
        ExitPolicy.TERMINATE, description="What to do with servers when the manager closes"
    )
    reuse_keys: bool = Field(
        True, description="Reuse existing staging key pairs and keep them on terminate"
    )
    reuse_servers: bool = Field(
        True, description="Reuse registered servers in the zone before launching new ones"
    )
    reuse_volumes: bool = Field(True, description="Reuse idle volumes with a matching name")

    # Server defaults
    username: str = Field("ubuntu", description="Login user on staging servers")
    architecture: str = Field("i386", description="Image architecture filter")
    root_type: str = Field("instance-store", description="Image root-device-type filter")
    instance_type: str = Field("m1.small", description="Instance type for new servers")
    image_name: str = Field(
        "ubuntu-maverick-10.10", description="Substring matched against image names"
    )
    availability_zone: Optional[str] = Field(
        None, description="Default zone; chosen by the zone policy when unset"
    )

    # Polling
    poll_interval: float = Field(3.0, gt=0, description="Seconds between status polls")
    probe_interval: float = Field(5.0, gt=0, description="Seconds between readiness probes")
    probe_timeout: float = Field(10.0, gt=0, description="Timeout of a single readiness probe")
    wait_timeout: float = Field(
        600.0, ge=0, description="Deadline for state transitions; 0 waits forever"
    )
    server_startup_timeout: float = Field(
        120.0, ge=0, description="Deadline for a new server to run and become reachable"
    )

    # Rate limiting
    rate_limit_max_attempts: int = Field(7, ge=1, description="Attempts for a throttled call")
    rate_limit_base_delay: float = Field(2.0, gt=0, description="First backoff delay")
    rate_limit_max_delay: float = Field(64.0, gt=0, description="Backoff delay cap")

    # Local storage and volumes
    key_directory: Optional[str] = Field(
        None, description="Directory for private keys; ~/.vm_ec2_staging when unset"
    )
    mount_root: str = Field("/mnt/DataTransfer", description="Parent of volume mount points")
    default_volume_size: int = Field(1, ge=1, description="Volume size in GiB")
    default_fstype: str = Field("ext4", description="Filesystem for new volumes")

    quiet: bool = Field(False, description="Suppress progress messages")
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @field_validator("exit_policy", mode="before")
    @classmethod
    def _normalise_exit_policy(cls, value):
        if isinstance(value, str):
            return ExitPolicy(value.strip().lower())
        return value

    @property
    def search_root_type(self) -> str:
        """Root device type used for image searches.

        Stopping requires EBS-backed servers, so a ``stop`` exit policy forces
        ``ebs`` regardless of ``root_type``.
        """
        if self.exit_policy == ExitPolicy.STOP:
            return "ebs"
        return self.root_type
