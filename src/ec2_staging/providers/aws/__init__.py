"""EC2 provider."""

from ec2_staging.providers.aws.infrastructure.aws_client import AWSClient
from ec2_staging.providers.aws.infrastructure.ec2_gateway import Ec2Gateway

__all__: list[str] = ["AWSClient", "Ec2Gateway"]
