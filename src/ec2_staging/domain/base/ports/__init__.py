"""Domain ports."""

from ec2_staging.domain.base.ports.cloud_gateway_port import (
    CloudGatewayPort,
    GatewayAction,
    RemoteObject,
)
from ec2_staging.domain.base.ports.logging_port import LoggingPort
from ec2_staging.domain.base.ports.readiness_probe_port import ReadinessProbePort

__all__: list[str] = [
    "CloudGatewayPort",
    "GatewayAction",
    "LoggingPort",
    "ReadinessProbePort",
    "RemoteObject",
]
