"""Managed resource models and states."""

from ec2_staging.domain.resource.models import (
    ManagedServer,
    ManagedVolume,
    ScanResult,
    ServerConstraints,
    TransferEndpoint,
    VolumeConstraints,
)
from ec2_staging.domain.resource.states import (
    ExitPolicy,
    ServerState,
    VolumeState,
)

__all__: list[str] = [
    "ExitPolicy",
    "ManagedServer",
    "ManagedVolume",
    "ScanResult",
    "ServerConstraints",
    "ServerState",
    "TransferEndpoint",
    "VolumeConstraints",
    "VolumeState",
]
