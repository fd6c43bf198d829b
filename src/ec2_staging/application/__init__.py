"""Application layer: registry, pollers, provisioning and lifecycle."""

from ec2_staging.application.convergence import ConvergencePoller
from ec2_staging.application.credentials import CredentialStore
from ec2_staging.application.gateway import RateLimitedGateway
from ec2_staging.application.lifecycle import LifecycleController
from ec2_staging.application.manager import StagingManager
from ec2_staging.application.provisioning import ProvisioningEngine
from ec2_staging.application.readiness import ReadinessProber
from ec2_staging.application.registry import ResourceRegistry
from ec2_staging.application.zone_selection import MostActiveZonePolicy, ZoneSelectionPolicy

__all__: list[str] = [
    "ConvergencePoller",
    "CredentialStore",
    "LifecycleController",
    "MostActiveZonePolicy",
    "ProvisioningEngine",
    "RateLimitedGateway",
    "ReadinessProber",
    "ResourceRegistry",
    "StagingManager",
    "ZoneSelectionPolicy",
]
