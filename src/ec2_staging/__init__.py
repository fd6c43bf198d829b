"""ec2-staging - pooled EC2 staging servers and volumes.

Keeps a per-zone pool of staging servers and volumes, reuses or provisions
them on demand, waits for them to settle and become reachable, and applies
an exit policy when the manager's scope ends.

Usage:
    from ec2_staging import StagingManager, load_config

    with StagingManager.from_config(load_config()) as manager:
        server = manager.provision_server()
"""

from ec2_staging.application.manager import StagingManager
from ec2_staging.config import LoggingConfig, StagingConfig, load_config
from ec2_staging.domain.base.exceptions import (
    CleanupError,
    ConvergenceTimeoutError,
    NoMatchingImageError,
    PermanentAPIError,
    RateLimitError,
    ReadinessTimeoutError,
    StagingError,
)
from ec2_staging.domain.resource import (
    ExitPolicy,
    ManagedServer,
    ManagedVolume,
    ServerConstraints,
    VolumeConstraints,
)
from ec2_staging.infrastructure.logging.logger import setup_logging

__version__ = "1.0.0"

__all__: list[str] = [
    "CleanupError",
    "ConvergenceTimeoutError",
    "ExitPolicy",
    "LoggingConfig",
    "ManagedServer",
    "ManagedVolume",
    "NoMatchingImageError",
    "PermanentAPIError",
    "RateLimitError",
    "ReadinessTimeoutError",
    "ServerConstraints",
    "StagingConfig",
    "StagingError",
    "StagingManager",
    "VolumeConstraints",
    "__version__",
    "load_config",
    "setup_logging",
]
