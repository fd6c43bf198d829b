"""Staging manager: one registry plus the components that act on it."""

import os
import time
from typing import Optional

from ec2_staging.application.convergence import ConvergencePoller
from ec2_staging.application.credentials import CredentialStore
from ec2_staging.application.gateway import RateLimitedGateway
from ec2_staging.application.lifecycle import LifecycleController
from ec2_staging.application.provisioning import ProvisioningEngine, volume_description
from ec2_staging.application.readiness import ReadinessProber
from ec2_staging.application.registry import ResourceRegistry
from ec2_staging.application.zone_selection import ZoneSelectionPolicy
from ec2_staging.config.schemas.staging_schema import StagingConfig
from ec2_staging.domain.base.exceptions import CleanupError, ProvisioningError
from ec2_staging.domain.base.ports.cloud_gateway_port import CloudGatewayPort, RemoteObject
from ec2_staging.domain.base.ports.readiness_probe_port import ReadinessProbePort
from ec2_staging.domain.resource.models import (
    ManagedServer,
    ManagedVolume,
    ScanResult,
    ServerConstraints,
    TransferEndpoint,
    VolumeConstraints,
)
from ec2_staging.domain.resource.states import ServerState
from ec2_staging.infrastructure.adapters.logging_adapter import LoggingAdapter
from ec2_staging.infrastructure.timing import Clock, Sleeper


class StagingManager:
    """
    Orchestrates staging servers and volumes for one region.

    Use it as a context manager so the exit policy runs on every exit path::

        with StagingManager.from_config(load_config()) as manager:
            volume = manager.provision_volume(VolumeConstraints(size=10))
            ...

    Each manager owns its registry. Managers for different regions share
    nothing and may run in separate threads.
    """

    def __init__(
        self,
        gateway: CloudGatewayPort,
        probe: ReadinessProbePort,
        config: Optional[StagingConfig] = None,
        credentials: Optional[CredentialStore] = None,
        zone_policy: Optional[ZoneSelectionPolicy] = None,
        logger: Optional[LoggingAdapter] = None,
        sleep: Sleeper = time.sleep,
        clock: Clock = time.monotonic,
    ) -> None:
        self.config = config or StagingConfig()
        self._logger = logger or LoggingAdapter("manager", quiet=self.config.quiet)
        self.registry = ResourceRegistry()
        self.gateway = RateLimitedGateway(
            gateway, self.config, logger=self._logger.child("gateway"), sleep=sleep
        )
        self.credentials = credentials or CredentialStore(self.config.key_directory)
        self.poller = ConvergencePoller(
            self.config.poll_interval, sleep=sleep, clock=clock, logger=self._logger.child("poller")
        )
        self.prober = ReadinessProber(
            probe,
            self.config.probe_interval,
            sleep=sleep,
            clock=clock,
            logger=self._logger.child("readiness"),
        )
        self.provisioning = ProvisioningEngine(
            self.gateway,
            self.registry,
            self.poller,
            self.prober,
            self.credentials,
            config=self.config,
            zone_policy=zone_policy,
            logger=self._logger.child("provisioning"),
            clock=clock,
        )
        self.lifecycle = LifecycleController(
            self.gateway,
            self.registry,
            self.poller,
            self.prober,
            self.credentials,
            config=self.config,
            logger=self._logger.child("lifecycle"),
            clock=clock,
        )
        self._closed = False

    @classmethod
    def from_config(cls, config: Optional[StagingConfig] = None, **kwargs) -> "StagingManager":
        """Build a manager talking to EC2 through boto3 and probing over SSH."""
        from ec2_staging.providers.aws.infrastructure.aws_client import AWSClient
        from ec2_staging.providers.aws.infrastructure.ec2_gateway import Ec2Gateway
        from ec2_staging.providers.ssh.ssh_probe import SshReadinessProbe

        config = config or StagingConfig()
        gateway = Ec2Gateway(AWSClient(config), config=config)
        probe = SshReadinessProbe(timeout=config.probe_timeout)
        return cls(gateway, probe, config=config, **kwargs)

    # Scope

    def __enter__(self) -> "StagingManager":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        # A CleanupError raised here keeps the in-flight error as its __context__.
        self.shutdown()

    @property
    def closed(self) -> bool:
        return self._closed

    def shutdown(self) -> None:
        """
        Apply the exit policy. Runs at most once per manager.

        Raises:
            CleanupError: The policy could not be carried out. The original
                error is chained.
        """
        if self._closed:
            return
        self._closed = True

        policy = self.config.exit_policy
        self._logger.info("Applying exit policy '%s'", policy)
        try:
            self.lifecycle.apply_exit_policy(policy)
        except Exception as e:
            self._logger.error("Exit policy '%s' failed: %s", policy, e)
            raise CleanupError(
                f"Exit policy '{policy}' failed: {e}",
                {"policy": str(policy), "servers": [s.id for s in self.registry.servers()]},
            ) from e

    # Provisioning

    def scan(self) -> ScanResult:
        return self.lifecycle.scan()

    def provision_server(self, constraints: Optional[ServerConstraints] = None) -> ManagedServer:
        return self.provisioning.acquire_server(constraints)

    def provision_volume(self, constraints: Optional[VolumeConstraints] = None) -> ManagedVolume:
        return self.provisioning.acquire_volume(constraints)

    def get_server_in_zone(self, zone: str) -> ManagedServer:
        return self.provisioning.get_server_in_zone(zone)

    # Registry views

    def servers(self) -> list[ManagedServer]:
        return self.registry.servers()

    def volumes(self) -> list[ManagedVolume]:
        return self.registry.volumes()

    def active_servers(self) -> list[ManagedServer]:
        """Registered servers whose last observed state is not terminated."""
        return [
            s
            for s in self.registry.servers()
            if s.state not in (ServerState.TERMINATED, ServerState.SHUTTING_DOWN)
        ]

    def find_server_by_instance(self, instance_id: str) -> Optional[ManagedServer]:
        return self.registry.find_server_by_instance(instance_id)

    # Lifecycle

    def start_all(self) -> list[ManagedServer]:
        return self.lifecycle.start_all()

    def stop_all(self) -> list[ManagedServer]:
        return self.lifecycle.stop_all()

    def terminate_all(self) -> list[str]:
        return self.lifecycle.terminate_all()

    def terminate_server(self, server: ManagedServer) -> None:
        self.lifecycle.terminate_server(server)

    def attach_volume(
        self,
        volume: ManagedVolume,
        server: Optional[ManagedServer] = None,
        device: Optional[str] = None,
    ) -> ManagedVolume:
        """Attach ``volume``, by default to a server in its own zone."""
        server = server or self.get_server_in_zone(volume.zone)
        return self.lifecycle.attach_volume(volume, server, device)

    def detach_volume(self, volume: ManagedVolume) -> ManagedVolume:
        return self.lifecycle.detach_volume(volume)

    def delete_volume(self, volume: ManagedVolume) -> None:
        self.lifecycle.delete_volume(volume)

    def create_snapshot(
        self, volume: ManagedVolume, description: Optional[str] = None, wait: bool = False
    ) -> RemoteObject:
        return self.lifecycle.create_snapshot(
            volume, description or self.volume_description(volume.name), wait=wait
        )

    # Transfer metadata

    def volume_description(self, volume: "ManagedVolume | str") -> str:
        name = volume.name if isinstance(volume, ManagedVolume) else volume
        return volume_description(name)

    def transfer_endpoint(self, volume: ManagedVolume, path: str = "") -> TransferEndpoint:
        """
        Describe where an external transfer tool should copy data for ``volume``.

        The volume must be attached to a registered server.
        """
        server = self.registry.find_server_by_instance(volume.server_id) if volume.server_id else None
        if server is None:
            raise ProvisioningError(
                f"Volume {volume} is not attached to a registered server",
                {"volume_id": volume.id},
            )
        mount_path = volume.mount_path or os.path.join(self.config.mount_root, volume.name)
        return TransferEndpoint(
            host=server.host,
            username=server.username,
            keyfile=server.keyfile,
            path=os.path.join(mount_path, path.lstrip("/")) if path else mount_path,
            volume_id=volume.id,
            server_id=server.id,
        )

    def __repr__(self) -> str:
        return (
            f"StagingManager(servers={len(self.registry.servers())}, "
            f"volumes={len(self.registry.volumes())}, exit_policy={self.config.exit_policy})"
        )

