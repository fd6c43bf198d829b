"""Lifecycle controller: bulk state changes, volume moves and reconciliation."""

import os
import string
import time
from typing import Optional

from ec2_staging.application.convergence import ConvergencePoller
from ec2_staging.application.credentials import CredentialStore
from ec2_staging.application.provisioning import (
    NAME_TAG,
    ROLE_TAG,
    SERVER_ROLE,
    USERNAME_TAG,
    VOLUME_ROLE,
)
from ec2_staging.application.readiness import ReadinessProber
from ec2_staging.application.registry import ResourceRegistry
from ec2_staging.config.schemas.staging_schema import StagingConfig
from ec2_staging.domain.base.exceptions import (
    ProvisioningError,
    ZoneMismatchError,
)
from ec2_staging.domain.base.ports.cloud_gateway_port import (
    CloudGatewayPort,
    GatewayAction,
    RemoteObject,
)
from ec2_staging.domain.base.ports.logging_port import LoggingPort
from ec2_staging.domain.resource.models import ManagedServer, ManagedVolume, ScanResult
from ec2_staging.domain.resource.states import (
    ATTACHMENT_TERMINAL_STATES,
    INSTANCE_TERMINAL_STATES,
    SNAPSHOT_TERMINAL_STATES,
    STOPPED_STATES,
    TERMINATED_STATES,
    VOLUME_DELETED_STATES,
    AttachmentState,
    ExitPolicy,
    ServerState,
    VolumeState,
)
from ec2_staging.infrastructure.adapters.logging_adapter import LoggingAdapter
from ec2_staging.infrastructure.timing import Clock, Deadline

ADOPTABLE_STATES = [ServerState.RUNNING.value, ServerState.STOPPED.value]
DEVICE_LETTERS = string.ascii_lowercase[5:16]  # /dev/sdf .. /dev/sdp


def _state_of(enum_cls, value, default):
    try:
        return enum_cls.from_value(value)
    except ValueError:
        return default


class LifecycleController:
    """
    Bulk operations over the registry and the exit policy.

    Every state change is issued through the gateway and then confirmed with
    the convergence poller. Failures propagate to the caller.
    """

    def __init__(
        self,
        gateway: CloudGatewayPort,
        registry: ResourceRegistry,
        poller: ConvergencePoller,
        prober: ReadinessProber,
        credentials: CredentialStore,
        config: Optional[StagingConfig] = None,
        logger: Optional[LoggingPort] = None,
        clock: Clock = time.monotonic,
    ) -> None:
        self.gateway = gateway
        self.registry = registry
        self.poller = poller
        self.prober = prober
        self.credentials = credentials
        self.config = config or StagingConfig()
        self._logger = logger or LoggingAdapter("lifecycle", quiet=self.config.quiet)
        self._clock = clock

    # Bulk server operations

    def start_all(self) -> list[ManagedServer]:
        """Start every registered server that is currently stopped and wait until reachable."""
        stopped = [
            s for s in self.registry.servers() if s.current_status() == ServerState.STOPPED.value
        ]
        if not stopped:
            return []

        ids = [s.id for s in stopped]
        self._logger.info("Starting instances: %s", ", ".join(ids))
        deadline = Deadline(self.config.server_startup_timeout, self._clock)
        self.gateway.invoke(GatewayAction.START_INSTANCES, {"instance_ids": ids})
        self.poller.await_terminal(stopped, INSTANCE_TERMINAL_STATES, deadline=deadline)

        running = [s for s in stopped if s.state == ServerState.RUNNING]
        self.prober.await_reachable(running, deadline=deadline)
        return stopped

    def stop_all(self) -> list[ManagedServer]:
        """Stop every registered server that is not terminated."""
        servers = [s for s in self.registry.servers() if s.state != ServerState.TERMINATED]
        if not servers:
            return []

        ids = [s.id for s in servers]
        self._logger.info("Stopping all servers: %s", ", ".join(ids))
        self.gateway.invoke(GatewayAction.STOP_INSTANCES, {"instance_ids": ids})
        self.poller.await_terminal(servers, STOPPED_STATES, timeout=self.config.wait_timeout)
        for server in servers:
            server.reachable = False
        return servers

    def terminate_all(self) -> list[str]:
        """
        Terminate every registered server and evict it once termination is confirmed.

        Key pairs used by the servers are deleted remotely and locally unless
        ``reuse_keys`` is set.

        Returns:
            Identifiers of the terminated servers.

        Raises:
            ConvergenceTimeoutError: Termination was not confirmed in time.
                Nothing is unregistered in that case.
        """
        servers = self.registry.servers()
        if not servers:
            return []

        ids = [s.id for s in servers]
        self._logger.info("Terminating all servers: %s", ", ".join(ids))
        self.gateway.invoke(GatewayAction.TERMINATE_INSTANCES, {"instance_ids": ids})
        self.poller.await_terminal(servers, TERMINATED_STATES, timeout=self.config.wait_timeout)

        for server in servers:
            self._forget_server(server)

        if not self.config.reuse_keys:
            for key_name in sorted({s.key_name for s in servers if s.key_name}):
                self.delete_key_pair(key_name)
        return ids

    def terminate_server(self, server: ManagedServer) -> None:
        self._logger.info("Terminating %s", server.id)
        self.gateway.invoke(GatewayAction.TERMINATE_INSTANCES, {"instance_ids": [server.id]})
        self.poller.await_terminal([server], TERMINATED_STATES, timeout=self.config.wait_timeout)
        self._forget_server(server)

    def _forget_server(self, server: ManagedServer) -> None:
        server.reachable = False
        for volume in self.registry.volumes_attached_to(server.id):
            volume.server_id = None
            volume.device = None
            volume.mount_path = None
        self.registry.unregister(server.id)

    def delete_key_pair(self, key_name: str) -> None:
        self._logger.debug("Deleting key pair %s", key_name)
        self.gateway.invoke(GatewayAction.DELETE_KEY_PAIR, {"key_name": key_name})
        self.credentials.delete(key_name)

    def apply_exit_policy(self, policy: ExitPolicy) -> None:
        policy = ExitPolicy(policy)
        if policy == ExitPolicy.TERMINATE:
            self.terminate_all()
        elif policy == ExitPolicy.STOP:
            self.stop_all()
        else:
            self._logger.debug("Leaving %d servers running", len(self.registry.servers()))

    # Volumes

    def attach_volume(
        self, volume: ManagedVolume, server: ManagedServer, device: Optional[str] = None
    ) -> ManagedVolume:
        """Attach ``volume`` to ``server`` and wait for the attachment to settle."""
        if volume.zone != server.zone:
            raise ZoneMismatchError(
                f"Cannot attach {volume} in {volume.zone} to {server.id} in {server.zone}",
                {"volume_id": volume.id, "server_id": server.id},
            )
        if volume.server_id == server.id:
            return volume

        device = device or self._next_device(server)
        self._logger.info("Attaching %s to %s as %s", volume, server.id, device)
        attachments = self.gateway.invoke(
            GatewayAction.ATTACH_VOLUME,
            {"volume_id": volume.id, "instance_id": server.id, "device": device},
        )
        statuses = self.poller.await_terminal(
            attachments, ATTACHMENT_TERMINAL_STATES, timeout=self.config.wait_timeout
        )
        if any(status != AttachmentState.ATTACHED.value for status in statuses.values()):
            raise ProvisioningError(
                f"Volume {volume.id} did not attach to {server.id}",
                {"volume_id": volume.id, "server_id": server.id, "statuses": statuses},
            )

        volume.server_id = server.id
        volume.device = device
        volume.mount_path = os.path.join(self.config.mount_root, volume.name)
        volume.state = VolumeState.IN_USE
        self.registry.register(volume)
        return volume

    def detach_volume(self, volume: ManagedVolume) -> ManagedVolume:
        if not volume.is_attached:
            return volume

        self._logger.info("Detaching %s from %s", volume, volume.server_id)
        attachments = self.gateway.invoke(
            GatewayAction.DETACH_VOLUME,
            {"volume_id": volume.id, "instance_id": volume.server_id},
        )
        self.poller.await_terminal(
            attachments, ATTACHMENT_TERMINAL_STATES, timeout=self.config.wait_timeout
        )
        volume.server_id = None
        volume.device = None
        volume.mount_path = None
        volume.state = VolumeState.AVAILABLE
        return volume

    def delete_volume(self, volume: ManagedVolume) -> None:
        """Detach if needed, delete, confirm deletion and unregister."""
        self.detach_volume(volume)
        self._logger.info("Deleting %s", volume)
        self.gateway.invoke(GatewayAction.DELETE_VOLUME, {"volume_id": volume.id})
        self.poller.await_terminal([volume], VOLUME_DELETED_STATES, timeout=self.config.wait_timeout)
        self.registry.unregister(volume.id)

    def create_snapshot(
        self, volume: ManagedVolume, description: Optional[str] = None, wait: bool = False
    ) -> RemoteObject:
        """
        Snapshot ``volume`` and tag the snapshot with the volume's name.

        With ``wait`` set, block until the snapshot completes. Snapshot
        completion has no time bound.
        """
        self._logger.info("Snapshotting %s", volume)
        params = {"volume_id": volume.id}
        if description:
            params["description"] = description
        snapshots = self.gateway.invoke(GatewayAction.CREATE_SNAPSHOT, params)
        if not snapshots:
            raise ProvisioningError(f"create_snapshot returned nothing for {volume.id}")
        snapshot = snapshots[0]
        self.gateway.invoke(
            GatewayAction.CREATE_TAGS,
            {
                "resource_ids": [snapshot.id],
                "tags": {NAME_TAG: volume.name, "Name": f"Staging volume {volume.name}"},
            },
        )
        if wait:
            self.poller.await_terminal([snapshot], SNAPSHOT_TERMINAL_STATES, timeout=None)
        return snapshot

    def _next_device(self, server: ManagedServer) -> str:
        used = {v.device for v in self.registry.volumes_attached_to(server.id)}
        for letter in DEVICE_LETTERS:
            device = f"/dev/sd{letter}"
            if device not in used:
                return device
        raise ProvisioningError(f"No free block device names left on {server.id}")

    # Reconciliation

    def scan(self) -> ScanResult:
        """
        Adopt staging resources left behind by an earlier manager.

        Instances need a key name, a local key file and a username tag to be
        adopted; anything else is reported in ``skipped``. Volumes are scanned
        after instances so attachments can link to adopted servers.
        """
        result = ScanResult()
        self._scan_instances(result)
        self._scan_volumes(result)
        self._logger.info(
            "Scan adopted %d servers and %d volumes",
            len(result.servers),
            len(result.volumes),
        )
        return result

    def _scan_instances(self, result: ScanResult) -> None:
        instances = self.gateway.invoke(
            GatewayAction.DESCRIBE_INSTANCES,
            {
                "filters": {
                    f"tag:{ROLE_TAG}": SERVER_ROLE,
                    "instance-state-name": ADOPTABLE_STATES,
                }
            },
        )
        for instance in instances:
            if instance.id in self.registry:
                continue
            key_name = instance.attributes.get("key_name")
            if not key_name:
                result.skipped[instance.id] = "no key pair"
                continue
            keyfile = self.credentials.find_keyfile(key_name)
            if not keyfile:
                result.skipped[instance.id] = f"no local key file for {key_name}"
                continue
            username = instance.tags.get(USERNAME_TAG)
            if not username:
                result.skipped[instance.id] = f"no {USERNAME_TAG} tag"
                continue

            server = ManagedServer(
                remote=instance,
                username=username,
                key_name=key_name,
                keyfile=keyfile,
                state=_state_of(ServerState, instance.attributes.get("state"), ServerState.UNKNOWN),
            )
            self.registry.register(server)
            result.servers.append(server)

    def _scan_volumes(self, result: ScanResult) -> None:
        volumes = self.gateway.invoke(
            GatewayAction.DESCRIBE_VOLUMES, {"filters": {f"tag:{ROLE_TAG}": VOLUME_ROLE}}
        )
        for remote in volumes:
            if remote.id in self.registry:
                continue
            attached_to = remote.attributes.get("attachment_instance_id")
            server = self.registry.find_server_by_instance(attached_to) if attached_to else None
            volume = ManagedVolume(
                remote=remote,
                name=remote.tags.get(NAME_TAG) or remote.id,
                size=remote.attributes.get("size"),
                server_id=server.id if server else None,
                device=remote.attributes.get("attachment_device") if server else None,
                state=_state_of(VolumeState, remote.attributes.get("state"), VolumeState.UNKNOWN),
            )
            try:
                self.registry.register(volume)
            except ZoneMismatchError as e:
                result.skipped[remote.id] = e.message
                continue
            result.volumes.append(volume)
