"""Provisioning engine: reuse or create staging servers and volumes."""

import time
import uuid
from typing import Optional

from ec2_staging.application.convergence import ConvergencePoller
from ec2_staging.application.credentials import KEY_PREFIX, CredentialStore
from ec2_staging.application.readiness import ReadinessProber
from ec2_staging.application.registry import ResourceRegistry
from ec2_staging.application.zone_selection import MostActiveZonePolicy, ZoneSelectionPolicy
from ec2_staging.config.schemas.staging_schema import StagingConfig
from ec2_staging.domain.base.exceptions import (
    ConvergenceTimeoutError,
    NoMatchingImageError,
    ProvisioningError,
    ReadinessTimeoutError,
)
from ec2_staging.domain.base.ports.cloud_gateway_port import (
    CloudGatewayPort,
    GatewayAction,
    RemoteObject,
)
from ec2_staging.domain.base.ports.logging_port import LoggingPort
from ec2_staging.domain.resource.models import (
    ManagedServer,
    ManagedVolume,
    ServerConstraints,
    VolumeConstraints,
)
from ec2_staging.domain.resource.states import (
    INSTANCE_TERMINAL_STATES,
    ServerState,
    VolumeState,
)
from ec2_staging.infrastructure.adapters.logging_adapter import LoggingAdapter
from ec2_staging.infrastructure.timing import Clock, Deadline

OWNER = "ec2_staging"

ROLE_TAG = "Role"
SERVER_ROLE = "StagingInstance"
VOLUME_ROLE = "StagingVolume"
GROUP_ROLE = "StagingGroup"
USERNAME_TAG = "StagingUsername"
NAME_TAG = "StagingName"

SSH_PORT = 22
MICRO_INSTANCE_TYPE = "t1.micro"
VOLUME_NAME_PREFIX = "StagingVolume"


def volume_description(name: str) -> str:
    """Description tag written on staging volumes and their snapshots."""
    return f"Staging volume for {name} created by {OWNER}"


def new_token() -> str:
    return uuid.uuid4().hex[:12]


class ProvisioningEngine:
    """
    Acquires servers and volumes for the staging manager.

    Acquisition first looks for a reusable resource in the registry and only
    calls the gateway when none fits. New servers are registered before they
    are waited on, so a server that times out on startup stays registered and
    is disposed of by the exit policy.
    """

    def __init__(
        self,
        gateway: CloudGatewayPort,
        registry: ResourceRegistry,
        poller: ConvergencePoller,
        prober: ReadinessProber,
        credentials: CredentialStore,
        config: Optional[StagingConfig] = None,
        zone_policy: Optional[ZoneSelectionPolicy] = None,
        logger: Optional[LoggingPort] = None,
        clock: Clock = time.monotonic,
    ) -> None:
        self.gateway = gateway
        self.registry = registry
        self.poller = poller
        self.prober = prober
        self.credentials = credentials
        self.config = config or StagingConfig()
        self.zone_policy = zone_policy or MostActiveZonePolicy()
        self._logger = logger or LoggingAdapter("provisioning", quiet=self.config.quiet)
        self._clock = clock
        self._volume_counter = 0
        self._security_group_id: Optional[str] = None

    # Servers

    def acquire_server(self, constraints: Optional[ServerConstraints] = None) -> ManagedServer:
        """
        Return a usable server in the requested zone, reusing one when allowed.

        Args:
            constraints: Zone, instance type and image selectors. Unset fields
                fall back to configuration.

        Returns:
            A registered server that is running and reachable.

        Raises:
            NoMatchingImageError: No image matched; nothing was created.
            CredentialStoreError: The private key could not be written.
            ConvergenceTimeoutError: The server did not settle in time.
            ReadinessTimeoutError: The server ran but never became reachable.
            ProvisioningError: The server settled in a state other than running.
        """
        constraints = constraints or ServerConstraints()
        instance_type = constraints.instance_type or self.config.instance_type
        zone = self.select_zone(constraints.availability_zone)

        reuse = self.config.reuse_servers if constraints.reuse is None else constraints.reuse
        if reuse:
            server = self._reusable_server(zone, instance_type)
            if server is not None:
                return server

        root_type = constraints.root_type or self.config.search_root_type
        if instance_type == MICRO_INSTANCE_TYPE:
            root_type = "ebs"
        image_id = self.find_image(
            constraints.image_name or self.config.image_name,
            constraints.architecture or self.config.architecture,
            root_type,
        )
        key_name, keyfile = self.ensure_key_pair()
        group_id = self.ensure_security_group()

        instances = self.gateway.invoke(
            GatewayAction.RUN_INSTANCES,
            {
                "image_id": image_id,
                "instance_type": instance_type,
                "key_name": key_name,
                "security_group_ids": [group_id],
                "availability_zone": zone,
                "min_count": 1,
                "max_count": 1,
            },
        )
        if not instances:
            raise ProvisioningError(f"run_instances returned no instance in {zone}")
        instance = instances[0]
        self._tag(
            instance.id,
            {
                ROLE_TAG: SERVER_ROLE,
                USERNAME_TAG: self.config.username,
                "Name": f"Staging server created by {OWNER}",
            },
        )

        server = ManagedServer(
            remote=instance,
            username=self.config.username,
            key_name=key_name,
            keyfile=keyfile,
        )
        self.registry.register(server)
        self._logger.info("Launched %s in %s from %s", server.id, zone, image_id)

        self._bring_up(server, Deadline(self.config.server_startup_timeout, self._clock))
        return server

    def get_server_in_zone(self, zone: str) -> ManagedServer:
        """
        Return a running, reachable server in ``zone``, provisioning one if needed.

        Any registered server in the zone qualifies regardless of instance
        type; a stopped one is started and a pending one is waited for.
        """
        server = self._reusable_server(zone)
        if server is not None:
            return server
        return self.acquire_server(ServerConstraints(availability_zone=zone, reuse=False))

    def select_zone(self, zone: Optional[str] = None) -> str:
        if zone:
            return zone
        if self.config.availability_zone:
            return self.config.availability_zone
        return self.zone_policy.select_zone(self.registry, self.gateway)

    def _reusable_server(
        self, zone: str, instance_type: Optional[str] = None
    ) -> Optional[ManagedServer]:
        """
        Bring a registered server in ``zone`` to running and reachable.

        Reachable servers win without any remote call. Other candidates are
        started or waited for in turn; one that cannot be brought up within
        the startup deadline stays registered for the exit policy and the
        next candidate is tried. None means nothing in the zone is usable.
        """
        candidates = [
            s
            for s in self.registry.servers_in_zone(zone)
            if s.state not in (ServerState.TERMINATED, ServerState.SHUTTING_DOWN)
            and (instance_type is None or s.instance_type in (None, instance_type))
        ]
        for server in candidates:
            if server.reachable:
                self._logger.debug("Reusing reachable server %s", server.id)
                return server

        for server in candidates:
            self._logger.info("Reusing server %s (%s)", server.id, server.state)
            try:
                self._wake(server, Deadline(self.config.server_startup_timeout, self._clock))
            except (ConvergenceTimeoutError, ReadinessTimeoutError, ProvisioningError) as e:
                self._logger.warning("Cannot reuse server %s: %s", server.id, e)
                continue
            return server
        return None

    def _wake(self, server: ManagedServer, deadline: Deadline) -> None:
        if server.state not in (ServerState.RUNNING, ServerState.STOPPED):
            self.poller.await_terminal([server], INSTANCE_TERMINAL_STATES, deadline=deadline)
        if server.state == ServerState.STOPPED:
            self.gateway.invoke(GatewayAction.START_INSTANCES, {"instance_ids": [server.id]})
            self.poller.await_terminal([server], INSTANCE_TERMINAL_STATES, deadline=deadline)
        self._ensure_running(server)
        self.prober.await_reachable([server], deadline=deadline)

    def _bring_up(self, server: ManagedServer, deadline: Deadline) -> None:
        self.poller.await_terminal([server], INSTANCE_TERMINAL_STATES, deadline=deadline)
        self._ensure_running(server)
        self.prober.await_reachable([server], deadline=deadline)

    def _ensure_running(self, server: ManagedServer) -> None:
        if server.state == ServerState.RUNNING:
            return
        if server.state == ServerState.TERMINATED:
            self.registry.unregister(server.id)
        raise ProvisioningError(
            f"Server {server.id} settled in state {server.state} instead of running",
            {"server_id": server.id, "state": str(server.state)},
        )

    # Images and credentials

    def find_image(self, image_name: str, architecture: str, root_type: str) -> str:
        """
        Pick the image with the lexicographically greatest name among matches.

        Image names are assumed to embed a sortable date, which holds for the
        stock Ubuntu images.
        """
        self._logger.info("Searching for a staging image matching %s", image_name)
        candidates = self.gateway.invoke(
            GatewayAction.DESCRIBE_IMAGES,
            {
                "filters": {
                    "name": f"*{image_name}*",
                    "root-device-type": root_type,
                    "architecture": architecture,
                }
            },
        )
        if not candidates:
            raise NoMatchingImageError(
                f"No image matches name={image_name} architecture={architecture} "
                f"root-device-type={root_type}",
                {"image_name": image_name, "architecture": architecture, "root_type": root_type},
            )
        best = max(candidates, key=lambda image: image.attributes.get("name") or "")
        self._logger.info("Found %s: %s", best.id, best.attributes.get("name"))
        return best.id

    def ensure_key_pair(self) -> tuple[str, str]:
        """Return ``(key_name, keyfile)``, reusing a stored key when allowed."""
        if self.config.reuse_keys:
            candidates = self.gateway.invoke(
                GatewayAction.DESCRIBE_KEY_PAIRS, {"filters": {"key-name": f"{KEY_PREFIX}*"}}
            )
            for candidate in sorted(candidates, key=lambda kp: kp.id):
                keyfile = self.credentials.find_keyfile(candidate.id)
                if keyfile:
                    self._logger.debug("Reusing key pair %s", candidate.id)
                    return candidate.id, keyfile

        key_name = f"{KEY_PREFIX}{new_token()}"
        self._logger.info("Creating keypair %s", key_name)
        created = self.gateway.invoke(GatewayAction.CREATE_KEY_PAIR, {"key_name": key_name})
        material = created[0].attributes.get("private_key") if created else None
        if not material:
            raise ProvisioningError(f"Key pair {key_name} was created without key material")
        keyfile = self.credentials.save_private_key(key_name, material)
        return key_name, keyfile

    def ensure_security_group(self) -> str:
        """Return the id of the ssh-only staging security group, creating it once."""
        if self._security_group_id:
            return self._security_group_id

        groups = self.gateway.invoke(
            GatewayAction.DESCRIBE_SECURITY_GROUPS, {"filters": {f"tag:{ROLE_TAG}": GROUP_ROLE}}
        )
        if groups:
            self._security_group_id = groups[0].id
            return self._security_group_id

        name = f"staging-group-{new_token()}"
        self._logger.info("Creating staging security group %s", name)
        created = self.gateway.invoke(
            GatewayAction.CREATE_SECURITY_GROUP,
            {"group_name": name, "description": f"SSH security group created by {OWNER}"},
        )
        if not created:
            raise ProvisioningError(f"Security group {name} was not created")
        group_id = created[0].id
        self.gateway.invoke(
            GatewayAction.AUTHORIZE_SECURITY_GROUP_INGRESS,
            {
                "group_id": group_id,
                "protocol": "tcp",
                "from_port": SSH_PORT,
                "to_port": SSH_PORT,
                "cidr": "0.0.0.0/0",
            },
        )
        self._tag(group_id, {ROLE_TAG: GROUP_ROLE})
        self._security_group_id = group_id
        return group_id

    # Volumes

    def next_volume_name(self) -> str:
        self._volume_counter += 1
        return f"{VOLUME_NAME_PREFIX}{self._volume_counter:03d}"

    def acquire_volume(self, constraints: Optional[VolumeConstraints] = None) -> ManagedVolume:
        """
        Return an idle volume with the requested name, creating one if needed.

        Creation does not wait for the volume to become available; attaching
        it does.
        """
        constraints = constraints or VolumeConstraints()
        name = constraints.name or self.next_volume_name()
        size = constraints.size or self.config.default_volume_size
        fstype = constraints.fstype or self.config.default_fstype
        reuse = self.config.reuse_volumes if constraints.reuse is None else constraints.reuse

        zone = constraints.availability_zone
        if not zone:
            zone = self.select_zone()
            self.get_server_in_zone(zone)

        if reuse:
            for volume in self.registry.volumes_in_zone(zone):
                if (
                    volume.name == name
                    and not volume.is_attached
                    and volume.state == VolumeState.AVAILABLE
                ):
                    self._logger.debug("Reusing volume %s", volume)
                    return volume

        params = {"availability_zone": zone, "size": size}
        if constraints.snapshot_id:
            params["snapshot_id"] = constraints.snapshot_id
        created = self.gateway.invoke(GatewayAction.CREATE_VOLUME, params)
        if not created:
            raise ProvisioningError(f"create_volume returned no volume in {zone}")
        remote = created[0]
        self._tag(
            remote.id,
            {ROLE_TAG: VOLUME_ROLE, NAME_TAG: name, "Name": volume_description(name)},
        )

        volume = ManagedVolume(
            remote=remote,
            name=name,
            size=size,
            fstype=fstype,
        )
        self.registry.register(volume)
        self._logger.info("Created volume %s (%s GiB) in %s", volume, size, zone)
        return volume

    def _tag(self, resource_id: str, tags: dict[str, str]) -> list[RemoteObject]:
        return self.gateway.invoke(
            GatewayAction.CREATE_TAGS, {"resource_ids": [resource_id], "tags": tags}
        )
