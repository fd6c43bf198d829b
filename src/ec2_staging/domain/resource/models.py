"""Managed resource models.

A managed resource is a remote handle plus the local bookkeeping the manager
needs to reuse it: credential reference and username for servers, logical
name, attachment and mount point for volumes. Identity is object identity;
the registry keys everything by the remote identifier.
"""

from dataclasses import dataclass, field
from typing import Any, Optional

from ec2_staging.domain.base.ports.cloud_gateway_port import RemoteObject
from ec2_staging.domain.resource.states import ServerState, VolumeState


@dataclass(eq=False)
class ManagedServer:
    """A staging server: one remote compute instance.

    Attributes:
        remote: Gateway handle for the instance.
        username: Login user for readiness probes and transfers.
        key_name: Name of the remote key pair the instance was launched with.
        keyfile: Local path of the private key for ``key_name``.
        state: Last observed lifecycle state.
        reachable: Derived readiness flag. Never persisted.
    """

    remote: RemoteObject
    username: str
    key_name: Optional[str] = None
    keyfile: Optional[str] = None
    state: ServerState = ServerState.PENDING
    reachable: bool = field(default=False, repr=False)

    kind = "server"

    @property
    def id(self) -> str:
        return self.remote.id

    @property
    def zone(self) -> Optional[str]:
        return self.remote.zone

    @property
    def instance_type(self) -> Optional[str]:
        return self.remote.attributes.get("instance_type")

    @property
    def host(self) -> Optional[str]:
        """Address used to reach the server, public first."""
        attrs = self.remote.attributes
        return (
            attrs.get("public_dns_name")
            or attrs.get("public_ip_address")
            or attrs.get("private_ip_address")
        )

    def current_status(self) -> str:
        """Refresh ``state`` from the remote side and return it."""
        status = self.remote.current_status()
        try:
            self.state = ServerState(status)
        except ValueError:
            self.state = ServerState.UNKNOWN
        if self.state != ServerState.RUNNING:
            self.reachable = False
        return status

    def __str__(self) -> str:
        return f"{self.id}@{self.zone}"


@dataclass(eq=False)
class ManagedVolume:
    """A staging volume: one remote block-storage volume.

    ``server_id`` is a weak link by identifier to the server the volume is
    attached to; the volume never owns the server.
    """

    remote: RemoteObject
    name: str
    size: Optional[int] = None
    fstype: str = "ext4"
    server_id: Optional[str] = None
    device: Optional[str] = None
    mount_path: Optional[str] = None
    state: VolumeState = VolumeState.CREATING

    kind = "volume"

    @property
    def id(self) -> str:
        return self.remote.id

    @property
    def zone(self) -> Optional[str]:
        return self.remote.zone

    @property
    def is_attached(self) -> bool:
        return self.server_id is not None

    def current_status(self) -> str:
        status = self.remote.current_status()
        try:
            self.state = VolumeState(status)
        except ValueError:
            self.state = VolumeState.UNKNOWN
        return status

    def __str__(self) -> str:
        return f"{self.name}({self.id}@{self.zone})"


@dataclass
class ServerConstraints:
    """Requirements for acquiring a server. Unset fields use configuration."""

    availability_zone: Optional[str] = None
    instance_type: Optional[str] = None
    architecture: Optional[str] = None
    image_name: Optional[str] = None
    root_type: Optional[str] = None
    reuse: Optional[bool] = None


@dataclass
class VolumeConstraints:
    """Requirements for acquiring a volume. Unset fields use configuration."""

    name: Optional[str] = None
    size: Optional[int] = None
    fstype: Optional[str] = None
    availability_zone: Optional[str] = None
    snapshot_id: Optional[str] = None
    reuse: Optional[bool] = None


@dataclass(frozen=True)
class TransferEndpoint:
    """Where an external transfer tool should read or write a volume's data."""

    host: Optional[str]
    username: str
    keyfile: Optional[str]
    path: str
    volume_id: str
    server_id: str


@dataclass
class ScanResult:
    """Outcome of a reconciliation scan."""

    servers: list[ManagedServer] = field(default_factory=list)
    volumes: list[ManagedVolume] = field(default_factory=list)
    skipped: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "servers": [s.id for s in self.servers],
            "volumes": [v.id for v in self.volumes],
            "skipped": dict(self.skipped),
        }
