"""Remote object handles built from EC2 API responses."""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from ec2_staging.providers.aws.infrastructure.ec2_gateway import Ec2Gateway


@dataclass(eq=False)
class Ec2RemoteObject:
    """A handle on one EC2 resource.

    ``attributes`` holds the snake_case fields the core reads; the raw
    response stays available in ``raw``. Status queries go back through the
    gateway that created the handle.
    """

    kind: str
    id: str
    zone: Optional[str] = None
    tags: dict[str, str] = field(default_factory=dict)
    attributes: dict[str, Any] = field(default_factory=dict)
    raw: dict[str, Any] = field(default_factory=dict, repr=False)
    gateway: Optional["Ec2Gateway"] = field(default=None, repr=False)

    def current_status(self) -> str:
        if self.gateway is None:
            return str(self.attributes.get("state", "unknown"))
        return self.gateway.status_of(self)


def tags_from(data: dict[str, Any]) -> dict[str, str]:
    return {t["Key"]: t["Value"] for t in data.get("Tags") or []}


def instance_from(data: dict[str, Any], gateway=None) -> Ec2RemoteObject:
    return Ec2RemoteObject(
        kind="instance",
        id=data["InstanceId"],
        zone=(data.get("Placement") or {}).get("AvailabilityZone"),
        tags=tags_from(data),
        attributes={
            "state": (data.get("State") or {}).get("Name"),
            "instance_type": data.get("InstanceType"),
            "image_id": data.get("ImageId"),
            "key_name": data.get("KeyName"),
            "public_dns_name": data.get("PublicDnsName") or None,
            "public_ip_address": data.get("PublicIpAddress"),
            "private_ip_address": data.get("PrivateIpAddress"),
            "launch_time": data.get("LaunchTime"),
        },
        raw=data,
        gateway=gateway,
    )


def volume_from(data: dict[str, Any], gateway=None) -> Ec2RemoteObject:
    attachments = data.get("Attachments") or []
    attachment = attachments[0] if attachments else {}
    return Ec2RemoteObject(
        kind="volume",
        id=data["VolumeId"],
        zone=data.get("AvailabilityZone"),
        tags=tags_from(data),
        attributes={
            "state": data.get("State"),
            "size": data.get("Size"),
            "snapshot_id": data.get("SnapshotId") or None,
            "attachment_instance_id": attachment.get("InstanceId"),
            "attachment_device": attachment.get("Device"),
            "attachment_state": attachment.get("State"),
        },
        raw=data,
        gateway=gateway,
    )


def attachment_from(data: dict[str, Any], gateway=None) -> Ec2RemoteObject:
    return Ec2RemoteObject(
        kind="attachment",
        id=data["VolumeId"],
        attributes={
            "state": data.get("State"),
            "instance_id": data.get("InstanceId"),
            "device": data.get("Device"),
        },
        raw=data,
        gateway=gateway,
    )


def snapshot_from(data: dict[str, Any], gateway=None) -> Ec2RemoteObject:
    return Ec2RemoteObject(
        kind="snapshot",
        id=data["SnapshotId"],
        tags=tags_from(data),
        attributes={
            "state": data.get("State"),
            "volume_id": data.get("VolumeId"),
            "description": data.get("Description"),
            "progress": data.get("Progress"),
        },
        raw=data,
        gateway=gateway,
    )


def image_from(data: dict[str, Any], gateway=None) -> Ec2RemoteObject:
    return Ec2RemoteObject(
        kind="image",
        id=data["ImageId"],
        tags=tags_from(data),
        attributes={
            "state": data.get("State"),
            "name": data.get("Name"),
            "architecture": data.get("Architecture"),
            "root_device_type": data.get("RootDeviceType"),
        },
        raw=data,
        gateway=gateway,
    )


def key_pair_from(data: dict[str, Any], gateway=None) -> Ec2RemoteObject:
    return Ec2RemoteObject(
        kind="key_pair",
        id=data["KeyName"],
        tags=tags_from(data),
        attributes={
            "state": "available",
            "fingerprint": data.get("KeyFingerprint"),
            "key_pair_id": data.get("KeyPairId"),
            "private_key": data.get("KeyMaterial"),
        },
        raw={k: v for k, v in data.items() if k != "KeyMaterial"},
        gateway=gateway,
    )


def security_group_from(data: dict[str, Any], gateway=None) -> Ec2RemoteObject:
    return Ec2RemoteObject(
        kind="security_group",
        id=data["GroupId"],
        tags=tags_from(data),
        attributes={
            "state": "available",
            "group_name": data.get("GroupName"),
            "description": data.get("Description"),
        },
        raw=data,
        gateway=gateway,
    )


def zone_from(data: dict[str, Any], gateway=None) -> Ec2RemoteObject:
    return Ec2RemoteObject(
        kind="zone",
        id=data["ZoneName"],
        zone=data["ZoneName"],
        attributes={"state": data.get("State"), "region": data.get("RegionName")},
        raw=data,
        gateway=gateway,
    )
