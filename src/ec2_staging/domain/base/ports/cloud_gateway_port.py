"""Domain port for the cloud API gateway."""

from abc import ABC, abstractmethod
from typing import Any, Optional, Protocol, runtime_checkable

from ec2_staging.domain.base.enums import BaseEnumModel


class GatewayAction(BaseEnumModel):
    """Canonical gateway action names understood by every gateway."""

    DESCRIBE_IMAGES = "describe_images"
    DESCRIBE_INSTANCES = "describe_instances"
    RUN_INSTANCES = "run_instances"
    START_INSTANCES = "start_instances"
    STOP_INSTANCES = "stop_instances"
    TERMINATE_INSTANCES = "terminate_instances"
    CREATE_TAGS = "create_tags"
    DESCRIBE_KEY_PAIRS = "describe_key_pairs"
    CREATE_KEY_PAIR = "create_key_pair"
    DELETE_KEY_PAIR = "delete_key_pair"
    DESCRIBE_SECURITY_GROUPS = "describe_security_groups"
    CREATE_SECURITY_GROUP = "create_security_group"
    AUTHORIZE_SECURITY_GROUP_INGRESS = "authorize_security_group_ingress"
    DESCRIBE_VOLUMES = "describe_volumes"
    CREATE_VOLUME = "create_volume"
    ATTACH_VOLUME = "attach_volume"
    DETACH_VOLUME = "detach_volume"
    DELETE_VOLUME = "delete_volume"
    CREATE_SNAPSHOT = "create_snapshot"
    DESCRIBE_SNAPSHOTS = "describe_snapshots"
    DESCRIBE_AVAILABILITY_ZONES = "describe_availability_zones"


@runtime_checkable
class RemoteObject(Protocol):
    """A handle on a resource returned by the gateway."""

    kind: str
    id: str
    zone: Optional[str]
    tags: dict[str, str]
    attributes: dict[str, Any]

    def current_status(self) -> str:
        """Query the remote side for the resource's status."""
        ...


class CloudGatewayPort(ABC):
    """Port through which the core talks to the remote compute API.

    Implementations raise ``RateLimitError`` for throttling and
    ``PermanentAPIError`` for every other rejected call.
    """

    @abstractmethod
    def invoke(
        self, action: "GatewayAction | str", params: Optional[dict[str, Any]] = None
    ) -> list[RemoteObject]:
        """Perform ``action`` with ``params`` and return the resulting objects."""
