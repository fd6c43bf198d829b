"""Cloud API gateway backed by the boto3 EC2 client."""

from typing import Any, Callable, Optional

from botocore.exceptions import ClientError

from ec2_staging.config.schemas.staging_schema import StagingConfig
from ec2_staging.domain.base.exceptions import PermanentAPIError, RateLimitError
from ec2_staging.domain.base.ports.cloud_gateway_port import (
    CloudGatewayPort,
    GatewayAction,
    RemoteObject,
)
from ec2_staging.domain.base.ports.logging_port import LoggingPort
from ec2_staging.infrastructure.adapters.logging_adapter import LoggingAdapter
from ec2_staging.infrastructure.resilience.retry import build_retrying
from ec2_staging.providers.aws.infrastructure.aws_client import AWSClient
from ec2_staging.providers.aws.infrastructure.remote_objects import (
    Ec2RemoteObject,
    attachment_from,
    image_from,
    instance_from,
    key_pair_from,
    security_group_from,
    snapshot_from,
    volume_from,
    zone_from,
)

RATE_LIMIT_CODES = frozenset(
    {"RequestLimitExceeded", "Throttling", "ThrottlingException", "TooManyRequestsException"}
)


def build_filters(filters: Optional[dict[str, Any]]) -> list[dict[str, Any]]:
    """Turn ``{"tag:Role": "x", "state": ["a", "b"]}`` into EC2 filter structures."""
    result = []
    for name, values in (filters or {}).items():
        if not isinstance(values, (list, tuple, set, frozenset)):
            values = [values]
        result.append({"Name": name, "Values": [str(v) for v in values]})
    return result


def convert_client_error(error: ClientError, action: str = "unknown") -> Exception:
    """Convert a botocore ClientError to a gateway exception."""
    error_code = error.response.get("Error", {}).get("Code", "Unknown")
    error_message = error.response.get("Error", {}).get("Message", str(error))

    if error_code in RATE_LIMIT_CODES:
        return RateLimitError(error_message, code=error_code, action=action)
    return PermanentAPIError(
        f"AWS Error: {error_code} - {error_message}", code=error_code, action=action
    )


class Ec2Gateway(CloudGatewayPort):
    """
    Translates canonical gateway actions into EC2 API calls.

    Parameters are snake_case dicts; ``filters`` is accepted wherever the EC2
    call takes filters. Every ClientError is converted: throttling codes to
    RateLimitError, everything else to PermanentAPIError.
    """

    def __init__(
        self,
        aws_client: AWSClient,
        config: Optional[StagingConfig] = None,
        logger: Optional[LoggingPort] = None,
        sleep: Optional[Callable[[float], Any]] = None,
    ) -> None:
        self.aws_client = aws_client
        self.config = config or StagingConfig()
        self._logger = logger or LoggingAdapter("ec2")
        self._sleep = sleep
        self._handlers: dict[GatewayAction, Callable[[dict[str, Any]], list]] = {
            GatewayAction.DESCRIBE_IMAGES: self._describe_images,
            GatewayAction.DESCRIBE_INSTANCES: self._describe_instances,
            GatewayAction.RUN_INSTANCES: self._run_instances,
            GatewayAction.START_INSTANCES: self._start_instances,
            GatewayAction.STOP_INSTANCES: self._stop_instances,
            GatewayAction.TERMINATE_INSTANCES: self._terminate_instances,
            GatewayAction.CREATE_TAGS: self._create_tags,
            GatewayAction.DESCRIBE_KEY_PAIRS: self._describe_key_pairs,
            GatewayAction.CREATE_KEY_PAIR: self._create_key_pair,
            GatewayAction.DELETE_KEY_PAIR: self._delete_key_pair,
            GatewayAction.DESCRIBE_SECURITY_GROUPS: self._describe_security_groups,
            GatewayAction.CREATE_SECURITY_GROUP: self._create_security_group,
            GatewayAction.AUTHORIZE_SECURITY_GROUP_INGRESS: self._authorize_ingress,
            GatewayAction.DESCRIBE_VOLUMES: self._describe_volumes,
            GatewayAction.CREATE_VOLUME: self._create_volume,
            GatewayAction.ATTACH_VOLUME: self._attach_volume,
            GatewayAction.DETACH_VOLUME: self._detach_volume,
            GatewayAction.DELETE_VOLUME: self._delete_volume,
            GatewayAction.CREATE_SNAPSHOT: self._create_snapshot,
            GatewayAction.DESCRIBE_SNAPSHOTS: self._describe_snapshots,
            GatewayAction.DESCRIBE_AVAILABILITY_ZONES: self._describe_availability_zones,
        }

    @property
    def ec2(self):
        return self.aws_client.ec2_client

    def invoke(
        self, action: "GatewayAction | str", params: Optional[dict[str, Any]] = None
    ) -> list[RemoteObject]:
        try:
            action = GatewayAction.from_value(action)
        except ValueError as e:
            raise PermanentAPIError(f"Unsupported action: {action}", action=str(action)) from e

        handler = self._handlers[action]
        try:
            return handler(dict(params or {}))
        except ClientError as e:
            raise convert_client_error(e, str(action)) from e

    # Status refresh

    def status_of(self, remote: Ec2RemoteObject) -> str:
        """Re-describe ``remote`` and return its current status.

        Resources that no longer exist report their end state: ``terminated``
        for instances, ``deleted`` for volumes, ``detached`` for attachments.
        Throttled describes are retried like any other core call.
        """
        retrying = build_retrying(
            max_attempts=self.config.rate_limit_max_attempts,
            base_delay=self.config.rate_limit_base_delay,
            max_delay=self.config.rate_limit_max_delay,
            service=f"describe {remote.kind}",
            sleep=self._sleep,
        )
        try:
            status = retrying(self._refresh, remote)
        except PermanentAPIError as e:
            if not e.is_not_found:
                raise
            status = {
                "instance": "terminated",
                "volume": "deleted",
                "attachment": "detached",
            }.get(remote.kind, "error")
        remote.attributes["state"] = status
        return status

    def _refresh(self, remote: Ec2RemoteObject) -> str:
        try:
            if remote.kind == "instance":
                fresh = self._describe_instances({"instance_ids": [remote.id]})
            elif remote.kind in ("volume", "attachment"):
                fresh = self._describe_volumes({"volume_ids": [remote.id]})
            elif remote.kind == "snapshot":
                fresh = self._describe_snapshots({"snapshot_ids": [remote.id]})
            elif remote.kind == "image":
                fresh = self._describe_images({"image_ids": [remote.id]})
            else:
                return str(remote.attributes.get("state", "available"))
        except ClientError as e:
            raise convert_client_error(e, f"describe {remote.kind}") from e

        if not fresh:
            raise PermanentAPIError(
                f"{remote.kind} {remote.id} not found", code="NotFound", action="describe"
            )
        current = fresh[0]

        if remote.kind == "attachment":
            instance_id = remote.attributes.get("instance_id")
            if current.attributes.get("attachment_instance_id") != instance_id:
                return "detached"
            return current.attributes.get("attachment_state") or "detached"

        remote.attributes.update({k: v for k, v in current.attributes.items() if v is not None})
        remote.tags.update(current.tags)
        return current.attributes.get("state") or "unknown"

    # Helpers

    def _paginate(self, operation: str, result_key: str, **kwargs) -> list[dict[str, Any]]:
        paginator = self.ec2.get_paginator(operation)
        items: list[dict[str, Any]] = []
        for page in paginator.paginate(**kwargs):
            items.extend(page.get(result_key, []))
        return items

    @staticmethod
    def _filter_kwargs(params: dict[str, Any]) -> dict[str, Any]:
        filters = build_filters(params.get("filters"))
        return {"Filters": filters} if filters else {}

    # Instances and images

    def _describe_images(self, params):
        kwargs = self._filter_kwargs(params)
        if params.get("image_ids"):
            kwargs["ImageIds"] = list(params["image_ids"])
        if params.get("owners"):
            kwargs["Owners"] = list(params["owners"])
        response = self.ec2.describe_images(**kwargs)
        return [image_from(i, self) for i in response.get("Images", [])]

    def _describe_instances(self, params):
        kwargs = self._filter_kwargs(params)
        if params.get("instance_ids"):
            kwargs["InstanceIds"] = list(params["instance_ids"])
        reservations = self._paginate("describe_instances", "Reservations", **kwargs)
        return [instance_from(i, self) for r in reservations for i in r.get("Instances", [])]

    def _run_instances(self, params):
        kwargs = {
            "ImageId": params["image_id"],
            "InstanceType": params["instance_type"],
            "MinCount": params.get("min_count", 1),
            "MaxCount": params.get("max_count", 1),
        }
        if params.get("key_name"):
            kwargs["KeyName"] = params["key_name"]
        if params.get("security_group_ids"):
            kwargs["SecurityGroupIds"] = list(params["security_group_ids"])
        if params.get("availability_zone"):
            kwargs["Placement"] = {"AvailabilityZone": params["availability_zone"]}
        response = self.ec2.run_instances(**kwargs)
        instances = [instance_from(i, self) for i in response.get("Instances", [])]
        self._logger.debug("Launched %s", [i.id for i in instances])
        return instances

    def _state_change(self, method: str, result_key: str, params) -> list[Ec2RemoteObject]:
        response = getattr(self.ec2, method)(InstanceIds=list(params["instance_ids"]))
        return [
            Ec2RemoteObject(
                kind="instance",
                id=change["InstanceId"],
                attributes={"state": change.get("CurrentState", {}).get("Name")},
                raw=change,
                gateway=self,
            )
            for change in response.get(result_key, [])
        ]

    def _start_instances(self, params):
        return self._state_change("start_instances", "StartingInstances", params)

    def _stop_instances(self, params):
        return self._state_change("stop_instances", "StoppingInstances", params)

    def _terminate_instances(self, params):
        return self._state_change("terminate_instances", "TerminatingInstances", params)

    def _create_tags(self, params):
        tags = [{"Key": k, "Value": str(v)} for k, v in params["tags"].items()]
        self.ec2.create_tags(Resources=list(params["resource_ids"]), Tags=tags)
        return []

    # Credentials and network

    def _describe_key_pairs(self, params):
        kwargs = self._filter_kwargs(params)
        if params.get("key_names"):
            kwargs["KeyNames"] = list(params["key_names"])
        response = self.ec2.describe_key_pairs(**kwargs)
        return [key_pair_from(k, self) for k in response.get("KeyPairs", [])]

    def _create_key_pair(self, params):
        response = self.ec2.create_key_pair(KeyName=params["key_name"])
        return [key_pair_from(response, self)]

    def _delete_key_pair(self, params):
        self.ec2.delete_key_pair(KeyName=params["key_name"])
        return []

    def _describe_security_groups(self, params):
        kwargs = self._filter_kwargs(params)
        if params.get("group_ids"):
            kwargs["GroupIds"] = list(params["group_ids"])
        response = self.ec2.describe_security_groups(**kwargs)
        return [security_group_from(g, self) for g in response.get("SecurityGroups", [])]

    def _create_security_group(self, params):
        response = self.ec2.create_security_group(
            GroupName=params["group_name"], Description=params.get("description", "")
        )
        return [
            security_group_from(
                {
                    "GroupId": response["GroupId"],
                    "GroupName": params["group_name"],
                    "Description": params.get("description", ""),
                },
                self,
            )
        ]

    def _authorize_ingress(self, params):
        self.ec2.authorize_security_group_ingress(
            GroupId=params["group_id"],
            IpPermissions=[
                {
                    "IpProtocol": params.get("protocol", "tcp"),
                    "FromPort": params["from_port"],
                    "ToPort": params.get("to_port", params["from_port"]),
                    "IpRanges": [{"CidrIp": params.get("cidr", "0.0.0.0/0")}],
                }
            ],
        )
        return []

    def _describe_availability_zones(self, params):
        response = self.ec2.describe_availability_zones(**self._filter_kwargs(params))
        return [zone_from(z, self) for z in response.get("AvailabilityZones", [])]

    # Volumes and snapshots

    def _describe_volumes(self, params):
        kwargs = self._filter_kwargs(params)
        if params.get("volume_ids"):
            kwargs["VolumeIds"] = list(params["volume_ids"])
        volumes = self._paginate("describe_volumes", "Volumes", **kwargs)
        return [volume_from(v, self) for v in volumes]

    def _create_volume(self, params):
        kwargs = {"AvailabilityZone": params["availability_zone"], "Size": params["size"]}
        if params.get("snapshot_id"):
            kwargs["SnapshotId"] = params["snapshot_id"]
        if params.get("volume_type"):
            kwargs["VolumeType"] = params["volume_type"]
        response = self.ec2.create_volume(**kwargs)
        return [volume_from(response, self)]

    def _attach_volume(self, params):
        response = self.ec2.attach_volume(
            VolumeId=params["volume_id"],
            InstanceId=params["instance_id"],
            Device=params["device"],
        )
        return [attachment_from(response, self)]

    def _detach_volume(self, params):
        kwargs = {"VolumeId": params["volume_id"]}
        if params.get("instance_id"):
            kwargs["InstanceId"] = params["instance_id"]
        if params.get("force"):
            kwargs["Force"] = True
        response = self.ec2.detach_volume(**kwargs)
        return [attachment_from(response, self)]

    def _delete_volume(self, params):
        self.ec2.delete_volume(VolumeId=params["volume_id"])
        return []

    def _create_snapshot(self, params):
        kwargs = {"VolumeId": params["volume_id"]}
        if params.get("description"):
            kwargs["Description"] = params["description"]
        response = self.ec2.create_snapshot(**kwargs)
        return [snapshot_from(response, self)]

    def _describe_snapshots(self, params):
        kwargs = self._filter_kwargs(params)
        if params.get("snapshot_ids"):
            kwargs["SnapshotIds"] = list(params["snapshot_ids"])
        else:
            kwargs["OwnerIds"] = ["self"]
        response = self.ec2.describe_snapshots(**kwargs)
        return [snapshot_from(s, self) for s in response.get("Snapshots", [])]
