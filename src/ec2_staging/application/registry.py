"""Zone-indexed registry of managed servers and volumes."""

import threading
from collections.abc import Iterator
from typing import Optional, Union

from ec2_staging.domain.base.exceptions import ZoneMismatchError
from ec2_staging.domain.resource.models import ManagedServer, ManagedVolume

ManagedResource = Union[ManagedServer, ManagedVolume]


class ResourceRegistry:
    """Two indices over one resource set: by identifier and by zone.

    A resource is in the zone index if and only if it is in the identifier
    index, under the zone it reports. Each registry belongs to one manager.
    Mutations and snapshots take an internal lock so a polling pass never
    iterates a structure that is being mutated, but the registry is not meant
    to be shared between managers.
    """

    def __init__(self) -> None:
        self._by_id: dict[str, ManagedResource] = {}
        self._by_zone: dict[str, dict[str, ManagedResource]] = {}
        self._lock = threading.RLock()

    def register(self, resource: ManagedResource) -> ManagedResource:
        """Add or replace ``resource``.

        Raises:
            ZoneMismatchError: If a volume names a registered server in another zone.
        """
        with self._lock:
            if isinstance(resource, ManagedVolume) and resource.server_id:
                server = self._by_id.get(resource.server_id)
                if server is not None and server.zone != resource.zone:
                    raise ZoneMismatchError(
                        f"Volume {resource.id} is in zone {resource.zone} but server "
                        f"{server.id} is in zone {server.zone}",
                        {"volume_id": resource.id, "server_id": server.id},
                    )

            previous = self._by_id.get(resource.id)
            if previous is not None:
                self._remove_from_zone(previous)

            self._by_id[resource.id] = resource
            self._by_zone.setdefault(resource.zone, {})[resource.id] = resource
            return resource

    def unregister(self, resource_id: str) -> Optional[ManagedResource]:
        """Remove the resource from both indices. Returns it, or None if unknown."""
        with self._lock:
            resource = self._by_id.pop(resource_id, None)
            if resource is not None:
                self._remove_from_zone(resource)
            return resource

    def _remove_from_zone(self, resource: ManagedResource) -> None:
        # Search every zone bucket: a re-registered handle may report a new zone.
        for zone in list(self._by_zone):
            bucket = self._by_zone[zone]
            if bucket.get(resource.id) is not None:
                del bucket[resource.id]
            if not bucket:
                del self._by_zone[zone]

    def find_by_id(self, resource_id: str) -> Optional[ManagedResource]:
        with self._lock:
            return self._by_id.get(resource_id)

    def find_by_zone(self, zone: str) -> set[ManagedResource]:
        with self._lock:
            return set(self._by_zone.get(zone, {}).values())

    def all(self) -> Iterator[ManagedResource]:
        """Iterate over a snapshot of every registered resource."""
        with self._lock:
            snapshot = list(self._by_id.values())
        return iter(snapshot)

    def zones(self) -> list[str]:
        with self._lock:
            return list(self._by_zone)

    # Typed views

    def servers(self) -> list[ManagedServer]:
        return [r for r in self.all() if isinstance(r, ManagedServer)]

    def volumes(self) -> list[ManagedVolume]:
        return [r for r in self.all() if isinstance(r, ManagedVolume)]

    def servers_in_zone(self, zone: str) -> list[ManagedServer]:
        with self._lock:
            bucket = list(self._by_zone.get(zone, {}).values())
        return [r for r in bucket if isinstance(r, ManagedServer)]

    def volumes_in_zone(self, zone: str) -> list[ManagedVolume]:
        with self._lock:
            bucket = list(self._by_zone.get(zone, {}).values())
        return [r for r in bucket if isinstance(r, ManagedVolume)]

    def find_server_by_instance(self, instance_id: str) -> Optional[ManagedServer]:
        resource = self.find_by_id(instance_id)
        return resource if isinstance(resource, ManagedServer) else None

    def volumes_attached_to(self, server_id: str) -> list[ManagedVolume]:
        return [v for v in self.volumes() if v.server_id == server_id]

    def __contains__(self, resource_id: object) -> bool:
        with self._lock:
            return resource_id in self._by_id

    def __len__(self) -> int:
        with self._lock:
            return len(self._by_id)
