"""Availability zone selection for new resources."""

import random
from abc import ABC, abstractmethod
from typing import Optional

from ec2_staging.application.registry import ResourceRegistry
from ec2_staging.domain.base.exceptions import ProvisioningError
from ec2_staging.domain.base.ports.cloud_gateway_port import CloudGatewayPort, GatewayAction


class ZoneSelectionPolicy(ABC):
    """Chooses the zone for a resource whose constraints name none."""

    @abstractmethod
    def select_zone(self, registry: ResourceRegistry, gateway: CloudGatewayPort) -> str:
        """Return an availability zone name."""


class MostActiveZonePolicy(ZoneSelectionPolicy):
    """Prefer the zone where work is already happening.

    Order of preference: the zone of the first reachable registered server,
    then the zone of the first registered server, then a random zone from the
    region's available zones.
    """

    def __init__(self, rng: Optional[random.Random] = None) -> None:
        self._rng = rng or random.Random()

    def select_zone(self, registry: ResourceRegistry, gateway: CloudGatewayPort) -> str:
        servers = registry.servers()
        for server in servers:
            if server.reachable:
                return server.zone
        if servers:
            return servers[0].zone

        zones = gateway.invoke(
            GatewayAction.DESCRIBE_AVAILABILITY_ZONES, {"filters": {"state": "available"}}
        )
        names = sorted(z.id for z in zones)
        if not names:
            raise ProvisioningError("No availability zones are available")
        return self._rng.choice(names)
