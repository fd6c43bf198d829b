"""Domain port for application-level readiness checks."""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ec2_staging.domain.resource.models import ManagedServer


class ReadinessProbePort(ABC):
    """Checks whether a running server accepts application connections."""

    @abstractmethod
    def probe(self, server: "ManagedServer") -> bool:
        """Return True when ``server`` is reachable. Must not raise for unreachable hosts."""
