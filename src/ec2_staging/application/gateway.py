"""Gateway wrapper that retries throttled calls."""

import time
from typing import Any, Callable, Optional

from ec2_staging.config.schemas.staging_schema import StagingConfig
from ec2_staging.domain.base.ports.cloud_gateway_port import (
    CloudGatewayPort,
    GatewayAction,
    RemoteObject,
)
from ec2_staging.domain.base.ports.logging_port import LoggingPort
from ec2_staging.infrastructure.adapters.logging_adapter import LoggingAdapter
from ec2_staging.infrastructure.resilience.retry import build_retrying


class RateLimitedGateway(CloudGatewayPort):
    """Delegates to another gateway, retrying RateLimitError with capped backoff.

    PermanentAPIError and every other exception propagate on the first
    occurrence. A RateLimitError still raised after the last attempt
    propagates as well.
    """

    def __init__(
        self,
        gateway: CloudGatewayPort,
        config: Optional[StagingConfig] = None,
        logger: Optional[LoggingPort] = None,
        sleep: Callable[[float], Any] = time.sleep,
    ) -> None:
        config = config or StagingConfig()
        self._gateway = gateway
        self._logger = logger or LoggingAdapter("gateway")
        self._sleep = sleep
        self.max_attempts = config.rate_limit_max_attempts
        self.base_delay = config.rate_limit_base_delay
        self.max_delay = config.rate_limit_max_delay

    @property
    def wrapped(self) -> CloudGatewayPort:
        return self._gateway

    def invoke(
        self, action: "GatewayAction | str", params: Optional[dict[str, Any]] = None
    ) -> list[RemoteObject]:
        retrying = build_retrying(
            strategy="exponential",
            max_attempts=self.max_attempts,
            base_delay=self.base_delay,
            max_delay=self.max_delay,
            service=str(action),
            sleep=self._sleep,
        )
        self._logger.debug("Invoking %s with %s", action, params)
        return retrying(self._gateway.invoke, action, params or {})
