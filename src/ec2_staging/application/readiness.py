"""Readiness prober: wait for running servers to accept connections."""

import time
from collections.abc import Iterable
from typing import Optional

from ec2_staging.domain.base.exceptions import ReadinessTimeoutError
from ec2_staging.domain.base.ports.logging_port import LoggingPort
from ec2_staging.domain.base.ports.readiness_probe_port import ReadinessProbePort
from ec2_staging.domain.resource.models import ManagedServer
from ec2_staging.infrastructure.adapters.logging_adapter import LoggingAdapter
from ec2_staging.infrastructure.timing import Clock, Deadline, Sleeper

DEFAULT_PROBE_INTERVAL = 5.0


class ReadinessProber:
    """Retries a reachability probe until every server answers.

    Infrastructure status is never consulted here; callers bring servers to
    ``running`` first. Retries use a fixed delay.
    """

    def __init__(
        self,
        probe: ReadinessProbePort,
        interval: float = DEFAULT_PROBE_INTERVAL,
        sleep: Sleeper = time.sleep,
        clock: Clock = time.monotonic,
        logger: Optional[LoggingPort] = None,
    ) -> None:
        self.probe = probe
        self.interval = interval
        self._sleep = sleep
        self._clock = clock
        self._logger = logger or LoggingAdapter("readiness")

    def await_reachable(
        self,
        servers: Iterable[ManagedServer],
        timeout: Optional[float] = None,
        deadline: Optional[Deadline] = None,
    ) -> list[ManagedServer]:
        """
        Probe ``servers`` until all are reachable.

        Args:
            servers: Servers believed to be running.
            timeout: Seconds to wait; None or 0 waits without bound.
            deadline: A deadline shared with other waits. Overrides ``timeout``.
                Every pending server is probed at least once even when it has
                already expired.

        Returns:
            The servers, each with ``reachable`` set.

        Raises:
            ReadinessTimeoutError: Naming the servers that never answered.
        """
        servers = [s for s in servers if s is not None]
        pending = {s.id: s for s in servers if not s.reachable}
        deadline = deadline or Deadline(timeout, self._clock)

        if pending:
            self._logger.info("Waiting for ssh daemons on %s", ", ".join(sorted(pending)))

        while pending:
            for server_id, server in list(pending.items()):
                if self.probe.probe(server):
                    server.reachable = True
                    del pending[server_id]
                    self._logger.debug("Server %s is reachable", server_id)

            if not pending:
                break

            if deadline.expired():
                reachable = sorted(s.id for s in servers if s.id not in pending)
                raise ReadinessTimeoutError(
                    f"Servers never became reachable: {', '.join(sorted(pending))}",
                    unreachable=sorted(pending),
                    reachable=reachable,
                )

            self._sleep(deadline.bounded_delay(self.interval))

        return servers
