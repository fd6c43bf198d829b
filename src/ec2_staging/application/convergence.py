"""Convergence poller: wait for resources to reach a terminal state."""

import time
from collections.abc import Iterable
from typing import Optional

from ec2_staging.domain.base.exceptions import ConvergenceTimeoutError
from ec2_staging.domain.base.ports.logging_port import LoggingPort
from ec2_staging.infrastructure.adapters.logging_adapter import LoggingAdapter
from ec2_staging.infrastructure.timing import Clock, Deadline, Sleeper

DEFAULT_POLL_INTERVAL = 3.0


class ConvergencePoller:
    """
    Generic state-machine driver over anything with ``id`` and ``current_status()``.

    One loop serves every resource passed in: each pass sleeps ``interval``
    seconds, then queries the status of every resource still pending and drops
    those whose status is terminal. Resource kinds supply their own terminal
    states; see ``ec2_staging.domain.resource.states``.
    """

    def __init__(
        self,
        interval: float = DEFAULT_POLL_INTERVAL,
        sleep: Sleeper = time.sleep,
        clock: Clock = time.monotonic,
        logger: Optional[LoggingPort] = None,
    ) -> None:
        self.interval = interval
        self._sleep = sleep
        self._clock = clock
        self._logger = logger or LoggingAdapter("convergence")

    def await_terminal(
        self,
        resources: Iterable,
        terminal_states: Iterable[str],
        timeout: Optional[float] = None,
        deadline: Optional[Deadline] = None,
    ) -> dict[str, str]:
        """
        Poll until every resource reports a status in ``terminal_states``.

        Args:
            resources: Objects exposing ``id`` and ``current_status()``. None
                entries are ignored and duplicates collapse by id.
            terminal_states: Statuses that end the wait for a resource.
            timeout: Seconds to wait; None or 0 waits without bound.
            deadline: A deadline shared with other waits. Overrides ``timeout``.

        Returns:
            Mapping of resource id to its final status.

        Raises:
            ConvergenceTimeoutError: If the deadline passes first. No partial
                state map is returned.
        """
        terminal = {str(s) for s in terminal_states}
        pending = {r.id: r for r in resources if r is not None}
        statuses: dict[str, str] = {}
        deadline = deadline or Deadline(timeout, self._clock)

        if pending:
            self._logger.debug(
                "Waiting for %s to reach one of %s", sorted(pending), sorted(terminal)
            )

        while pending:
            if deadline.expired():
                self._logger.warning(
                    "Timed out after %ss waiting for %s", deadline.timeout, sorted(pending)
                )
                raise ConvergenceTimeoutError(
                    f"Timeout waiting for terminal state of {', '.join(sorted(pending))}",
                    pending=sorted(pending),
                )

            self._sleep(deadline.bounded_delay(self.interval))

            for resource_id, resource in list(pending.items()):
                status = str(resource.current_status())
                statuses[resource_id] = status
                if status in terminal:
                    del pending[resource_id]

        return statuses
