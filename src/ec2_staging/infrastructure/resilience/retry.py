"""Retry strategies built on tenacity."""

import time
from typing import Any, Callable, Optional

from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_fixed,
)

from ec2_staging.domain.base.exceptions import RateLimitError
from ec2_staging.infrastructure.logging.logger import get_logger

logger = get_logger(__name__)


def _log_before_sleep(service: str) -> Callable[[RetryCallState], None]:
    def before_sleep(retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        delay = retry_state.next_action.sleep if retry_state.next_action else 0
        logger.warning(
            "%s call throttled (attempt %d): %s; retrying in %.1fs",
            service,
            retry_state.attempt_number,
            exc,
            delay,
        )

    return before_sleep


def build_retrying(
    strategy: str = "exponential",
    max_attempts: int = 7,
    base_delay: float = 2.0,
    max_delay: float = 64.0,
    service: str = "ec2",
    retry_on: tuple[type[BaseException], ...] = (RateLimitError,),
    sleep: Optional[Callable[[float], Any]] = None,
) -> Retrying:
    """
    Build a tenacity Retrying object for the given strategy.

    Exponential waits are ``base_delay * 2 ** (attempt - 1)`` capped at
    ``max_delay``: with the defaults 2, 4, 8, 16, 32, 64 seconds. The last
    error is re-raised once ``max_attempts`` is exhausted.

    Args:
        strategy: "exponential" or "fixed"
        max_attempts: Total attempts including the first call
        base_delay: First wait in seconds
        max_delay: Upper bound for a single wait
        service: Name used in log messages
        retry_on: Exception types that trigger a retry
        sleep: Sleep function, ``time.sleep`` by default

    Returns:
        Configured Retrying instance
    """
    if strategy == "exponential":
        wait = wait_exponential(multiplier=base_delay, max=max_delay)
    elif strategy == "fixed":
        wait = wait_fixed(base_delay)
    else:
        raise ValueError(f"Unknown retry strategy: {strategy}")

    return Retrying(
        retry=retry_if_exception_type(retry_on),
        stop=stop_after_attempt(max_attempts),
        wait=wait,
        sleep=sleep or time.sleep,
        before_sleep=_log_before_sleep(service),
        reraise=True,
    )
