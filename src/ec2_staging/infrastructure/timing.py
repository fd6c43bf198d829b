"""Deadline primitive used by the polling loops."""

import time
from typing import Callable, Optional

Clock = Callable[[], float]
Sleeper = Callable[[float], None]


class Deadline:
    """A point in time after which waiting must stop.

    A timeout of ``None`` or ``0`` makes the deadline unbounded: it never
    expires and ``remaining()`` returns ``None``.
    """

    def __init__(self, timeout: Optional[float], clock: Clock = time.monotonic) -> None:
        self._clock = clock
        self.timeout = timeout if timeout and timeout > 0 else None
        self._expires_at = clock() + self.timeout if self.timeout is not None else None

    @classmethod
    def unbounded(cls, clock: Clock = time.monotonic) -> "Deadline":
        return cls(None, clock)

    @property
    def is_bounded(self) -> bool:
        return self._expires_at is not None

    def remaining(self) -> Optional[float]:
        """Seconds left, never negative. None when unbounded."""
        if self._expires_at is None:
            return None
        return max(0.0, self._expires_at - self._clock())

    def expired(self) -> bool:
        if self._expires_at is None:
            return False
        return self._clock() >= self._expires_at

    def bounded_delay(self, interval: float) -> float:
        """Clip ``interval`` so a sleep does not run past the deadline."""
        remaining = self.remaining()
        if remaining is None:
            return interval
        return min(interval, remaining)

    def __repr__(self) -> str:
        return f"Deadline(timeout={self.timeout}, remaining={self.remaining()})"
