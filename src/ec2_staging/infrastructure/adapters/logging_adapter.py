"""Logging adapter implementing LoggingPort."""

from typing import Any

from ec2_staging.domain.base.ports.logging_port import LoggingPort
from ec2_staging.infrastructure.logging.logger import get_logger


class LoggingAdapter(LoggingPort):
    """Adapter that implements LoggingPort on top of the package logger.

    When ``quiet`` is set, info-level progress messages are dropped; warnings
    and errors are always emitted.
    """

    def __init__(self, name: str = "manager", quiet: bool = False) -> None:
        self._logger = get_logger(name)
        self.quiet = quiet

    def _prepare_kwargs(self, kwargs: dict[str, Any]) -> dict[str, Any]:
        kwargs.setdefault("stacklevel", 2)
        return kwargs

    def debug(self, message: str, *args: Any, **kwargs: Any) -> None:
        self._logger.debug(message, *args, **self._prepare_kwargs(kwargs))

    def info(self, message: str, *args: Any, **kwargs: Any) -> None:
        if self.quiet:
            return
        self._logger.info(message, *args, **self._prepare_kwargs(kwargs))

    def warning(self, message: str, *args: Any, **kwargs: Any) -> None:
        self._logger.warning(message, *args, **self._prepare_kwargs(kwargs))

    def error(self, message: str, *args: Any, **kwargs: Any) -> None:
        self._logger.error(message, *args, **self._prepare_kwargs(kwargs))

    def exception(self, message: str, *args: Any, **kwargs: Any) -> None:
        self._logger.exception(message, *args, **self._prepare_kwargs(kwargs))

    def child(self, name: str) -> "LoggingAdapter":
        """Return an adapter for a sub-component sharing the quiet flag."""
        return LoggingAdapter(f"{self._logger.name}.{name}", quiet=self.quiet)
