"""Domain exceptions for the staging manager."""

from typing import Any, Optional


class StagingError(Exception):
    """Base exception for all staging manager errors."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary format."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


class ConfigurationError(StagingError):
    """Raised when the staging configuration is invalid."""


class GatewayError(StagingError):
    """Base class for errors reported by the cloud API gateway."""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        action: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, details)
        self.code = code
        self.action = action


class RateLimitError(GatewayError):
    """The cloud API throttled the request. Retryable."""


class PermanentAPIError(GatewayError):
    """The cloud API rejected the request. Not retried."""

    @property
    def is_not_found(self) -> bool:
        """True when the error code reports a missing resource."""
        return bool(self.code) and (
            self.code.endswith(".NotFound") or self.code.endswith("NotFound")
        )


class ConvergenceTimeoutError(StagingError, TimeoutError):
    """Resources did not reach a terminal state before the deadline.

    No partial state map is attached: statuses observed before the timeout
    must not be treated as final.
    """

    def __init__(self, message: str, pending: Optional[list[str]] = None) -> None:
        super().__init__(message, {"pending": list(pending or [])})
        self.pending = list(pending or [])


class ReadinessTimeoutError(StagingError, TimeoutError):
    """Servers reached 'running' but never became reachable."""

    def __init__(
        self,
        message: str,
        unreachable: Optional[list[str]] = None,
        reachable: Optional[list[str]] = None,
    ) -> None:
        super().__init__(
            message,
            {"unreachable": list(unreachable or []), "reachable": list(reachable or [])},
        )
        self.unreachable = list(unreachable or [])
        self.reachable = list(reachable or [])


class NoMatchingImageError(StagingError):
    """No machine image matched the search filters. Nothing was created."""


class ProvisioningError(StagingError):
    """A resource was created but settled in an unusable state."""


class ZoneMismatchError(StagingError):
    """A volume and the server it is attached to live in different zones."""


class CredentialStoreError(StagingError):
    """Local key material could not be written, read or removed."""


class CleanupError(StagingError):
    """The exit policy could not be carried out."""
