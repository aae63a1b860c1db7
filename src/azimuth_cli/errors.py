"""Error types for point and network-key operations."""

from __future__ import annotations


class AzimuthCLIError(RuntimeError):
    """Base error. ``point`` is the point the failure applies to, when known."""

    def __init__(self, message: str, *, point: int | None = None) -> None:
        super().__init__(message)
        self.point = point


class ValidationError(AzimuthCLIError, ValueError):
    """Malformed point, address or configuration input."""


class InvalidPointError(ValidationError):
    """Point identifier is malformed or out of range."""

    def __init__(self, message: str, *, raw: object = None, point: int | None = None) -> None:
        super().__init__(message, point=point)
        self.raw = raw


class ConfigurationError(ValidationError):
    """Configuration is missing, contradictory or invalid."""


class NotFoundError(AzimuthCLIError):
    """Point is not known to the probed backend."""


class AuthorizationError(AzimuthCLIError):
    """Signing identity lacks the role required for the operation."""


class ChainCommunicationError(AzimuthCLIError):
    """RPC or HTTP transport failure."""


class RollerRequestError(ChainCommunicationError):
    """Roller returned a structured HTTP or JSON-RPC error response."""

    def __init__(
        self,
        message: str,
        *,
        point: int | None = None,
        status_code: int | None = None,
        error_code: int | str | None = None,
        body: object | None = None,
    ) -> None:
        super().__init__(message, point=point)
        self.status_code = status_code
        self.error_code = error_code
        self.body = body


class DataSourceError(ChainCommunicationError):
    """Point state could not be read from the selected backend."""


class CacheConsistencyError(AzimuthCLIError):
    """Expected local key material is missing or malformed."""
