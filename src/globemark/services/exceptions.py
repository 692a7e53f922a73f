"""Exceptions raised by GLOBEMARK's external service clients.

Every client wraps transport and HTTP failures into this taxonomy so the
interaction layer can turn them into user-visible notices.
"""

from __future__ import annotations


class ServiceError(Exception):
    """Base exception for external service failures."""

    def __init__(
        self,
        message: str,
        *,
        service: str | None = None,
        status_code: int | None = None,
        cause: Exception | None = None,
    ) -> None:
        """Initialize service error.

        Args:
            message: Human-readable error description.
            service: Service name (e.g., "images", "assets", "geocoder").
            status_code: HTTP status code, if a response was received.
            cause: Original exception that caused this error.
        """
        self.service = service
        self.status_code = status_code
        self.cause = cause
        self.message = message
        super().__init__(message)


class ServiceUnavailable(ServiceError):
    """Raised when a service cannot be reached or answers with a failure.

    This error is raised when:
    - The connection fails or times out
    - The service answers with a 5xx status
    - The response body cannot be decoded
    """


class NotFound(ServiceError):
    """Raised when a lookup (geocoding) yields no result."""


class ValidationError(ServiceError):
    """Raised when a request is rejected for missing or malformed fields.

    Checked client-side before any request is sent, and mapped from HTTP
    400 responses.
    """

    def __init__(
        self,
        message: str,
        *,
        fields: tuple[str, ...] = (),
        service: str | None = None,
        status_code: int | None = None,
    ) -> None:
        self.fields = fields
        super().__init__(message, service=service, status_code=status_code)


class UploadError(ServiceError):
    """Raised when the asset host rejects or fails an upload."""


class CircuitBreakerOpenError(ServiceUnavailable):
    """Raised when the circuit breaker is open.

    Requests are rejected without contacting the service until the
    cooldown elapses.
    """

    def __init__(
        self,
        message: str,
        *,
        cooldown_remaining_seconds: float,
        service: str | None = None,
    ) -> None:
        self.cooldown_remaining_seconds = cooldown_remaining_seconds
        super().__init__(message, service=service)
