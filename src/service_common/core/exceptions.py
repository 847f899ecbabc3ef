"""
Service exception hierarchy.

Each exception carries the HTTP status and API error type it maps to, so the
default exception handlers can render a consistent ApiErrorResponse. Attach the
underlying cause with ``raise ... from exc``.
"""

from typing import Optional

from ..models.api_error import ApiErrorType


class ServiceException(Exception):
    """
    Base exception for all service errors.

    Represents an internal server error (HTTP 500) unless a subclass says otherwise.
    """

    status_code: int = 500
    error_type: ApiErrorType = ApiErrorType.INTERNAL_ERROR

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    @property
    def code(self) -> Optional[str]:
        """Machine-readable error code, only set for business rule violations."""
        return None


class InvalidRequestException(ServiceException):
    """
    Raised when the request is malformed or structurally invalid (HTTP 400).

    Use BusinessException for well-formed requests that break a domain rule.
    """

    status_code = 400
    error_type = ApiErrorType.INVALID_REQUEST


class ResourceNotFoundException(ServiceException):
    """Raised when a requested resource does not exist (HTTP 404)."""

    status_code = 404
    error_type = ApiErrorType.NOT_FOUND


class BusinessException(ServiceException):
    """
    Raised when a well-formed request violates a business rule (HTTP 422).

    Examples: negative amounts, exceeded budgets, duplicate transactions,
    invalid state transitions. The code is returned to clients so they can
    localize or branch on the specific violation.
    """

    status_code = 422
    error_type = ApiErrorType.APPLICATION_ERROR

    def __init__(self, message: str, code: str) -> None:
        super().__init__(message)
        self._code = code

    @property
    def code(self) -> Optional[str]:
        return self._code


class ClientException(ServiceException):
    """
    Raised when a call to an external service or API fails on the client side.

    Typically wraps an error from an HTTP client library; surfaces as HTTP 503.
    """

    status_code = 503
    error_type = ApiErrorType.SERVICE_UNAVAILABLE


class ServiceUnavailableException(ServiceException):
    """
    Raised when a dependency is temporarily unreachable (HTTP 503).

    Database outages, upstream timeouts, open circuit breakers. Callers may retry.
    """

    status_code = 503
    error_type = ApiErrorType.SERVICE_UNAVAILABLE


class SecurityConfigurationError(RuntimeError):
    """Raised when the JWT decoder cannot be configured or keys cannot be fetched."""


class AuthenticationError(Exception):
    """Raised when a request cannot be authenticated (HTTP 401)."""

    status_code = 401
    error = "Unauthorized"

    def __init__(self, message: str = "Full authentication is required to access this resource") -> None:
        super().__init__(message)
        self.message = message


class InvalidBearerTokenError(AuthenticationError):
    """Raised when a bearer token fails signature or claim validation."""


class AccessDeniedError(Exception):
    """Raised when an authenticated principal lacks a required authority (HTTP 403)."""

    status_code = 403
    error = "Forbidden"

    def __init__(self, message: str = "Access Denied") -> None:
        super().__init__(message)
        self.message = message


class HardDeleteNotAllowedError(NotImplementedError):
    """Raised when a soft-deletable entity is deleted through the session."""
