"""
service-common - shared building blocks for FastAPI microservices.

Provides audit and soft-delete ORM mixins, a standard API error format with
exception handlers, CSV parsing, correlation ID propagation, HTTP
request/response logging and OAuth2 bearer token validation.
"""

__version__ = "0.1.0"

from .app import configure_logging, create_app, install_service_common

__all__ = ["configure_logging", "create_app", "install_service_common", "__version__"]
