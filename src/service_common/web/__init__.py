"""
ASGI middleware for request correlation and HTTP logging.
"""

from .correlation import CORRELATION_ID_HEADER, CorrelationIdMiddleware, get_correlation_id
from .http_logging import HttpLoggingMiddleware

__all__ = [
    "CORRELATION_ID_HEADER",
    "CorrelationIdMiddleware",
    "get_correlation_id",
    "HttpLoggingMiddleware",
]
