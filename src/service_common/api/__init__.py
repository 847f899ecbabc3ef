"""
API package.

Contains the shared routers and exception handling:
- /healthz - Liveness probe
- /metrics - Prometheus metrics
- Default exception handlers rendering ApiErrorResponse
- Standard error responses for the OpenAPI document
"""
from .healthz import router as healthz_router
from .metrics import router as metrics_router

__all__ = ["healthz_router", "metrics_router"]
